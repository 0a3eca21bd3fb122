import logging
import threading
from collections import defaultdict

from .errors import IndexCorruption
from .logging_config import setup_logger

# setting up logger
logger = setup_logger(__name__, level=logging.INFO)


class FingerprintIndex:
    """
    In-memory inverted index for audio fingerprints.

    Structure:
        _table: {hash: ((song_id, anchor_time), ...)}
        _songs: {song_id: {hash: record_count}}

    Record lists are immutable tuples. A write builds the new tuple for a
    hash and swaps it in with a single dict assignment, so readers never
    lock and always see a hash's records either before or after an insert.
    Writers serialize on one lock.
    """

    def __init__(self):
        self._table = {}
        self._songs = {}
        self._write_lock = threading.Lock()

    def insert(self, song_id, hashes, replace=False):
        """
        Add a song's fingerprint to the index.

        Inserting the same song twice appends its records again (each
        aligned hit then counts twice); pass replace=True to drop the
        song's previous records first.

        Args:
            song_id: Catalog identifier
            hashes: Iterable of (hash, anchor_time) tuples
            replace: Remove existing records of song_id before inserting

        Returns:
            Number of records written
        """
        grouped = defaultdict(list)
        for hash_val, anchor_time in hashes:
            grouped[int(hash_val)].append((song_id, int(anchor_time)))

        with self._write_lock:
            if replace and song_id in self._songs:
                self._replace_locked(song_id, grouped)
            else:
                self._append_locked(song_id, grouped)

        written = sum(len(records) for records in grouped.values())
        logger.debug(f"Indexed song {song_id!r}: {written} records, {len(grouped)} hashes")
        return written

    def _append_locked(self, song_id, grouped):
        song_hashes = self._songs.setdefault(song_id, {})
        for hash_val, records in grouped.items():
            self._table[hash_val] = self._table.get(hash_val, ()) + tuple(records)
            song_hashes[hash_val] = song_hashes.get(hash_val, 0) + len(records)

    def _replace_locked(self, song_id, grouped):
        # One assignment per hash: old records out and new records in together
        for hash_val in self._songs[song_id].keys() | grouped.keys():
            kept = tuple(r for r in self._table.get(hash_val, ()) if r[0] != song_id)
            kept += tuple(grouped.get(hash_val, ()))
            if kept:
                self._table[hash_val] = kept
            else:
                self._table.pop(hash_val, None)
        self._songs[song_id] = {hash_val: len(records) for hash_val, records in grouped.items()}

    def lookup(self, hashes):
        """
        Batch lookup of hash codes.

        Args:
            hashes: Iterable of hash codes

        Returns:
            Dict mapping each hash present in the index to its records,
            a tuple of (song_id, anchor_time); absent hashes are left out
        """
        table = self._table
        found = {}
        for hash_val in set(hashes):
            records = table.get(hash_val)
            if records:
                found[hash_val] = records
        return found

    def remove(self, song_id):
        """Drop every record of song_id. Returns the number of records removed."""
        with self._write_lock:
            if song_id not in self._songs:
                return 0
            removed = self._remove_locked(song_id)

        logger.debug(f"Removed song {song_id!r}: {removed} records")
        return removed

    def _remove_locked(self, song_id):
        removed = 0
        for hash_val, count in self._songs.pop(song_id).items():
            kept = tuple(r for r in self._table.get(hash_val, ()) if r[0] != song_id)
            if kept:
                self._table[hash_val] = kept
            else:
                self._table.pop(hash_val, None)
            removed += count
        return removed

    @property
    def song_ids(self):
        return list(self._songs)

    def __contains__(self, song_id):
        return song_id in self._songs

    def __len__(self):
        return len(self._songs)

    def get_stats(self):
        """Get index statistics"""
        with self._write_lock:
            total_records = sum(len(v) for v in self._table.values())
            unique_hashes = len(self._table)
            num_songs = len(self._songs)

        return {
            "num_songs": num_songs,
            "unique_hashes": unique_hashes,
            "total_records": total_records,
            "avg_records_per_song": total_records / max(1, num_songs),
            "avg_records_per_hash": total_records / max(1, unique_hashes),
        }

    def verify(self):
        """
        Check that the table and the per-song bookkeeping agree.

        Raises:
            IndexCorruption: a record names an unknown song, or counts differ
        """
        with self._write_lock:
            counts = defaultdict(int)
            for hash_val, records in self._table.items():
                for song_id, _ in records:
                    if song_id not in self._songs:
                        raise IndexCorruption(
                            f"Hash {hash_val} references unregistered song {song_id!r}"
                        )
                    counts[(song_id, hash_val)] += 1

            expected = {
                (song_id, hash_val): count
                for song_id, song_hashes in self._songs.items()
                for hash_val, count in song_hashes.items()
            }

        for key in expected.keys() | counts.keys():
            if counts.get(key, 0) != expected.get(key, 0):
                song_id, hash_val = key
                raise IndexCorruption(
                    f"Song {song_id!r} expects {expected.get(key, 0)} records under "
                    f"hash {hash_val}, found {counts.get(key, 0)}"
                )
