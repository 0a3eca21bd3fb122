"""
Registration and identification on top of the fingerprinting core.

``SongRecognizer`` owns the in-memory index and, optionally, a catalog
store that persists registered songs. It is what the HTTP service and the
command line talk to.
"""

import itertools
import logging
import threading
import time
from pathlib import Path

from .audio_utils import load_audio, to_mono
from .catalog import CatalogStore
from .config import MatchConfig, default_params
from .errors import InvalidAudio, NoFingerprint
from .fingerprint import check_hash_params, fingerprint_audio
from .index import FingerprintIndex
from .logging_config import setup_logger
from .matcher import match_query

logger = setup_logger(__name__, level=logging.INFO)


class SongRecognizer:
    def __init__(
        self,
        catalog=None,
        params=None,
        threshold=MatchConfig.CONFIDENCE_THRESHOLD,
        top_n=MatchConfig.TOP_N,
    ):
        """
        Args:
            catalog: CatalogStore used to persist songs, or None for memory only
            params: Overrides for the fingerprinting parameters (see default_params)
            threshold: Minimum confidence for a match
            top_n: Ranked candidates kept on each MatchResult
        """
        self.catalog = catalog
        self.params = {**default_params(), **(params or {})}
        check_hash_params(self.params["window_length"], self.params["pairing_window"])
        self.threshold = threshold
        self.top_n = top_n
        self.index = FingerprintIndex()

        # Titles/artists for memory-only use; the catalog is the source otherwise
        self._songs = {}
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()

    @classmethod
    def from_catalog(cls, db_path=None, **kwargs):
        """Open (or create) a catalog and rebuild the index from it."""
        recognizer = cls(catalog=CatalogStore(db_path).init(), **kwargs)
        recognizer.load_catalog()
        return recognizer

    def load_catalog(self):
        """
        Insert every stored fingerprint into the index.

        Returns:
            Number of songs loaded

        Raises:
            IndexCorruption: a stored fingerprint cannot be parsed
        """
        if self.catalog is None:
            return 0

        start_time = time.time()
        loaded = 0
        for song_id, hashes in self.catalog.iter_fingerprints():
            self.index.insert(song_id, hashes, replace=True)
            loaded += 1

        logger.info(
            f"✓ Index rebuilt: {loaded} songs in {time.time() - start_time:.2f}s"
        )
        return loaded

    def fingerprint(self, samples, sample_rate, channels=1):
        """Downmix and fingerprint PCM samples. Returns (hashes, metadata)."""
        if sample_rate is None or sample_rate <= 0:
            raise InvalidAudio(f"Invalid sample rate: {sample_rate}")
        mono = to_mono(samples, channels)
        return fingerprint_audio(mono, sample_rate, **self.params)

    def register(self, samples, sample_rate, title, artist="Unknown", channels=1):
        """
        Fingerprint a reference recording and add it to the catalog.

        Returns:
            song_id: Newly assigned identifier

        Raises:
            InvalidAudio / UnsupportedRate: the buffer cannot be fingerprinted
            NoFingerprint: the audio yields no hashes (e.g. silence)
        """
        hashes, metadata = self.fingerprint(samples, sample_rate, channels)

        if not hashes:
            logger.warning(f"Rejected '{title}': no fingerprint hashes extracted")
            raise NoFingerprint(
                f"'{title}' produced no fingerprint hashes "
                f"({metadata['num_peaks']} peaks in {metadata['duration']:.2f}s)"
            )

        if self.catalog is not None:
            song_id = self.catalog.add_song(title, artist, hashes, metadata["duration"])
        else:
            with self._id_lock:
                song_id = next(self._ids)
            self._songs[song_id] = {
                "song_id": song_id,
                "title": title,
                "artist": artist,
                "num_hashes": len(hashes),
                "duration": metadata["duration"],
            }

        self.index.insert(song_id, hashes)

        logger.info(f"✓ Added song #{song_id}: {title} ({len(hashes)} hashes)")
        return song_id

    def register_file(self, audio_path, title=None, artist="Unknown"):
        """Register an audio file from disk; title defaults to the file name."""
        audio_path = Path(audio_path)
        samples, sr = load_audio(audio_path)
        return self.register(samples, sr, title or audio_path.stem, artist)

    def identify(self, samples, sample_rate, channels=1):
        """
        Match a query clip against every registered song.

        Audio that yields no hashes is a no-match with confidence 0, not an
        error.

        Returns:
            MatchResult
        """
        hashes, metadata = self.fingerprint(samples, sample_rate, channels)
        logger.debug(f"Query: {metadata['duration']:.2f}s -> {len(hashes)} hashes")
        return match_query(hashes, self.index, threshold=self.threshold, top_n=self.top_n)

    def identify_file(self, audio_path):
        samples, sr = load_audio(audio_path)
        return self.identify(samples, sr)

    def remove(self, song_id):
        """
        Remove a song from the index and the catalog.

        Returns:
            True if the song existed
        """
        removed_records = self.index.remove(song_id)

        if self.catalog is not None:
            existed = self.catalog.delete_song(song_id)
        else:
            existed = self._songs.pop(song_id, None) is not None

        if existed or removed_records:
            logger.info(f"✓ Removed song #{song_id} ({removed_records} index records)")
        return existed or removed_records > 0

    def get_song_info(self, song_id):
        """Get title/artist metadata for a song by ID, or None"""
        if self.catalog is not None:
            return self.catalog.get_song(song_id)
        return self._songs.get(song_id)

    def get_all_songs(self):
        if self.catalog is not None:
            return self.catalog.get_all_songs()
        return list(self._songs.values())

    def get_stats(self):
        return self.index.get_stats()


def index_directory(recognizer, directory_path, pattern="*.wav"):
    """
    Register all audio files in a directory.

    Files that fail to decode or yield no fingerprint are logged and skipped.

    Args:
        recognizer: SongRecognizer instance
        directory_path: Path to directory containing audio files
        pattern: File pattern to match (e.g., "*.wav", "*.mp3")

    Returns:
        List of song_ids that were indexed
    """
    directory = Path(directory_path)
    audio_files = sorted(directory.glob(pattern))

    if not audio_files:
        logger.warning(f"⚠ No audio files matching {pattern} in {directory_path}")
        return []

    logger.info(f"Found {len(audio_files)} audio files in {directory_path}")

    indexed_ids = []
    start_time = time.time()

    for i, audio_file in enumerate(audio_files, 1):
        logger.info(f"[{i}/{len(audio_files)}] Processing: {audio_file.name}")
        try:
            indexed_ids.append(recognizer.register_file(audio_file))
        except (InvalidAudio, NoFingerprint) as e:
            logger.error(f"✗ Skipped {audio_file.name}: {e}")

    elapsed = time.time() - start_time
    logger.info(
        f"✓ Indexing complete: {len(indexed_ids)}/{len(audio_files)} files "
        f"in {elapsed:.1f}s"
    )

    return indexed_ids
