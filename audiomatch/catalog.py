import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path

from .config import DatabaseConfig
from .errors import IndexCorruption
from .fingerprint import hashes_from_pairs, hashes_to_pairs
from .logging_config import setup_logger

# setting up logger
logger = setup_logger(__name__, level=logging.INFO)


SCHEMA = """
CREATE TABLE IF NOT EXISTS songs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    artist TEXT NOT NULL,
    fingerprint_data TEXT NOT NULL,
    num_hashes INTEGER NOT NULL,
    duration REAL NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_songs_artist ON songs(artist);
CREATE INDEX IF NOT EXISTS idx_songs_title ON songs(title);
"""


class CatalogStore:
    """
    Durable catalog of registered songs (SQLite).

    Each row keeps the song's metadata and its fingerprint as a JSON array
    of [hash, anchor_time] pairs, which is all that is needed to rebuild
    the in-memory index at startup. Every call opens its own connection, so
    one store can be shared between request threads.
    """

    def __init__(self, db_path=None):
        self.db_path = str(db_path or DatabaseConfig.DB_FILE)

    def _connect(self):
        return sqlite3.connect(self.db_path, timeout=30)

    def init(self):
        """Create the database file and tables if needed."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            conn.executescript(SCHEMA)
        logger.info(f"✓ Catalog ready: {self.db_path}")
        return self

    def add_song(self, title, artist, hashes, duration=0.0):
        """
        Persist a song.

        Args:
            title: Song title
            artist: Song artist
            hashes: List of (hash, anchor_time) tuples
            duration: Length of the reference audio in seconds

        Returns:
            song_id: Integer ID assigned by the database
        """
        fingerprint_json = json.dumps(hashes_to_pairs(hashes))

        with closing(self._connect()) as conn, conn:
            cursor = conn.execute(
                "INSERT INTO songs (title, artist, fingerprint_data, num_hashes, duration) "
                "VALUES (?, ?, ?, ?, ?)",
                (title, artist, fingerprint_json, len(hashes), float(duration)),
            )
            song_id = cursor.lastrowid

        logger.info(f"✓ Stored song #{song_id}: {title} - {artist} ({len(hashes)} hashes)")
        return song_id

    def get_song(self, song_id):
        """Get metadata for a song by ID, or None"""
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT id, title, artist, num_hashes, duration, created_at "
                "FROM songs WHERE id = ?",
                (song_id,),
            ).fetchone()
        return _song_info(row) if row else None

    def get_all_songs(self):
        """Get list of all songs in the catalog, newest first"""
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT id, title, artist, num_hashes, duration, created_at "
                "FROM songs ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [_song_info(row) for row in rows]

    def iter_fingerprints(self):
        """
        Yield (song_id, hashes) for every song, oldest first.

        Raises:
            IndexCorruption: a stored fingerprint cannot be parsed
        """
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT id, fingerprint_data FROM songs ORDER BY id"
            ).fetchall()

        for song_id, fingerprint_data in rows:
            try:
                hashes = hashes_from_pairs(json.loads(fingerprint_data))
            except (ValueError, TypeError) as e:
                raise IndexCorruption(
                    f"Song #{song_id} has an unreadable fingerprint: {e}"
                ) from e
            yield song_id, hashes

    def delete_song(self, song_id):
        """Delete a song. Returns True if a row was removed."""
        with closing(self._connect()) as conn, conn:
            cursor = conn.execute("DELETE FROM songs WHERE id = ?", (song_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"✓ Deleted song #{song_id}")
        return deleted

    def count(self):
        with closing(self._connect()) as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM songs").fetchone()
        return n


def _song_info(row):
    song_id, title, artist, num_hashes, duration, created_at = row
    return {
        "song_id": song_id,
        "title": title,
        "artist": artist,
        "num_hashes": num_hashes,
        "duration": duration,
        "created_at": created_at,
    }
