import sqlite3

import pytest

from audiomatch.catalog import CatalogStore
from audiomatch.errors import IndexCorruption
from audiomatch.fingerprint import HashEntry


@pytest.fixture
def store(db_path):
    return CatalogStore(db_path).init()


def test_init_creates_database(db_path):
    CatalogStore(db_path).init()
    assert db_path.exists()


def test_add_and_get_song(store):
    hashes = [HashEntry(12345, 0), HashEntry(67890, 3)]

    song_id = store.add_song("Blue", "Band", hashes, duration=12.5)

    info = store.get_song(song_id)
    assert info["song_id"] == song_id
    assert info["title"] == "Blue"
    assert info["artist"] == "Band"
    assert info["num_hashes"] == 2
    assert info["duration"] == 12.5
    assert info["created_at"]


def test_get_missing_song(store):
    assert store.get_song(42) is None


def test_ids_are_never_reused(store):
    first = store.add_song("A", "X", [HashEntry(1, 0)])
    store.delete_song(first)
    second = store.add_song("B", "X", [HashEntry(1, 0)])
    assert second > first


def test_get_all_songs_newest_first(store):
    ids = [store.add_song(f"Song {i}", "X", [HashEntry(i, 0)]) for i in range(3)]
    assert [s["song_id"] for s in store.get_all_songs()] == ids[::-1]


def test_iter_fingerprints_round_trip(store):
    hashes = [HashEntry(12345, 0), HashEntry(67890, 3)]
    song_id = store.add_song("Blue", "Band", hashes)

    assert list(store.iter_fingerprints()) == [(song_id, hashes)]


def test_iter_fingerprints_rejects_unreadable_rows(store, db_path):
    store.add_song("Good", "X", [HashEntry(1, 0)])
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "INSERT INTO songs (title, artist, fingerprint_data, num_hashes, duration) "
            "VALUES ('Bad', 'X', 'not json', 0, 0)"
        )
    bad = store.count()

    with pytest.raises(IndexCorruption, match=f"Song #{bad} "):
        list(store.iter_fingerprints())


def test_delete_song(store):
    song_id = store.add_song("Blue", "Band", [HashEntry(1, 0)])

    assert store.delete_song(song_id) is True
    assert store.get_song(song_id) is None
    assert store.delete_song(song_id) is False
    assert store.count() == 0


def test_catalog_survives_reopen(db_path):
    song_id = CatalogStore(db_path).init().add_song("Blue", "Band", [HashEntry(1, 0)])

    reopened = CatalogStore(db_path).init()
    assert reopened.count() == 1
    assert reopened.get_song(song_id)["title"] == "Blue"
