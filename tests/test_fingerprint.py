import numpy as np
import pytest
from conftest import HOP, SAMPLE_RATE, synth_song

from audiomatch.fingerprint import (
    HashEntry,
    analyze_hash_distribution,
    check_hash_params,
    create_constellation_map,
    create_hash,
    fingerprint_audio,
    generate_hashes,
    hashes_from_pairs,
    hashes_to_pairs,
    split_hash,
)
from audiomatch.peaks import Peak


def test_create_hash_layout():
    """Hashing is deterministic and packs [f1:10][f2:10][dt:8]."""
    h = create_hash(3, 5, 7)
    assert h == create_hash(3, 5, 7)
    assert h == (3 << 18) | (5 << 8) | 7
    assert split_hash(h) == (3, 5, 7)


def test_create_hash_is_lossless():
    assert create_hash(1, 2, 3) != create_hash(2, 1, 3)
    assert split_hash(create_hash(1023, 1023, 255)) == (1023, 1023, 255)
    assert create_hash(1023, 1023, 255) < 1 << 28


@pytest.mark.parametrize("fields", [(1024, 0, 1), (0, -1, 1), (0, 0, 256)])
def test_create_hash_rejects_out_of_range_fields(fields):
    with pytest.raises(ValueError):
        create_hash(*fields)


def test_generate_hashes_pairs_only_later_frames():
    peaks = [Peak(0, 10, 1.0), Peak(0, 20, 1.0), Peak(1, 30, 1.0), Peak(2, 40, 1.0)]

    hashes = generate_hashes(peaks)

    pairs = [(t, split_hash(h)) for h, t in hashes]
    assert pairs == [
        (0, (10, 30, 1)),
        (0, (10, 40, 2)),
        (0, (20, 30, 1)),
        (0, (20, 40, 2)),
        (1, (30, 40, 1)),
    ]


def test_generate_hashes_accepts_unsorted_peaks():
    peaks = [Peak(2, 40, 1.0), Peak(0, 10, 1.0), Peak(1, 30, 1.0)]
    assert generate_hashes(peaks) == generate_hashes(sorted(peaks))


def test_generate_hashes_fan_out():
    peaks = [Peak(0, 100, 1.0)] + [Peak(t, 200, 1.0) for t in range(1, 11)]

    anchored_at_zero = [e for e in generate_hashes(peaks, fan_out=5) if e.anchor_time == 0]
    assert [split_hash(e.hash)[2] for e in anchored_at_zero] == [1, 2, 3, 4, 5]


def test_generate_hashes_pairing_window():
    assert generate_hashes([Peak(0, 10, 1.0), Peak(201, 10, 1.0)], pairing_window=200) == []
    assert len(generate_hashes([Peak(0, 10, 1.0), Peak(200, 10, 1.0)], pairing_window=200)) == 1


def test_pairing_window_must_fit_delta_bits():
    with pytest.raises(ValueError):
        generate_hashes([], pairing_window=256)


def test_generate_hashes_no_peaks():
    assert generate_hashes([]) == []


def test_fingerprint_audio_is_deterministic(song):
    hashes, metadata = fingerprint_audio(song, SAMPLE_RATE)

    assert hashes
    assert all(isinstance(e, HashEntry) for e in hashes)
    assert fingerprint_audio(song, SAMPLE_RATE)[0] == hashes
    assert metadata["num_hashes"] == len(hashes)
    assert metadata["num_samples"] == len(song)
    assert metadata["duration"] == pytest.approx(len(song) / SAMPLE_RATE)


def test_fingerprint_shifts_with_leading_silence(song):
    """Padding by whole hops shifts every anchor and keeps every hash."""
    k = 7
    # One silent hop first so the frame straddling the pad is silent too
    base = np.concatenate([np.zeros(HOP), song])
    padded = np.concatenate([np.zeros(k * HOP), base])

    original, _ = fingerprint_audio(base, SAMPLE_RATE)
    shifted, _ = fingerprint_audio(padded, SAMPLE_RATE)

    assert shifted == [HashEntry(h, t + k) for h, t in original]


def test_short_buffer_has_no_hashes():
    hashes, metadata = fingerprint_audio(synth_song(5, duration=0.05, note_length=0.05), SAMPLE_RATE)
    assert metadata["num_frames"] == 1
    assert hashes == []


def test_constellation_map_honours_parameters(song):
    peaks, spec = create_constellation_map(song, SAMPLE_RATE, window_length=512, hop_length=256)
    assert spec.n_bins == 257
    assert max(p.freq_bin for p in peaks) < 257


def test_analyze_hash_distribution():
    hashes = [HashEntry(1, 0), HashEntry(1, 5), HashEntry(2, 0), HashEntry(3, 1)]
    stats = analyze_hash_distribution(hashes)
    assert stats["total_hashes"] == 4
    assert stats["unique_hashes"] == 3
    assert stats["repeated_hashes"] == 1
    assert stats["max_repeat"] == 2
    assert analyze_hash_distribution([])["uniqueness"] == 0.0


def test_pairs_serialization(song):
    hashes, _ = fingerprint_audio(song, SAMPLE_RATE)
    pairs = hashes_to_pairs(hashes)
    assert all(isinstance(h, int) and isinstance(t, int) for h, t in pairs)
    assert hashes_from_pairs(pairs) == hashes


def test_window_length_must_fit_frequency_bits():
    """A 2048-sample window has bin 1024, one past the 10-bit field."""
    check_hash_params(window_length=1024)
    with pytest.raises(ValueError):
        check_hash_params(window_length=2048)


def test_oversized_window_fails_even_without_peaks():
    with pytest.raises(ValueError):
        fingerprint_audio(np.zeros(SAMPLE_RATE), SAMPLE_RATE, window_length=2048, hop_length=1024)
