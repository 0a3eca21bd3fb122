import logging
from collections import defaultdict
from typing import NamedTuple

from .audio_utils import normalize, resample, validate_samples
from .config import AudioConfig, HashConfig, PeakConfig
from .logging_config import setup_logger
from .peaks import find_peaks
from .spectrogram import compute_spectrogram

# setting up logger
logger = setup_logger(__name__, level=logging.INFO)


class HashEntry(NamedTuple):
    hash: int
    anchor_time: int  # frame index of the anchor peak


def create_hash(
    freq1,
    freq2,
    delta_time,
    freq_bits=HashConfig.FREQ_BITS,
    delta_bits=HashConfig.DELTA_BITS,
):
    """
    Pack (anchor bin, target bin, frame delta) into one integer.

    Layout (MSB -> LSB), 28 bits with the defaults:
        [10 bits freq1][10 bits freq2][8 bits delta_time]

    The packing is lossless for in-range fields, so two different tuples
    never share a code. Out-of-range fields are rejected rather than masked.

    Args:
        freq1: Anchor frequency bin
        freq2: Target frequency bin
        delta_time: Time difference in frames

    Returns:
        hash_value: Packed integer
    """
    freq_limit = 1 << freq_bits
    delta_limit = 1 << delta_bits

    if not 0 <= freq1 < freq_limit or not 0 <= freq2 < freq_limit:
        raise ValueError(
            f"Frequency bins ({freq1}, {freq2}) do not fit in {freq_bits} bits"
        )
    if not 0 <= delta_time < delta_limit:
        raise ValueError(f"Time delta {delta_time} does not fit in {delta_bits} bits")

    return (
        (int(freq1) << (freq_bits + delta_bits))
        | (int(freq2) << delta_bits)
        | int(delta_time)
    )


def split_hash(hash_value, freq_bits=HashConfig.FREQ_BITS, delta_bits=HashConfig.DELTA_BITS):
    """Inverse of create_hash: returns (freq1, freq2, delta_time)."""
    delta_time = hash_value & ((1 << delta_bits) - 1)
    freq2 = (hash_value >> delta_bits) & ((1 << freq_bits) - 1)
    freq1 = hash_value >> (freq_bits + delta_bits)
    return freq1, freq2, delta_time


def generate_hashes(
    peaks,
    fan_out=HashConfig.FAN_OUT,
    pairing_window=HashConfig.PAIRING_WINDOW,
):
    """
    Generate combinatorial hashes from constellation peaks.

    Each peak is an anchor paired with the first fan_out peaks that sit in
    strictly later frames, no more than pairing_window frames ahead. Only
    the relative delta and the two bins enter the hash, which is what makes
    the fingerprint independent of where the pair occurs in the clip.

    Args:
        peaks: List of Peak(time, freq_bin, magnitude)
        fan_out: Max number of targets per anchor
        pairing_window: Max frame distance between anchor and target

    Returns:
        hashes: List of HashEntry(hash, anchor_time) in anchor order
    """
    if pairing_window >= 1 << HashConfig.DELTA_BITS:
        raise ValueError(
            f"pairing_window {pairing_window} does not fit in "
            f"{HashConfig.DELTA_BITS} delta bits"
        )

    # Sort peaks by time (required for target zone logic)
    peaks_sorted = sorted(peaks, key=lambda p: (p[0], p[1]))
    n_peaks = len(peaks_sorted)

    hashes = []
    first_later = 0

    for i, (anchor_t, anchor_f, _) in enumerate(peaks_sorted):
        # Skip peaks sharing the anchor's frame
        j = max(first_later, i + 1)
        while j < n_peaks and peaks_sorted[j][0] <= anchor_t:
            j += 1
        first_later = j

        for target_t, target_f, _ in peaks_sorted[j : j + fan_out]:
            delta_t = target_t - anchor_t
            if delta_t > pairing_window:
                break  # Too far (and all subsequent will be too far)
            hashes.append(HashEntry(create_hash(anchor_f, target_f, delta_t), anchor_t))

    logger.debug(
        f"Generated {len(hashes)} hashes from {n_peaks} peaks "
        f"({len(hashes) / max(1, n_peaks):.1f} per peak, fan-out {fan_out})"
    )

    return hashes


def analyze_hash_distribution(hashes):
    """
    Summarize how unique a fingerprint's hashes are.

    Args:
        hashes: List of (hash, anchor_time) tuples

    Returns:
        stats: Dict with totals, uniqueness and collision counts
    """
    hash_counts = defaultdict(int)
    for hash_val, _ in hashes:
        hash_counts[hash_val] += 1

    total_hashes = len(hashes)
    unique_hashes = len(hash_counts)
    duplicates = {h: c for h, c in hash_counts.items() if c > 1}

    stats = {
        "total_hashes": total_hashes,
        "unique_hashes": unique_hashes,
        "uniqueness": unique_hashes / total_hashes if total_hashes else 0.0,
        "repeated_hashes": len(duplicates),
        "max_repeat": max(duplicates.values()) if duplicates else 1 if hashes else 0,
    }

    logger.debug(
        f"Hash distribution: {total_hashes} total, {unique_hashes} unique "
        f"({stats['uniqueness'] * 100:.1f}%), {len(duplicates)} repeated"
    )

    return stats


def check_hash_params(
    window_length=AudioConfig.WINDOW_LENGTH,
    pairing_window=HashConfig.PAIRING_WINDOW,
):
    """
    Reject framing that the hash layout cannot encode.

    Bins run up to window_length // 2 and must fit FREQ_BITS; frame deltas
    run up to pairing_window and must fit DELTA_BITS.

    Raises:
        ValueError: either field would overflow its bits
    """
    if window_length // 2 >= 1 << HashConfig.FREQ_BITS:
        raise ValueError(
            f"window_length {window_length} gives bins up to {window_length // 2}, "
            f"which do not fit in {HashConfig.FREQ_BITS} frequency bits"
        )
    if pairing_window >= 1 << HashConfig.DELTA_BITS:
        raise ValueError(
            f"pairing_window {pairing_window} does not fit in "
            f"{HashConfig.DELTA_BITS} delta bits"
        )


def create_constellation_map(
    samples,
    sample_rate,
    target_rate=AudioConfig.SAMPLE_RATE,
    window_length=AudioConfig.WINDOW_LENGTH,
    hop_length=AudioConfig.HOP_LENGTH,
    num_bands=PeakConfig.NUM_BANDS,
    floor_decay=PeakConfig.FLOOR_DECAY,
    floor_ratio=PeakConfig.FLOOR_RATIO,
    min_magnitude=PeakConfig.MIN_MAGNITUDE,
):
    """
    Resample -> Spectrogram -> Peaks

    Returns:
        peaks: List of Peak tuples
        spec: Spectrogram the peaks were picked from
    """
    audio = validate_samples(samples)
    audio = normalize(resample(audio, sample_rate, target_rate))

    spec = compute_spectrogram(audio, target_rate, window_length, hop_length)
    peaks = find_peaks(spec, num_bands, floor_decay, floor_ratio, min_magnitude)

    return peaks, spec


def fingerprint_audio(
    samples,
    sample_rate,
    fan_out=HashConfig.FAN_OUT,
    pairing_window=HashConfig.PAIRING_WINDOW,
    **spectral_params,
):
    """
    Complete pipeline: constellation map + hashing.

    This is what you'd call to fingerprint a song for the catalog or a
    query clip. An empty result is not an error here; registration decides
    what to do with it.

    Args:
        samples: Mono PCM samples
        sample_rate: Rate of samples in Hz
        fan_out, pairing_window: Hashing parameters
        **spectral_params: Overrides for create_constellation_map()

    Returns:
        hashes: List of HashEntry(hash, anchor_time)
        metadata: Dict with additional info
    """
    check_hash_params(
        spectral_params.get("window_length", AudioConfig.WINDOW_LENGTH), pairing_window
    )
    peaks, spec = create_constellation_map(samples, sample_rate, **spectral_params)
    hashes = generate_hashes(peaks, fan_out=fan_out, pairing_window=pairing_window)

    duration = len(samples) / sample_rate
    metadata = {
        "num_samples": len(samples),
        "duration": duration,
        "num_frames": spec.n_frames,
        "num_peaks": len(peaks),
        "num_hashes": len(hashes),
    }

    logger.debug(
        f"Fingerprinted {duration:.2f}s: {metadata['num_frames']} frames, "
        f"{metadata['num_peaks']} peaks, {metadata['num_hashes']} hashes"
    )

    return hashes, metadata


def hashes_to_pairs(hashes):
    """Serialize a fingerprint as [[hash, anchor_time], ...] (JSON-friendly)."""
    return [[int(h), int(t)] for h, t in hashes]


def hashes_from_pairs(pairs):
    """Inverse of hashes_to_pairs()."""
    return [HashEntry(int(h), int(t)) for h, t in pairs]
