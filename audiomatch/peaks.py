import logging
from typing import NamedTuple

import numpy as np

from .config import PeakConfig
from .logging_config import setup_logger

logger = setup_logger(__name__, level=logging.INFO)


class Peak(NamedTuple):
    time: int  # frame index
    freq_bin: int
    magnitude: float


def band_edges(n_bins, num_bands=PeakConfig.NUM_BANDS):
    """
    Octave-spaced band edges over bins 1..n_bins-1 (DC is skipped).

    For 513 bins and 6 bands: [1, 16, 32, 64, 128, 256, 513], i.e. each band
    is twice as wide as the one below it and the lowest band takes the rest.

    Returns:
        edges: list of num_bands + 1 increasing bin indices
    """
    if num_bands < 1:
        raise ValueError("num_bands must be at least 1")

    edges = [1] + [n_bins >> k for k in range(num_bands - 1, -1, -1)]
    if any(lo >= hi for lo, hi in zip(edges, edges[1:])):
        raise ValueError(f"{n_bins} bins are too few for {num_bands} octave bands")

    return edges


def _select_band_peak(band, lo, floor, floor_decay, floor_ratio, min_magnitude):
    """
    Pick the strongest bin of one band in one frame.

    Args:
        band: magnitudes of the band's bins in this frame
        lo: absolute bin index of band[0]
        floor: this band's running noise floor before the frame

    Returns:
        (freq_bin, magnitude) or None, and the updated floor
    """
    # argmax returns the first maximum: ties go to the lowest bin
    local_idx = int(np.argmax(band))
    magnitude = float(band[local_idx])

    picked = None
    if magnitude > floor * floor_ratio and magnitude >= min_magnitude:
        picked = (lo + local_idx, magnitude)

    floor = floor_decay * floor + (1.0 - floor_decay) * magnitude
    return picked, floor


def find_peaks(
    spectrogram,
    num_bands=PeakConfig.NUM_BANDS,
    floor_decay=PeakConfig.FLOOR_DECAY,
    floor_ratio=PeakConfig.FLOOR_RATIO,
    min_magnitude=PeakConfig.MIN_MAGNITUDE,
):
    """
    Find the constellation map: at most one peak per band per frame.

    A band's strongest bin only counts when it rises floor_ratio times above
    that band's noise floor, an exponentially decaying average of the band's
    recent peak magnitudes. Steady tones and constant-energy noise pull the floor
    up to their own level and stop producing peaks; onsets and louder
    notes clear it.

    Args:
        spectrogram: Spectrogram (or a 2-D (n_frames, n_bins) array)
        num_bands: Number of octave bands
        floor_decay: Weight of the previous floor in the running average
        floor_ratio: How far above the floor a peak must be
        min_magnitude: Absolute magnitude a peak must reach

    Returns:
        peaks: List of Peak(time, freq_bin, magnitude), ordered by time then bin
    """
    magnitudes = getattr(spectrogram, "magnitudes", spectrogram)
    n_frames, n_bins = magnitudes.shape
    edges = band_edges(n_bins, num_bands)

    # Per-call accumulator, one floor per band
    floors = [0.0] * num_bands
    peaks = []

    for t in range(n_frames):
        frame = magnitudes[t]
        for b in range(num_bands):
            lo, hi = edges[b], edges[b + 1]
            picked, floors[b] = _select_band_peak(
                frame[lo:hi], lo, floors[b], floor_decay, floor_ratio, min_magnitude
            )
            if picked is not None:
                peaks.append(Peak(t, picked[0], picked[1]))

    logger.debug(
        f"Found {len(peaks)} peaks in {n_frames} frames "
        f"({len(peaks) / max(1, n_frames):.2f} per frame, {num_bands} bands)"
    )

    return peaks
