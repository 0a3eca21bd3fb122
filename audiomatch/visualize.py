import logging

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from .logging_config import setup_logger
from .matcher import calculate_time_offsets, find_peak_offset

logger = setup_logger(__name__, level=logging.INFO)


def visualize_constellation_map(spectrogram, peaks, save_path=None, title=None):
    """
    Visualize the constellation map (peaks on spectrogram).
    This should look like a "star field".

    Args:
        spectrogram: Spectrogram the peaks were picked from
        peaks: List of Peak(time, freq_bin, magnitude)
        save_path: Optional path to save figure

    Returns:
        fig: The matplotlib figure
    """
    times = spectrogram.times
    freqs = spectrogram.frequencies
    spec_db = 20 * np.log10(spectrogram.magnitudes.T + 1e-10)

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(14, 8))

    # Plot 1: Full Spectrogram
    im = ax1.pcolormesh(times, freqs, spec_db, shading="auto", cmap="viridis")
    ax1.set_ylabel("Frequency (Hz)")
    ax1.set_xlabel("Time (s)")
    ax1.set_title(title or "Spectrogram (Log Scale)")
    fig.colorbar(im, ax=ax1, label="Magnitude (dB)")

    # Plot 2: Constellation Map with the spectrogram faintly in background
    ax2.pcolormesh(times, freqs, spec_db, shading="auto", cmap="gray", alpha=0.3)

    if peaks:
        peak_times = [times[p.time] for p in peaks]
        peak_freqs = [freqs[p.freq_bin] for p in peaks]
        ax2.scatter(
            peak_times, peak_freqs, c="red", s=5, alpha=0.8, label=f"{len(peaks)} peaks"
        )
        ax2.legend()

    ax2.set_ylabel("Frequency (Hz)")
    ax2.set_xlabel("Time (s)")
    ax2.set_title('Constellation Map ("Star Field")')

    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info(f"✓ Visualization saved to: {save_path}")
        plt.close(fig)

    return fig


def visualize_match(match_result, save_path=None, label=None):
    """
    Visualize a match using scatterplot and histogram.

    Creates two plots:
    1. Scatterplot: db_time vs sample_time (should show diagonal line)
    2. Histogram: distribution of time offsets (should show clear peak)

    Args:
        match_result: MatchResult whose time_pairs belong to the best candidate
        save_path: Optional path to save figure
        label: Optional song label for the title

    Returns:
        fig: The matplotlib figure
    """
    time_pairs = match_result.time_pairs
    label = label or f"song {match_result.song_id}"

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 5))

    # Plot 1: Scatterplot (Database Time vs Sample Time)
    sample_times = [s_time for s_time, _ in time_pairs]
    db_times = [db_time for _, db_time in time_pairs]

    ax1.scatter(sample_times, db_times, alpha=0.6, s=30, c="steelblue")
    ax1.set_xlabel("Query anchor (frame)")
    ax1.set_ylabel("Catalog anchor (frame)")
    ax1.set_title(f"Hash hits: {label}")
    ax1.grid(True, alpha=0.3)

    # Plot 2: Offset histogram
    offsets = calculate_time_offsets(time_pairs)
    peak_offset, peak_count, histogram = find_peak_offset(offsets)

    if histogram:
        bins = sorted(histogram)
        ax2.bar(bins, [histogram[b] for b in bins], width=1.0, color="steelblue")
        ax2.axvline(
            peak_offset,
            color="red",
            linestyle="--",
            label=f"Peak: offset {peak_offset} ({peak_count} hits)",
        )
        ax2.legend()

    ax2.set_xlabel("Offset (catalog - query, frames)")
    ax2.set_ylabel("Hits")
    ax2.set_title(f"Offset histogram (confidence {match_result.confidence:.2f})")
    ax2.grid(True, alpha=0.3)

    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info(f"✓ Visualization saved to: {save_path}")
        plt.close(fig)

    return fig
