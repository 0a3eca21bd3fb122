"""
Short-time magnitude spectra of resampled audio.

Frames are laid out time-major: ``magnitudes[t]`` is the spectrum of the
window starting at sample ``t * hop_length``. The last window is zero-padded
when the buffer does not fill it, so every sample lands in some frame.
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy import signal

from .config import AudioConfig
from .logging_config import setup_logger

logger = setup_logger(__name__, level=logging.INFO)


@dataclass
class Spectrogram:
    magnitudes: np.ndarray  # (n_frames, window_length // 2 + 1)
    sample_rate: int
    window_length: int
    hop_length: int

    @property
    def n_frames(self):
        return self.magnitudes.shape[0]

    @property
    def n_bins(self):
        return self.magnitudes.shape[1]

    @property
    def frequencies(self):
        """Centre frequency of each bin in Hz (bin i -> i * sr / W)."""
        return np.arange(self.n_bins) * self.sample_rate / self.window_length

    @property
    def times(self):
        """Start time of each frame in seconds."""
        return np.arange(self.n_frames) * self.hop_length / self.sample_rate


def frame_count(num_samples, window_length, hop_length):
    """Number of frames needed to cover num_samples, padding the tail."""
    if num_samples <= window_length:
        return 1
    return 1 + -(-(num_samples - window_length) // hop_length)


def compute_spectrogram(
    samples,
    sample_rate=AudioConfig.SAMPLE_RATE,
    window_length=AudioConfig.WINDOW_LENGTH,
    hop_length=AudioConfig.HOP_LENGTH,
):
    """
    Generate a magnitude spectrogram with a Hann window.

    Args:
        samples: 1-D audio at sample_rate
        sample_rate: Sample rate in Hz (only used for bin/frame units)
        window_length: FFT window size in samples
        hop_length: Samples between consecutive windows

    Returns:
        Spectrogram with window_length // 2 + 1 bins per frame
    """
    if window_length <= 0 or hop_length <= 0:
        raise ValueError("window_length and hop_length must be positive")
    if hop_length > window_length:
        raise ValueError(
            f"hop_length ({hop_length}) larger than window_length ({window_length}) "
            f"would skip samples"
        )

    audio = np.asarray(samples, dtype=np.float64)
    n_frames = frame_count(len(audio), window_length, hop_length)

    padded_length = (n_frames - 1) * hop_length + window_length
    padded = np.zeros(padded_length, dtype=np.float64)
    padded[: len(audio)] = audio

    frames = np.lib.stride_tricks.sliding_window_view(padded, window_length)[::hop_length]
    window = signal.get_window("hann", window_length)

    magnitudes = np.abs(np.fft.rfft(frames * window, axis=1))

    logger.debug(
        f"Spectrogram: {magnitudes.shape[0]} frames x {magnitudes.shape[1]} bins "
        f"({sample_rate / window_length:.2f} Hz/bin)"
    )

    return Spectrogram(
        magnitudes=magnitudes,
        sample_rate=sample_rate,
        window_length=window_length,
        hop_length=hop_length,
    )
