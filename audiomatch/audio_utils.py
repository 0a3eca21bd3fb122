import io
import logging
from math import gcd

import numpy as np
from scipy import signal
from scipy.io import wavfile

from .config import AudioConfig
from .errors import InvalidAudio, UnsupportedRate
from .logging_config import setup_logger

logger = setup_logger(__name__, level=logging.INFO)


def load_audio(filepath):
    """
    Load an audio file from disk as mono at its native sample rate.

    Resampling is left to resample() so files and uploads go through
    the same anti-aliasing path.

    Args:
        filepath: Path to audio file (wav, mp3, flac, ...)

    Returns:
        audio: numpy array of audio samples
        sr: sample rate
    """
    import librosa

    try:
        audio, sr = librosa.load(filepath, sr=None, mono=True)
    except Exception as e:
        # soundfile/audioread raise their own error types per backend
        raise InvalidAudio(f"Could not load {filepath}: {e}") from e

    logger.info(f"✓ Loaded with librosa: {filepath}")
    logger.debug(f"  Duration: {len(audio) / sr:.2f} seconds, sample rate: {sr} Hz")

    return audio, sr


def decode_wav(data):
    """
    Decode WAV bytes (e.g. an HTTP upload) into float samples.

    Args:
        data: Raw bytes of a RIFF/WAVE file

    Returns:
        samples: numpy array, shape (n,) or (n, channels), roughly in [-1, 1]
        sr: sample rate
        channels: channel count
    """
    try:
        sr, audio = wavfile.read(io.BytesIO(data))
    except (ValueError, EOFError) as e:
        raise InvalidAudio(f"Could not decode WAV data: {e}") from e

    # Convert to float
    if audio.dtype == np.uint8:
        audio = (audio.astype(np.float64) - 128.0) / 128.0
    elif np.issubdtype(audio.dtype, np.integer):
        audio = audio.astype(np.float64) / float(np.iinfo(audio.dtype).max + 1)
    else:
        audio = audio.astype(np.float64)

    channels = 1 if audio.ndim == 1 else audio.shape[1]
    return audio, sr, channels


def to_mono(samples, channels=None):
    """
    Downmix to mono by averaging channels.

    Accepts either a 2-D (n, channels) array or a 1-D interleaved buffer
    together with its channel count.
    """
    samples = np.asarray(samples)

    if samples.ndim == 2:
        return samples.mean(axis=1)

    if channels is None or channels == 1:
        return samples

    if channels < 1 or samples.size % channels:
        raise InvalidAudio(
            f"{samples.size} interleaved samples do not split into {channels} channels"
        )
    return samples.reshape(-1, channels).mean(axis=1)


def validate_samples(samples):
    """Return samples as a 1-D float64 array, or raise InvalidAudio."""
    audio = np.asarray(samples, dtype=np.float64)

    if audio.ndim != 1:
        raise InvalidAudio(f"Expected mono samples, got shape {audio.shape}")
    if audio.size == 0:
        raise InvalidAudio("Sample buffer is empty")
    if not np.all(np.isfinite(audio)):
        raise InvalidAudio("Sample buffer contains NaN or infinite values")

    return audio


def normalize(samples):
    """Scale to a peak amplitude of 1.0. Silence is returned unchanged."""
    peak = np.max(np.abs(samples))
    if peak == 0:
        return samples
    return samples / peak


def resample(samples, sample_rate, target_rate=AudioConfig.SAMPLE_RATE):
    """
    Resample mono audio down to the fingerprinting rate.

    resample_poly applies a Kaiser-windowed low-pass FIR before
    decimating, so content above the target Nyquist does not alias.

    Args:
        samples: 1-D sample buffer
        sample_rate: Rate of the input in Hz
        target_rate: Output rate in Hz

    Returns:
        audio: float64 numpy array at target_rate
    """
    if sample_rate <= 0 or sample_rate < target_rate:
        raise UnsupportedRate(sample_rate, target_rate)

    audio = validate_samples(samples)

    if sample_rate == target_rate:
        return audio.copy()

    divisor = gcd(int(sample_rate), int(target_rate))
    up = int(target_rate) // divisor
    down = int(sample_rate) // divisor

    resampled = signal.resample_poly(audio, up, down)
    logger.debug(
        f"Resampled {len(audio)} samples @ {sample_rate} Hz -> "
        f"{len(resampled)} samples @ {target_rate} Hz (up={up}, down={down})"
    )
    return resampled
