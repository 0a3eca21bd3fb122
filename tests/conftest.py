import io

import numpy as np
import pytest
from scipy.io import wavfile

from audiomatch.recognizer import SongRecognizer

SAMPLE_RATE = 11025
HOP = 512

# Hz per spectrogram bin at the fingerprinting rate
BIN_HZ = SAMPLE_RATE / 1024

# Octave bands of the peak picker, kept clear of bin 512 (Nyquist)
BAND_BINS = [(1, 16), (16, 32), (32, 64), (64, 128), (128, 256), (256, 500)]


def synth_song(seed, duration=8.0, sample_rate=SAMPLE_RATE, note_length=0.2):
    """
    Deterministic "song": a run of short notes, each one sine per octave band
    with random pitch, loudness and phase. Frequencies are in Hz, so the same
    seed gives the same tune at any sample rate.
    """
    rng = np.random.default_rng(seed)
    n_notes = int(round(duration / note_length))
    note_samples = int(round(note_length * sample_rate))
    t = np.arange(note_samples) / sample_rate

    notes = []
    for _ in range(n_notes):
        note = np.zeros(note_samples)
        for lo, hi in BAND_BINS:
            freq = rng.uniform(lo + 2, hi - 2) * BIN_HZ
            amp = rng.uniform(0.2, 1.0)
            phase = rng.uniform(0, 2 * np.pi)
            note += amp * np.sin(2 * np.pi * freq * t + phase)
        notes.append(note)

    # Six sines peak below 6.0, keep well inside int16 for WAV round trips
    return 0.1 * np.concatenate(notes)


def add_noise(samples, snr_db, seed=0):
    """Add white noise at the given signal-to-noise ratio."""
    rng = np.random.default_rng(seed)
    signal_power = np.mean(samples**2)
    noise_power = signal_power / (10 ** (snr_db / 10))
    return samples + rng.normal(0, np.sqrt(noise_power), len(samples))


def to_wav_bytes(samples, sample_rate=SAMPLE_RATE):
    buf = io.BytesIO()
    wavfile.write(buf, sample_rate, (np.asarray(samples) * 32767).astype(np.int16))
    return buf.getvalue()


@pytest.fixture
def song():
    return synth_song(seed=1)


@pytest.fixture
def recognizer():
    """Memory-only recognizer with three registered songs (ids 1, 2, 3)."""
    rec = SongRecognizer()
    for seed in (1, 2, 3):
        rec.register(synth_song(seed), SAMPLE_RATE, f"Song {seed}", "Synth")
    return rec


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "db" / "catalog.sqlite3"
