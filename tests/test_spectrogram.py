import numpy as np
import pytest

from audiomatch.spectrogram import compute_spectrogram, frame_count


@pytest.mark.parametrize(
    "num_samples, expected",
    [(1, 1), (100, 1), (1024, 1), (1025, 2), (1536, 2), (2048, 3), (5000, 9)],
)
def test_frame_count(num_samples, expected):
    assert frame_count(num_samples, 1024, 512) == expected


def test_spectrogram_shape_and_units():
    spec = compute_spectrogram(np.zeros(5000))
    assert spec.magnitudes.shape == (9, 513)
    assert spec.n_frames == 9
    assert spec.n_bins == 513
    assert spec.times[1] == pytest.approx(512 / 11025)
    assert spec.frequencies[1] == pytest.approx(11025 / 1024)


def test_sine_lands_in_its_bin():
    """A full-scale sine centred on bin 100 peaks there at ~W/4."""
    t = np.arange(4096) / 11025
    tone = np.sin(2 * np.pi * (100 * 11025 / 1024) * t)

    spec = compute_spectrogram(tone)
    assert np.all(np.argmax(spec.magnitudes, axis=1)[:-1] == 100)
    assert spec.magnitudes[0, 100] == pytest.approx(256, rel=1e-3)


def test_magnitudes_are_non_negative():
    noise = np.random.default_rng(0).normal(size=3000)
    assert np.all(compute_spectrogram(noise).magnitudes >= 0)


def test_tail_is_zero_padded():
    """Samples past the last full window still show up in a final frame."""
    audio = np.zeros(1024 + 100)
    audio[-50:] = 1.0

    spec = compute_spectrogram(audio)
    assert spec.n_frames == 2
    assert spec.magnitudes[0].sum() == 0
    assert spec.magnitudes[1].sum() > 0


def test_short_buffer_gives_one_frame():
    spec = compute_spectrogram(np.ones(10))
    assert spec.n_frames == 1


@pytest.mark.parametrize("window_length, hop_length", [(0, 512), (1024, 0), (512, 1024)])
def test_invalid_framing_rejected(window_length, hop_length):
    with pytest.raises(ValueError):
        compute_spectrogram(np.ones(4096), 11025, window_length, hop_length)
