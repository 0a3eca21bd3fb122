import numpy as np
import pytest

from audiomatch.peaks import Peak, band_edges, find_peaks
from audiomatch.spectrogram import compute_spectrogram


def blank(n_frames=1, n_bins=513):
    return np.zeros((n_frames, n_bins))


def test_band_edges_are_octaves():
    assert band_edges(513, 6) == [1, 16, 32, 64, 128, 256, 513]


@pytest.mark.parametrize("n_bins, num_bands", [(8, 6), (513, 0)])
def test_band_edges_rejects_impossible_layouts(n_bins, num_bands):
    with pytest.raises(ValueError):
        band_edges(n_bins, num_bands)


def test_single_clear_peak():
    mags = blank()
    mags[0, 40] = 10.0

    assert find_peaks(mags) == [Peak(0, 40, 10.0)]


def test_one_peak_per_band_per_frame():
    mags = blank(n_frames=2)
    mags[:, 1:] = 0.5  # below the absolute gate everywhere
    for lo in (1, 16, 32, 64, 128, 256):
        mags[0, lo + 3] = 5.0
        mags[0, lo + 5] = 4.0

    peaks = find_peaks(mags)
    assert [p.freq_bin for p in peaks] == [4, 19, 35, 67, 131, 259]
    assert all(p.time == 0 for p in peaks)


def test_ties_go_to_lowest_bin():
    mags = blank()
    mags[0, 50] = 5.0
    mags[0, 40] = 5.0

    assert find_peaks(mags) == [Peak(0, 40, 5.0)]


def test_dc_bin_is_ignored():
    mags = blank()
    mags[0, 0] = 100.0

    assert find_peaks(mags) == []


def test_min_magnitude_gate():
    mags = blank()
    mags[0, 40] = 0.5

    assert find_peaks(mags) == []
    assert find_peaks(mags, min_magnitude=0.1) == [Peak(0, 40, 0.5)]


def test_steady_tone_fades_below_floor():
    """The floor catches up with a constant tone and it stops producing peaks."""
    mags = blank(n_frames=20)
    mags[:, 40] = 10.0

    peaks = find_peaks(mags)
    assert [p.time for p in peaks] == list(range(7))


def test_louder_onset_clears_the_floor():
    mags = blank(n_frames=21)
    mags[:, 40] = 10.0
    mags[20, 50] = 20.0

    peaks = find_peaks(mags)
    assert peaks[-1] == Peak(20, 50, 20.0)


def test_floor_is_per_call():
    mags = blank(n_frames=20)
    mags[:, 40] = 10.0

    assert find_peaks(mags) == find_peaks(mags)


def test_peaks_are_ordered_by_time_then_bin(song):
    peaks = find_peaks(compute_spectrogram(song))
    assert peaks
    assert peaks == sorted(peaks, key=lambda p: (p.time, p.freq_bin))


def test_silence_has_no_peaks():
    assert find_peaks(compute_spectrogram(np.zeros(11025))) == []
