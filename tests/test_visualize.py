from conftest import SAMPLE_RATE, synth_song

from audiomatch.fingerprint import create_constellation_map
from audiomatch.matcher import MatchResult
from audiomatch.visualize import visualize_constellation_map, visualize_match


def test_constellation_map_is_saved(tmp_path):
    peaks, spec = create_constellation_map(synth_song(1, duration=2.0), SAMPLE_RATE)
    path = tmp_path / "constellation.png"

    fig = visualize_constellation_map(spec, peaks, save_path=path, title="Song 1")

    assert path.exists()
    assert len(fig.axes) == 3  # two plots and the colorbar


def test_constellation_map_without_peaks():
    peaks, spec = create_constellation_map([0.0] * 4096, SAMPLE_RATE)
    fig = visualize_constellation_map(spec, peaks)
    assert fig.axes[1].get_legend() is None


def test_match_plot_is_saved(tmp_path):
    result = MatchResult(
        song_id=1,
        confidence=0.75,
        aligned_count=3,
        query_hash_count=4,
        offset=10,
        time_pairs=[(0, 10), (1, 11), (2, 12), (3, 40)],
    )
    path = tmp_path / "match.png"

    visualize_match(result, save_path=path, label="Song 1")

    assert path.exists()


def test_match_plot_without_hits():
    result = MatchResult(song_id=None, confidence=0.0, aligned_count=0, query_hash_count=0)
    fig = visualize_match(result)
    assert len(fig.axes) == 2
