import pytest

from vocalcore_dsp.analysis.track_smoothing import smooth_pitch_track
from vocalcore_dsp.types.dataclasses import PitchFrame, PitchTrack


def _track(freqs, hop=256, sr=44100):
    frames = [
        PitchFrame.from_frequency(i * hop / sr, f, 0.9 if f > 0 else 0.0, f > 0)
        for i, f in enumerate(freqs)
    ]
    return PitchTrack(frames=frames, sample_rate=sr, hop_size=hop, median_pitch=0.0)


def test_octave_up_jump_is_halved():
    track = _track([220.0] * 4 + [440.0] + [220.0] * 4)
    out = smooth_pitch_track(track)
    assert out[4].frequency == pytest.approx(220.0)
    assert out[4].note_name == "A3"
    assert out[4].midi_note == 57
    assert all(f.frequency == pytest.approx(220.0) for f in out)


def test_octave_down_jump_is_doubled():
    track = _track([330.0] * 4 + [165.0] + [330.0] * 4)
    out = smooth_pitch_track(track)
    assert out[4].frequency == pytest.approx(330.0)


def test_input_track_is_not_modified():
    track = _track([220.0] * 4 + [440.0] + [220.0] * 4)
    before = list(track.frames)
    smooth_pitch_track(track)
    assert track.frames == before
    assert track.frames[4].frequency == 440.0


def test_small_deviation_is_kept():
    track = _track([220.0, 221.0, 225.0, 219.0, 220.0])
    out = smooth_pitch_track(track)
    assert [f.frequency for f in out] == [220.0, 221.0, 225.0, 219.0, 220.0]


def test_fewer_than_three_voiced_neighbors_unchanged():
    track = _track([220.0, 440.0, 0.0, 0.0, 0.0, 0.0])
    out = smooth_pitch_track(track)
    assert out[1].frequency == 440.0
    assert out[0].frequency == 220.0


def test_unvoiced_frames_pass_through():
    track = _track([0.0, 220.0, 220.0, 0.0, 220.0])
    out = smooth_pitch_track(track)
    assert out[0] == track.frames[0]
    assert out[3] == track.frames[3]
    assert not out[3].voiced


def test_length_preserved_and_empty_track():
    assert smooth_pitch_track(_track([])) == []
    track = _track([100.0] * 7)
    assert len(smooth_pitch_track(track, median_window_size=3)) == 7


@pytest.mark.parametrize("size", [0, 4, -3])
def test_invalid_window_size(size):
    with pytest.raises(ValueError):
        smooth_pitch_track(_track([220.0] * 5), median_window_size=size)
