import numpy as np

from vocalcore_dsp.analysis.track_smoothing import smooth_pitch_track
from vocalcore_dsp.analysis.yin_track import detect_pitch
from vocalcore_dsp.correction.epochs import find_epoch_marks, frame_periods, peak_abs_index
from vocalcore_dsp.types.dataclasses import PitchFrame

SR, HOP = 10000, 256


def _pulse_train(n=4096, period=100, offset=50):
    x = np.zeros(n, dtype=np.float32)
    x[offset::period] = 1.0
    return x


def _frames(freqs):
    return [
        PitchFrame.from_frequency(i * HOP / SR, f, 0.9 if f > 0 else 0.0, f > 0)
        for i, f in enumerate(freqs)
    ]


def test_marks_follow_pulses():
    x = _pulse_train()
    marks = find_epoch_marks(x, _frames([100.0] * 16), SR, HOP)
    assert np.array_equal(marks, np.arange(50, 4096, 100))


def test_marks_track_jittered_pulses():
    x = np.zeros(4096, dtype=np.float32)
    pulses = [50 + 100 * k + (7 if k % 2 else -6) for k in range(40)]
    x[pulses] = 1.0
    marks = find_epoch_marks(x, _frames([100.0] * 16), SR, HOP)
    assert list(marks[: len(pulses)]) == pulses


def test_unvoiced_span_has_no_marks():
    x = _pulse_train()
    freqs = [100.0] * 4 + [0.0] * 4 + [100.0] * 8
    marks = find_epoch_marks(x, _frames(freqs), SR, HOP)
    assert not np.any((marks >= 4 * HOP) & (marks < 8 * HOP))
    # reprise ancrée sur la première impulsion du segment voisé suivant
    assert 2050 in marks
    assert np.all(np.diff(marks) > 0)


def test_no_voiced_frames_no_marks():
    marks = find_epoch_marks(_pulse_train(), _frames([0.0] * 16), SR, HOP)
    assert marks.size == 0
    assert find_epoch_marks(np.zeros(0, dtype=np.float32), [], SR, HOP).size == 0


def test_marks_on_real_track_are_strictly_increasing():
    sr = 44100
    t = np.arange(sr // 2) / sr
    rng = np.random.default_rng(1)
    y = (0.5 * np.sin(2 * np.pi * 196.0 * t) + 0.001 * rng.standard_normal(t.size)).astype(np.float32)
    frames = smooth_pitch_track(detect_pitch(y, sr))
    marks = find_epoch_marks(y, frames, sr, 256)
    assert marks.size > 2
    assert np.all(np.diff(marks) > 0)
    assert marks[-1] < y.size
    # espacement ≈ une période (225 échantillons à 196 Hz)
    assert abs(np.median(np.diff(marks)) - sr / 196.0) < 3


def test_helpers():
    x = np.array([0.1, -0.9, 0.5, 0.8], dtype=np.float32)
    assert peak_abs_index(x, 0, 4, 0) == 1
    assert peak_abs_index(x, 2, 4, 0) == 3
    assert peak_abs_index(x, 3, 3, 2) == 2
    periods = frame_periods(_frames([100.0, 0.0, 250.0]), SR)
    assert list(periods) == [100, 0, 40]
