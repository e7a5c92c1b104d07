import math

import numpy as np
import pytest

from vocalcore_dsp.correction.target_pitch import (
    ConvergenceState,
    compute_target_pitches,
    converge,
    drift_offset,
    retune_alpha,
    vibrato_offset,
)
from vocalcore_dsp.types.dataclasses import PitchFrame
from vocalcore_dsp.types.schemas import CorrectionParams
from vocalcore_dsp.utils.note_utils import frequency_to_midi, midi_to_frequency

SR, HOP = 44100, 256


def _frames(freqs):
    return [
        PitchFrame.from_frequency(i * HOP / SR, f, 0.9 if f > 0 else 0.0, f > 0)
        for i, f in enumerate(freqs)
    ]


def test_unvoiced_frames_get_zero():
    params = CorrectionParams(retune_speed=0, humanize=0, tune_amount=100)
    targets = compute_target_pitches(_frames([0.0, 445.0, 0.0]), SR, HOP, params)
    assert targets[0] == 0.0 and targets[2] == 0.0
    assert targets[1] > 0


def test_instant_snap_to_nearest_semitone():
    params = CorrectionParams(retune_speed=0, humanize=0, tune_amount=100)
    targets = compute_target_pitches(_frames([445.0, 430.0, 452.0, 277.0]), SR, HOP, params)
    assert targets[0] == pytest.approx(440.0)
    assert targets[1] == pytest.approx(440.0)
    assert targets[2] == pytest.approx(440.0)
    assert targets[3] == pytest.approx(midi_to_frequency(61))


def test_retune_speed_converges_gradually():
    params = CorrectionParams(retune_speed=20, humanize=0, tune_amount=100)
    f_b4b = midi_to_frequency(70)
    targets = compute_target_pitches(_frames([440.0, f_b4b, f_b4b, f_b4b]), SR, HOP, params)
    alpha = 1 - math.exp(-(HOP / SR) / 0.020)
    assert targets[0] == pytest.approx(440.0)
    assert frequency_to_midi(targets[1]) == pytest.approx(69 + alpha)
    assert frequency_to_midi(targets[2]) == pytest.approx(69 + alpha + alpha * (1 - alpha))
    midis = [frequency_to_midi(t) for t in targets]
    assert midis == sorted(midis)
    assert midis[-1] < 70


def test_state_carries_over_unvoiced_gap():
    params = CorrectionParams(retune_speed=50, humanize=0, tune_amount=100)
    f_c5 = midi_to_frequency(72)
    targets = compute_target_pitches(_frames([440.0, 0.0, 0.0, f_c5]), SR, HOP, params)
    # la convergence reprend depuis 69, pas depuis 72
    assert 69.0 < frequency_to_midi(targets[3]) < 72.0


def test_retune_alpha():
    assert retune_alpha(0, SR, HOP) == 1.0
    a_fast, a_slow = retune_alpha(5, SR, HOP), retune_alpha(100, SR, HOP)
    assert 0 < a_slow < a_fast < 1


def test_converge_fold():
    s = converge(ConvergenceState(), 60.0, 0.5)
    assert s == ConvergenceState(corrected_midi=60.0, initialized=True)
    s = converge(s, 62.0, 0.5)
    assert s.corrected_midi == pytest.approx(61.0)


def test_humanize_offsets_are_pure_and_bounded():
    assert vibrato_offset(0.0, 1.0) == 0.0
    assert drift_offset(0, 1.0) == 0.0
    assert vibrato_offset(0.123, 0.0) == 0.0 and drift_offset(17, 0.0) == 0.0
    for i in range(500):
        t = i * HOP / SR
        assert abs(vibrato_offset(t, 1.0)) <= 0.15 + 1e-12
        assert abs(drift_offset(i, 1.0)) <= 0.30 + 1e-12
        assert vibrato_offset(t, 0.5) == vibrato_offset(t, 0.5)


def test_humanize_is_reproducible_and_bounded():
    params = CorrectionParams(retune_speed=0, humanize=100, tune_amount=100)
    frames = _frames([440.0] * 300)
    a = compute_target_pitches(frames, SR, HOP, params)
    b = compute_target_pitches(frames, SR, HOP, params)
    assert np.array_equal(a, b)
    midis = np.array([frequency_to_midi(t) for t in a])
    assert np.all(np.abs(midis - 69.0) <= 0.45 + 1e-9)
    assert np.std(midis) > 0.01


def test_empty_frames():
    params = CorrectionParams()
    assert compute_target_pitches([], SR, HOP, params).size == 0
