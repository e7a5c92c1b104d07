# vocalcore_dsp/correction/pitch_correction.py
"""
Moteur de correction de hauteur
===============================
Enchaîne : YIN → lissage → cibles → marques → TD-PSOLA → mélange wet/dry.

Paramètres (CorrectionParams) :
- retune_speed : 0–100 ms, vitesse de convergence vers la note (0 = robot)
- humanize     : 0–100 %, variation naturelle réinjectée
- tune_amount  : 0–100 %, mélange entre signal d'origine et signal corrigé
"""

from __future__ import annotations

from typing import Any, Mapping, Union

import numpy as np

from vocalcore_dsp.analysis.track_smoothing import smooth_pitch_track
from vocalcore_dsp.analysis.yin_track import track_pitch
from vocalcore_dsp.core.preprocess import prepare_signal
from vocalcore_dsp.correction.epochs import find_epoch_marks
from vocalcore_dsp.correction.psola import psola_shift
from vocalcore_dsp.correction.target_pitch import compute_target_pitches
from vocalcore_dsp.types.dataclasses import CorrectionAnalysis
from vocalcore_dsp.types.enums import CorrectionPreset
from vocalcore_dsp.types.schemas import CorrectionParams, SignalMeta

CORRECTION_HOP_SIZE = 256
CORRECTION_WINDOW_SIZE = 2048
CORRECTION_THRESHOLD = 0.15

ParamsLike = Union[CorrectionParams, Mapping[str, Any]]


def _log(debug: bool, msg: str):
    if debug:
        print(f"[CORRECT] {msg}")


def _as_params(params: ParamsLike) -> CorrectionParams:
    if isinstance(params, CorrectionParams):
        return params
    return CorrectionParams.model_validate(params)


def _analyze(
    y: np.ndarray,
    meta: SignalMeta,
    params: CorrectionParams,
    debug: bool = False,
) -> CorrectionAnalysis:
    """Chaîne d'analyse sur un buffer déjà conditionné par `prepare_signal`."""
    sr = meta.sample_rate
    track = track_pitch(
        y, sr,
        hop_size=CORRECTION_HOP_SIZE,
        window_size=CORRECTION_WINDOW_SIZE,
        threshold=CORRECTION_THRESHOLD,
    )
    smoothed = smooth_pitch_track(track)
    targets = compute_target_pitches(smoothed, sr, CORRECTION_HOP_SIZE, params)
    marks = find_epoch_marks(y, smoothed, sr, CORRECTION_HOP_SIZE)

    n_voiced = sum(1 for f in smoothed if f.voiced)
    _log(debug, f"{meta.duration:.2f}s @ {sr} Hz | frames={len(smoothed)} "
                f"voiced={n_voiced} median={track.median_pitch:.2f} Hz | marks={marks.size}")
    return CorrectionAnalysis(
        track=track,
        smoothed_frames=smoothed,
        target_frequencies=targets,
        epoch_marks=marks,
    )


def analyze_correction(
    signal: np.ndarray,
    sample_rate: int,
    params: ParamsLike,
    debug: bool = False,
) -> CorrectionAnalysis:
    """
    Étapes d'analyse sans resynthèse : piste brute, piste lissée, cibles
    et marques pitch-synchrones (pour affichage / diagnostic).
    """
    params = _as_params(params)
    y, meta = prepare_signal(signal, sample_rate)
    return _analyze(y, meta, params, debug=debug)


def correct_pitch(
    signal: np.ndarray,
    sample_rate: int,
    params: ParamsLike,
    debug: bool = False,
) -> np.ndarray:
    """
    Corrige la hauteur d'un signal mono et retourne un nouveau buffer float32.

    tune_amount ≤ 0 → copie inchangée, aucune détection effectuée.
    Sinon : out = corrigé·(tune/100) + original·(1 − tune/100).
    """
    params = _as_params(params)
    y, meta = prepare_signal(signal, sample_rate)

    if params.tune_amount <= 0:
        _log(debug, "tune_amount=0 → bypass")
        return y

    analysis = _analyze(y, meta, params, debug=debug)
    corrected = psola_shift(
        y,
        analysis.epoch_marks,
        analysis.smoothed_frames,
        analysis.target_frequencies,
        meta.sample_rate,
        CORRECTION_HOP_SIZE,
    )

    wet = params.wet
    dry = 1.0 - wet
    out = corrected.astype(np.float64) * wet + y.astype(np.float64) * dry
    _log(debug, f"retune={params.retune_speed:g}ms humanize={params.humanize:g}% "
                f"tune={params.tune_amount:g}%")
    return out.astype(np.float32)


def hard_tune(signal: np.ndarray, sample_rate: int, debug: bool = False) -> np.ndarray:
    """Quantification instantanée, 100 % wet, sans humanize (effet "robot")."""
    return correct_pitch(signal, sample_rate, CorrectionPreset.HARD_TUNE.params, debug=debug)


def apply_preset(
    signal: np.ndarray,
    sample_rate: int,
    preset: Union[CorrectionPreset, str],
    debug: bool = False,
) -> np.ndarray:
    """Applique un preset nommé (`CorrectionPreset` ou son nom, ex. "natural")."""
    if isinstance(preset, str):
        try:
            preset = CorrectionPreset[preset.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown preset '{preset}'") from None
    return correct_pitch(signal, sample_rate, preset.params, debug=debug)
