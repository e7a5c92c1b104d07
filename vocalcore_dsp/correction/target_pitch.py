# vocalcore_dsp/correction/target_pitch.py
"""
Hauteur cible par trame
-----------------------
- quantification au demi-ton le plus proche (round(midi))
- convergence exponentielle (retune speed) : filtre IIR, donc séquentiel
- humanize : vibrato + dérive déterministes, fonctions pures de
  (temps, index de trame, quantité) → sortie reproductible
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from vocalcore_dsp.types.dataclasses import PitchFrame
from vocalcore_dsp.types.schemas import CorrectionParams
from vocalcore_dsp.utils.note_utils import frequency_to_midi, midi_to_frequency

VIBRATO_BASE_RATE_HZ = 4.5
VIBRATO_RATE_SPAN_HZ = 2.0      # 4.5 → 6.5 Hz
VIBRATO_MAX_CENTS = 15.0
DRIFT_MAX_CENTS = 30.0

TARGET_DEBUG = bool(int(os.getenv("VC_TARGET_DEBUG", "0")))
def _dbg(*a):
    if TARGET_DEBUG: print("[TARGET]", *a)


@dataclass(frozen=True)
class ConvergenceState:
    corrected_midi: float = 0.0
    initialized: bool = False


def retune_alpha(retune_speed_ms: float, sample_rate: int, hop_size: int) -> float:
    """Coefficient de lissage par trame ; 1.0 (accroche instantanée) si retune_speed = 0."""
    retune_time_sec = retune_speed_ms / 1000.0
    if retune_time_sec <= 0:
        return 1.0
    hop_duration = hop_size / sample_rate
    return 1.0 - math.exp(-hop_duration / retune_time_sec)


def converge(state: ConvergenceState, quantized_midi: float, alpha: float) -> ConvergenceState:
    """Un pas du filtre : corrected += alpha·(quantized − corrected)."""
    corrected = state.corrected_midi if state.initialized else quantized_midi
    corrected += alpha * (quantized_midi - corrected)
    return ConvergenceState(corrected_midi=corrected, initialized=True)


def vibrato_offset(time: float, humanize_amount: float) -> float:
    """Vibrato lent (MIDI) : sin(2π·rate·t)·depth, rate 4.5–6.5 Hz, depth ≤ 15 cents."""
    if humanize_amount <= 0:
        return 0.0
    rate = VIBRATO_BASE_RATE_HZ + humanize_amount * VIBRATO_RATE_SPAN_HZ
    depth_cents = humanize_amount * VIBRATO_MAX_CENTS
    return math.sin(2.0 * math.pi * rate * time) * depth_cents / 100.0


def drift_offset(frame_index: int, humanize_amount: float) -> float:
    """Dérive pseudo-aléatoire (MIDI) dérivée de l'index de trame, ≤ 30 cents à 100 %."""
    if humanize_amount <= 0:
        return 0.0
    max_cents = humanize_amount * DRIFT_MAX_CENTS
    return math.sin(frame_index * 0.1) * math.cos(frame_index * 0.037) * max_cents / 100.0


def compute_target_pitches(
    frames: Sequence[PitchFrame],
    sample_rate: int,
    hop_size: int,
    params: CorrectionParams,
) -> np.ndarray:
    """
    Une fréquence cible par trame (alignée 1:1 sur `frames`), 0 si non voisée.
    Les trames doivent être dans l'ordre temporel.
    """
    targets = np.zeros(len(frames), dtype=np.float64)
    alpha = retune_alpha(params.retune_speed, sample_rate, hop_size)
    h = params.humanize_amount
    state = ConvergenceState()

    for i, frame in enumerate(frames):
        if not frame.voiced or frame.frequency <= 0:
            continue  # non voisé : pas de correction

        quantized = float(round(frequency_to_midi(frame.frequency)))
        state = converge(state, quantized, alpha)

        midi = state.corrected_midi
        if h > 0:
            midi += vibrato_offset(frame.time, h) + drift_offset(i, h)
        targets[i] = midi_to_frequency(midi)

    _dbg(f"alpha={alpha:.4f} humanize={h:.2f} voiced={int(np.count_nonzero(targets))}/{len(frames)}")
    return targets
