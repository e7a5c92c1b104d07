# vocalcore_dsp/correction/psola.py
"""
TD-PSOLA (Time-Domain Pitch-Synchronous Overlap-Add)
----------------------------------------------------
Pour chaque marque de sortie (espacée de la période *cible*), on extrait
un grain fenêtré (Hann, 2 périodes d'origine) centré sur la marque
d'analyse la plus proche, puis on le superpose-additionne. La sortie est
normalisée par l'enveloppe cumulée des fenêtres.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Sequence

import numpy as np
from scipy.signal import get_window

from vocalcore_dsp.types.dataclasses import PitchFrame

PSOLA_ENVELOPE_EPS = float(os.getenv("VC_ENVELOPE_EPS", "0.001"))

PSOLA_DEBUG = bool(int(os.getenv("VC_PSOLA_DEBUG", "0")))
def _dbg(*a):
    if PSOLA_DEBUG: print("[PSOLA]", *a)


@lru_cache(maxsize=256)
def _hann(grain_size: int) -> np.ndarray:
    # Hann périodique : 0.5·(1 − cos(2πk/N)), k = 0..N−1
    return get_window("hann", grain_size, fftbins=True)


def _frame_index(sample_pos: float, hop_size: int, n_frames: int) -> int:
    return min(n_frames - 1, max(0, int(sample_pos // hop_size)))


def output_marks(
    first_mark: int,
    target_freqs: np.ndarray,
    n_samples: int,
    sample_rate: int,
    hop_size: int,
) -> List[int]:
    """
    Marques de synthèse : départ sur la première marque d'analyse, puis pas
    de sr / f_cible. Sur une trame non voisée (cible 0) on avance de hop_size
    sans émettre de marque.
    """
    n_frames = len(target_freqs)
    marks = [int(first_mark)]
    pos = float(first_mark)
    while pos < n_samples:
        target = target_freqs[_frame_index(pos, hop_size, n_frames)]
        if not target > 0:
            pos += hop_size
            continue
        pos += sample_rate / target
        if pos < n_samples:
            marks.append(int(round(pos)))
    return marks


def nearest_input_marks(out_marks: Sequence[int], in_marks: np.ndarray) -> np.ndarray:
    """
    Marque d'analyse la plus proche de chaque marque de synthèse.

    Balayage à deux pointeurs sur des tableaux triés : la recherche reprend
    à l'index trouvé pour la marque précédente et s'arrête dès que la
    distance recommence à croître. Si une marque de synthèse recule, la
    recherche repart du début.
    """
    matched = np.empty(len(out_marks), dtype=np.int64)
    j = 0
    prev_out = None
    for k, out_pos in enumerate(out_marks):
        if prev_out is not None and out_pos < prev_out:
            j = 0
        best = j
        best_dist = abs(out_pos - int(in_marks[j]))
        while j + 1 < in_marks.size:
            dist = abs(out_pos - int(in_marks[j + 1]))
            if dist > best_dist:
                break  # la distance recommence à croître
            j += 1
            if dist < best_dist:
                best, best_dist = j, dist
        j = best
        matched[k] = in_marks[best]
        prev_out = out_pos
    return matched


def overlap_add(
    x: np.ndarray,
    out_marks: Sequence[int],
    matched: np.ndarray,
    frames: Sequence[PitchFrame],
    sample_rate: int,
    hop_size: int,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Superpose-additionne les grains. Retourne (somme des grains fenêtrés,
    enveloppe = somme des fenêtres), non normalisés.

    Demi-grain = période d'origine P de la trame couvrant la marque d'analyse ;
    grain = 2P échantillons, fenêtre de Hann, centré sur la marque.
    """
    x64 = np.asarray(x, dtype=np.float64)
    n = x64.size
    output = np.zeros(n, dtype=np.float64)
    envelope = np.zeros(n, dtype=np.float64)
    n_frames = len(frames)

    for out_pos, in_mark in zip(out_marks, matched):
        out_pos, in_mark = int(out_pos), int(in_mark)
        orig_freq = frames[_frame_index(in_mark, hop_size, n_frames)].frequency
        if not orig_freq > 0:
            continue
        period = int(round(sample_rate / orig_freq))
        if period <= 0:
            continue
        window = _hann(2 * period)

        # décalages j ∈ [−P, P) valides côté entrée ET côté sortie
        lo = max(-period, -in_mark, -out_pos)
        hi = min(period, n - in_mark, n - out_pos)
        if hi <= lo:
            continue
        w = window[lo + period: hi + period]
        output[out_pos + lo: out_pos + hi] += x64[in_mark + lo: in_mark + hi] * w
        envelope[out_pos + lo: out_pos + hi] += w

    return output, envelope


def psola_shift(
    signal: np.ndarray,
    marks: np.ndarray,
    frames: Sequence[PitchFrame],
    target_freqs: np.ndarray,
    sample_rate: int,
    hop_size: int,
) -> np.ndarray:
    """
    Resynthèse à la hauteur cible (même longueur que l'entrée, float32).

    - moins de 2 marques → copie de l'entrée
    - enveloppe < PSOLA_ENVELOPE_EPS (aucun grain) → échantillon d'origine
    """
    x = np.asarray(signal, dtype=np.float32)
    n = x.size
    marks = np.asarray(marks, dtype=np.int64)
    target_freqs = np.asarray(target_freqs, dtype=np.float64)

    if len(target_freqs) != len(frames):
        raise ValueError(
            f"target_freqs ({len(target_freqs)}) and frames ({len(frames)}) must be aligned"
        )
    if marks.size < 2 or len(frames) == 0:
        _dbg(f"only {marks.size} marks → passthrough")
        return x.copy()

    out_marks = output_marks(int(marks[0]), target_freqs, n, sample_rate, hop_size)
    matched = nearest_input_marks(out_marks, marks)
    output, envelope = overlap_add(x, out_marks, matched, frames, sample_rate, hop_size)

    covered = envelope > PSOLA_ENVELOPE_EPS
    result = x.astype(np.float64)
    result[covered] = output[covered] / envelope[covered]

    _dbg(f"{len(out_marks)} output marks | {len(matched)} grains | "
         f"coverage={np.count_nonzero(covered) / max(n, 1):.2%}")
    return result.astype(np.float32)
