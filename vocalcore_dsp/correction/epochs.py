# vocalcore_dsp/correction/epochs.py
import os
from typing import Sequence

import numpy as np
import numba

from vocalcore_dsp.types.dataclasses import PitchFrame

EPOCH_DEBUG = bool(int(os.getenv("VC_EPOCH_DEBUG", "0")))
def _dbg(*a):
    if EPOCH_DEBUG: print("[EPOCH]", *a)


# ==== Noyaux Numba ===========================================================
@numba.jit(nopython=True)
def peak_abs_index(x, start, stop, default):
    """Index du max de |x| sur [start, stop) ; `default` si la plage est vide."""
    best_pos = default
    best_val = -1.0
    for j in range(start, stop):
        v = abs(x[j])
        if v > best_val:
            best_val = v
            best_pos = j
    return best_pos


@numba.jit(nopython=True)
def place_marks(x, periods, hop_size):
    """
    periods[i] : période (échantillons) de la trame i, 0 si non voisée.
    La trame i couvre [i·hop, i·hop + hop). Retourne des marques strictement
    croissantes, toutes < len(x).
    """
    n = x.shape[0]
    marks = np.empty(n, dtype=np.int64)
    count = 0
    for i in range(periods.shape[0]):
        period = periods[i]
        if period <= 0:
            continue
        frame_start = i * hop_size
        if frame_start >= n:
            break
        frame_end = min(frame_start + hop_size, n)

        # ancre : premier segment voisé, ou reprise après un trou non voisé
        if count == 0 or marks[count - 1] + period < frame_start:
            stop = min(frame_start + period, n)
            marks[count] = peak_abs_index(x, frame_start, stop, frame_start)
            count += 1

        radius = period // 4
        next_mark = marks[count - 1] + period
        while next_mark < frame_end:
            lo = max(0, next_mark - radius)
            hi = min(n, next_mark + radius)
            best = peak_abs_index(x, lo, hi, next_mark)
            marks[count] = best
            count += 1
            next_mark = best + period
    return marks[:count].copy()


# ==== API ====================================================================
def frame_periods(frames: Sequence[PitchFrame], sample_rate: int) -> np.ndarray:
    """round(sr / f) par trame, 0 pour les trames non voisées."""
    periods = np.zeros(len(frames), dtype=np.int64)
    for i, frame in enumerate(frames):
        if frame.voiced and frame.frequency > 0:
            periods[i] = max(1, int(round(sample_rate / frame.frequency)))
    return periods


def find_epoch_marks(
    signal: np.ndarray,
    frames: Sequence[PitchFrame],
    sample_rate: int,
    hop_size: int,
) -> np.ndarray:
    """
    Marques pitch-synchrones (une par impulsion glottique) dans les zones voisées.

    - ancre : max de |x| sur la première période de la première trame voisée
      (et de chaque trame voisée qui reprend après une zone non voisée)
    - marque suivante : une période plus loin, recalée sur le pic local
      dans ±période/4
    - zones non voisées : aucune marque (le resynthétiseur les recopie)
    """
    x = np.ascontiguousarray(signal, dtype=np.float32)
    if x.size == 0 or len(frames) == 0:
        return np.zeros(0, dtype=np.int64)
    periods = frame_periods(frames, sample_rate)
    marks = place_marks(x, periods, int(hop_size))
    _dbg(f"{marks.size} marks | voiced frames={int(np.count_nonzero(periods))}/{len(frames)}")
    return marks
