# vocalcore_dsp/analysis/track_smoothing.py
from __future__ import annotations

import os
from typing import List

from vocalcore_dsp.types.dataclasses import PitchFrame, PitchTrack

# Au-delà de ~±6 demi-tons de la médiane locale → erreur d'octave
OCTAVE_UP_RATIO = 1.5
OCTAVE_DOWN_RATIO = 0.67
MIN_VOICED_NEIGHBORS = 3

SMOOTH_DEBUG = bool(int(os.getenv("VC_SMOOTH_DEBUG", "0")))
def _dbg(*a):
    if SMOOTH_DEBUG: print("[SMOOTH]", *a)


def smooth_pitch_track(track: PitchTrack, median_window_size: int = 5) -> List[PitchFrame]:
    """
    Supprime les sauts d'octave par filtre médian local (non causal).

    Pour chaque trame voisée, on prend les fréquences des trames *voisées*
    dans ±median_window_size // 2 (valeurs d'origine, jamais les valeurs
    déjà corrigées). Avec au moins 3 voisins :
      - ratio / médiane > 1.5  → fréquence / 2
      - ratio / médiane < 0.67 → fréquence × 2
    MIDI / cents / nom sont recalculés. La piste d'entrée n'est pas modifiée.
    """
    if int(median_window_size) != median_window_size or median_window_size < 1 \
            or median_window_size % 2 == 0:
        raise ValueError(
            f"median_window_size must be a positive odd integer, got {median_window_size!r}"
        )

    frames = track.frames
    half_win = int(median_window_size) // 2
    out: List[PitchFrame] = []
    n_fixed = 0

    for i, frame in enumerate(frames):
        if not frame.voiced:
            out.append(frame)
            continue

        lo, hi = max(0, i - half_win), min(len(frames) - 1, i + half_win)
        neighborhood = sorted(
            frames[j].frequency for j in range(lo, hi + 1) if frames[j].voiced
        )
        if len(neighborhood) < MIN_VOICED_NEIGHBORS:
            out.append(frame)
            continue

        median_freq = neighborhood[len(neighborhood) // 2]
        freq = frame.frequency
        if median_freq > 0:
            ratio = freq / median_freq
            if ratio > OCTAVE_UP_RATIO:
                freq /= 2.0
            elif ratio < OCTAVE_DOWN_RATIO:
                freq *= 2.0
        if freq != frame.frequency:
            n_fixed += 1
            _dbg(f"frame {i} t={frame.time:.3f}s {frame.frequency:.2f} → {freq:.2f} Hz "
                 f"(median={median_freq:.2f})")
        out.append(frame.with_frequency(freq))

    _dbg(f"{n_fixed} octave corrections over {len(frames)} frames")
    return out
