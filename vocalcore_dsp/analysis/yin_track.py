# vocalcore_dsp/analysis/yin_track.py
"""
Suivi de pitch YIN trame par trame
==================================
de Cheveigné & Kawahara (2002), "YIN, a fundamental frequency estimator
for speech and music".

Pour chaque trame (pas = hop_size, fenêtre = window_size) :
  1. fonction de différence d(τ)
  2. CMNDF d'(τ) (différence normalisée par la moyenne cumulée)
  3. seuil absolu : premier creux sous le seuil, sinon minimum global
  4. interpolation parabolique (période fractionnaire)
  5. décision de voisement + conversion MIDI / note / cents

Les étapes 1–2 coûtent O(window_size²) par trame : c'est le coût dominant.
Elles sont calculées exactement (vectorisées avec numpy) et les trames,
indépendantes, peuvent être réparties sur un pool de threads.
"""

from __future__ import annotations

import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple

import numpy as np
import librosa
from numpy.lib.stride_tricks import sliding_window_view

from vocalcore_dsp.core.preprocess import prepare_signal
from vocalcore_dsp.types.dataclasses import PitchFrame, PitchTrack


# ===== Tunables ==============================================================
YIN_HOP_SIZE    = int(os.getenv("VC_HOP_SIZE", "256"))
YIN_WINDOW_SIZE = int(os.getenv("VC_WINDOW_SIZE", "2048"))
YIN_THRESHOLD   = float(os.getenv("VC_YIN_THRESHOLD", "0.15"))
YIN_MIN_FREQ    = 60.0
YIN_MAX_FREQ    = 1200.0

YIN_DEBUG = bool(int(os.getenv("VC_YIN_DEBUG", "0")))
def _dbg(*a):
    if YIN_DEBUG: print("[YIN]", *a)


# ===== Étapes 1–2 ============================================================
def difference_function(window: np.ndarray) -> np.ndarray:
    """
    d(τ) = Σ_{j<half} (x[j] − x[j+τ])²  pour τ ∈ [0, half), half = len(window) // 2.
    """
    x = np.asarray(window, dtype=np.float64)
    half = x.size // 2
    if half == 0:
        return np.zeros(0, dtype=np.float64)
    # ligne τ = x[τ : τ + half]
    lagged = sliding_window_view(x, half)[:half]
    delta = x[:half][None, :] - lagged
    return np.einsum("ij,ij->i", delta, delta)


def cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
    """
    d'(0) = 1 ; d'(τ) = d(τ)·τ / Σ_{k=1..τ} d(k).
    Une somme cumulée nulle (fenêtre plate) donne d'(τ) = 1 : pas de creux.
    """
    cmndf = np.ones_like(diff, dtype=np.float64)
    if diff.size <= 1:
        return cmndf
    running = np.cumsum(diff[1:])
    tau = np.arange(1, diff.size, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        normed = diff[1:] * tau / running
    cmndf[1:] = np.where(running > 0, normed, 1.0)
    return cmndf


# ===== Étapes 3–4 ============================================================
def absolute_threshold(
    cmndf: np.ndarray, tau_min: int, tau_max: int, threshold: float
) -> Tuple[int, float]:
    """
    Premier τ de [tau_min, tau_max) tel que d'(τ) < threshold, puis descente
    jusqu'au minimum local (politique "premier creux"). À défaut, minimum
    global sur la même plage. Retourne (-1, 1.0) si rien n'est trouvé.
    """
    if tau_max <= tau_min:
        return -1, 1.0

    below = np.flatnonzero(cmndf[tau_min:tau_max] < threshold)
    if below.size:
        tau = tau_min + int(below[0])
        while tau + 1 < tau_max and cmndf[tau + 1] < cmndf[tau]:
            tau += 1
        return tau, float(cmndf[tau])

    k = int(np.argmin(cmndf[tau_min:tau_max]))
    best = float(cmndf[tau_min + k])
    if best < 1.0:
        return tau_min + k, best
    return -1, 1.0


def parabolic_refine(cmndf: np.ndarray, tau: int) -> float:
    """
    τ + (s0 − s2) / (2·(s0 − 2·s1 + s2)) sur [τ−1, τ, τ+1],
    appliqué seulement si l'ajustement reste < 1 échantillon.
    """
    if not (0 < tau < cmndf.size - 1):
        return float(tau)
    s0, s1, s2 = float(cmndf[tau - 1]), float(cmndf[tau]), float(cmndf[tau + 1])
    denom = 2.0 * (s0 - 2.0 * s1 + s2)
    if denom == 0.0:
        return float(tau)
    adjustment = (s0 - s2) / denom
    if math.isfinite(adjustment) and abs(adjustment) < 1.0:
        return tau + adjustment
    return float(tau)


# ===== Trame ==================================================================
def analyze_frame(
    window: np.ndarray,
    time: float,
    sample_rate: int,
    threshold: float,
    tau_min: int,
    tau_max: int,
) -> PitchFrame:
    diff = difference_function(window)
    cmndf = cumulative_mean_normalized_difference(diff)

    best_tau, best_val = absolute_threshold(cmndf, tau_min, tau_max, threshold)
    refined = parabolic_refine(cmndf, best_tau) if best_tau > 0 else float(best_tau)

    voiced = best_val < threshold * 2 and refined > 0
    frequency = sample_rate / refined if voiced else 0.0
    confidence = 1.0 - best_val if voiced else 0.0
    return PitchFrame.from_frequency(time, frequency, confidence, voiced)


def _check_analysis_params(hop_size, window_size, threshold, min_freq, max_freq):
    if int(hop_size) != hop_size or hop_size <= 0:
        raise ValueError(f"hop_size must be a positive integer, got {hop_size!r}")
    if int(window_size) != window_size or window_size < 4:
        raise ValueError(f"window_size must be an integer >= 4, got {window_size!r}")
    if not (0.0 < threshold <= 1.0):
        raise ValueError(f"threshold must be in (0, 1], got {threshold!r}")
    if not (0.0 < min_freq < max_freq) or not math.isfinite(max_freq):
        raise ValueError(f"Invalid search band [{min_freq!r}, {max_freq!r}] Hz")


# ===== API publique ===========================================================
def track_pitch(
    y: np.ndarray,
    sr: int,
    hop_size: int = YIN_HOP_SIZE,
    window_size: int = YIN_WINDOW_SIZE,
    threshold: float = YIN_THRESHOLD,
    min_freq: float = YIN_MIN_FREQ,
    max_freq: float = YIN_MAX_FREQ,
    n_workers: int = 1,
) -> PitchTrack:
    """
    Cœur de `detect_pitch` sur un buffer déjà conditionné (sortie de
    `prepare_signal` : mono float32, sans NaN/inf, sample rate entier).
    Aucune copie ni validation du signal ici.
    """
    _check_analysis_params(hop_size, window_size, threshold, min_freq, max_freq)
    hop_size, window_size = int(hop_size), int(window_size)

    half = window_size // 2
    min_period = int(math.floor(sr / max_freq))
    max_period = int(math.ceil(sr / min_freq))
    tau_min = max(min_period, 2)
    tau_max = min(max_period, half - 1)

    if y.size < window_size:
        _dbg(f"signal too short ({y.size} < {window_size}) → 0 frame")
        return PitchTrack(frames=[], sample_rate=sr, hop_size=hop_size, median_pitch=0.0)

    windows = librosa.util.frame(y, frame_length=window_size, hop_length=hop_size, axis=0)
    times = np.arange(windows.shape[0]) * hop_size / sr

    def _run(i: int) -> PitchFrame:
        return analyze_frame(windows[i], float(times[i]), sr, threshold, tau_min, tau_max)

    if n_workers and n_workers > 1:
        with ThreadPoolExecutor(max_workers=int(n_workers)) as ex:
            frames: List[PitchFrame] = list(ex.map(_run, range(windows.shape[0])))
    else:
        frames = [_run(i) for i in range(windows.shape[0])]

    track = PitchTrack(frames=frames, sample_rate=sr, hop_size=hop_size)
    voiced = np.sort(track.frequencies[track.voiced_mask])
    track.median_pitch = float(voiced[voiced.size // 2]) if voiced.size else 0.0

    _dbg(
        f"{len(frames)} frames | voiced={voiced.size} | "
        f"tau=[{tau_min},{tau_max}) | median={track.median_pitch:.2f} Hz"
    )
    return track


def detect_pitch(
    signal: np.ndarray,
    sample_rate: int,
    hop_size: int = YIN_HOP_SIZE,
    window_size: int = YIN_WINDOW_SIZE,
    threshold: float = YIN_THRESHOLD,
    min_freq: float = YIN_MIN_FREQ,
    max_freq: float = YIN_MAX_FREQ,
    n_workers: int = 1,
) -> PitchTrack:
    """
    Estime f0 + voisement trame par trame (YIN).

    Args:
        signal: échantillons mono (float, [-1, 1])
        sample_rate: Hz
        hop_size: pas entre trames (256 ≈ 5.8 ms à 44.1 kHz)
        window_size: fenêtre d'analyse (2048 ≈ 46 ms à 44.1 kHz)
        threshold: seuil YIN (plus bas = plus strict)
        min_freq, max_freq: bande de recherche (Hz)
        n_workers: > 1 → trames réparties sur un ThreadPoolExecutor

    Returns:
        PitchTrack ; (len(signal) - window_size) // hop_size + 1 trames,
        aucune si le signal est plus court qu'une fenêtre.
    """
    y, meta = prepare_signal(signal, sample_rate)
    return track_pitch(
        y, meta.sample_rate,
        hop_size=hop_size,
        window_size=window_size,
        threshold=threshold,
        min_freq=min_freq,
        max_freq=max_freq,
        n_workers=n_workers,
    )
