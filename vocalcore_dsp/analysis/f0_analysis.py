"""
f0_analysis.py
==============
Résumé d'une piste de pitch : taux de voisement, médiane, justesse moyenne
et note dominante (mode sur les noms de notes des trames voisées).
"""

from __future__ import annotations

from collections import Counter
from typing import Sequence, Union

import numpy as np

from vocalcore_dsp.types.dataclasses import PitchFrame, PitchTrack, TrackSummary


def summarize_track(track: Union[PitchTrack, Sequence[PitchFrame]]) -> TrackSummary:
    frames = track.frames if isinstance(track, PitchTrack) else list(track)
    if not frames:
        return TrackSummary()

    voiced = [f for f in frames if f.voiced and f.frequency > 0]
    if not voiced:
        return TrackSummary(n_frames=len(frames))

    freqs = sorted(f.frequency for f in voiced)
    cents = np.array([abs(f.cents_off) for f in voiced], dtype=float)

    note, count = Counter(f.note_name for f in voiced).most_common(1)[0]

    return TrackSummary(
        n_frames=len(frames),
        voiced_ratio=len(voiced) / len(frames),
        median_pitch=float(freqs[len(freqs) // 2]),
        mean_abs_cents_off=float(np.mean(cents)),
        dominant_note=note,
        dominant_note_rate=count / len(voiced),
    )
