from dataclasses import dataclass, field, replace
from typing import List

import numpy as np

from vocalcore_dsp.utils.note_utils import describe_frequency


@dataclass(frozen=True)
class PitchFrame:
    time: float                 # secondes (début de la fenêtre d'analyse)
    frequency: float            # Hz, 0 si non voisé
    confidence: float           # [0, 1]
    midi_note: int
    cents_off: float            # [-50, 50]
    note_name: str              # "A4", "-" si non voisé
    voiced: bool

    @classmethod
    def from_frequency(
        cls, time: float, frequency: float, confidence: float, voiced: bool
    ) -> "PitchFrame":
        """Construit une trame en dérivant MIDI / cents / nom depuis la fréquence."""
        _, midi_note, cents_off, note_name = describe_frequency(frequency)
        return cls(
            time=float(time),
            frequency=float(frequency),
            confidence=float(confidence),
            midi_note=midi_note,
            cents_off=cents_off,
            note_name=note_name,
            voiced=bool(voiced),
        )

    def with_frequency(self, frequency: float) -> "PitchFrame":
        """Copie de la trame avec une nouvelle fréquence (champs dérivés recalculés)."""
        _, midi_note, cents_off, note_name = describe_frequency(frequency)
        return replace(
            self,
            frequency=float(frequency),
            midi_note=midi_note,
            cents_off=cents_off,
            note_name=note_name,
        )


@dataclass
class PitchTrack:
    frames: List[PitchFrame] = field(default_factory=list)
    sample_rate: int = 0
    hop_size: int = 0
    median_pitch: float = 0.0   # médiane des trames voisées, 0 si aucune

    @property
    def frequencies(self) -> np.ndarray:
        return np.array([f.frequency for f in self.frames], dtype=np.float64)

    @property
    def voiced_mask(self) -> np.ndarray:
        return np.array([f.voiced for f in self.frames], dtype=bool)


@dataclass
class CorrectionAnalysis:
    """Résultats intermédiaires de la chaîne de correction (pour visualisation)."""
    track: PitchTrack
    smoothed_frames: List[PitchFrame]
    target_frequencies: np.ndarray = field(default_factory=lambda: np.array([]))
    epoch_marks: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.int64))


@dataclass
class TrackSummary:
    n_frames: int = 0
    voiced_ratio: float = 0.0
    median_pitch: float = 0.0
    mean_abs_cents_off: float = 0.0
    dominant_note: str = "-"
    dominant_note_rate: float = 0.0
