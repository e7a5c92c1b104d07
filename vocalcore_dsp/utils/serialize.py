# vocalcore_dsp/utils/serialize.py
from dataclasses import is_dataclass, asdict

import numpy as np

from vocalcore_dsp.types.dataclasses import CorrectionAnalysis, PitchTrack


def _jsonable(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def safe_asdict(obj):
    """
    Sérialisation robuste : dataclass, Pydantic ou dict.
    Les tableaux numpy sont convertis en listes (JSON).
    """
    if obj is None:
        return None
    if is_dataclass(obj) and not isinstance(obj, type):
        return _jsonable(asdict(obj))
    if hasattr(obj, "model_dump"):  # Pydantic v2
        return obj.model_dump()
    if isinstance(obj, dict):
        return _jsonable(obj)
    raise TypeError(f"Cannot serialize object of type {type(obj).__name__}")


def track_to_dict(track: PitchTrack) -> dict:
    """Piste de pitch au format dict, sérialisable en JSON."""
    return {
        "sample_rate": track.sample_rate,
        "hop_size": track.hop_size,
        "median_pitch": track.median_pitch,
        "frames": [safe_asdict(f) for f in track.frames],
    }


def analysis_to_dict(analysis: CorrectionAnalysis) -> dict:
    return {
        "track": track_to_dict(analysis.track),
        "smoothed_frames": [safe_asdict(f) for f in analysis.smoothed_frames],
        "target_frequencies": _jsonable(analysis.target_frequencies),
        "epoch_marks": _jsonable(analysis.epoch_marks),
    }
