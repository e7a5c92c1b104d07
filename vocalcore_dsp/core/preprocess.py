import math

import numpy as np
import librosa

from vocalcore_dsp.types.schemas import SignalMeta


def select_channel_strategy(y: np.ndarray) -> np.ndarray:
    """
    Replie un signal multi-canaux (canaux x échantillons) en mono.
    Un signal 1D est retourné tel quel. Un signal 2D doit être (canaux, échantillons).
    """
    if y.ndim == 1:
        return y  # déjà mono
    if y.ndim == 2:
        return librosa.to_mono(y)
    raise ValueError(f"Unsupported signal shape {y.shape} (expected 1D or 2D)")


def check_sample_rate(sample_rate) -> int:
    """Fréquence d'échantillonnage entière et strictement positive, sinon ValueError."""
    try:
        sr = float(sample_rate)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid sample rate: {sample_rate!r}") from None
    if not math.isfinite(sr) or sr <= 0 or not sr.is_integer():
        raise ValueError(f"Invalid sample rate: {sample_rate!r}")
    return int(sr)


def prepare_signal(signal, sample_rate) -> tuple[np.ndarray, SignalMeta]:
    """
    Conditionne un buffer décodé pour le moteur :
    - contrôle du sample rate (entier > 0)
    - repli mono (librosa.to_mono) si 2D
    - conversion float32 contiguë
    - rejet des échantillons non finis (NaN / inf)

    Returns:
        (y, meta) : signal mono float32 (nouveau buffer) et métadonnées.
    """
    sr = check_sample_rate(sample_rate)
    y = np.asarray(signal)
    if y.dtype.kind not in "fiu":
        raise ValueError(f"Unsupported sample dtype: {y.dtype}")
    if y.ndim not in (1, 2):
        raise ValueError(f"Unsupported signal shape {y.shape} (expected 1D or 2D)")
    if y.ndim == 2 and y.shape[0] > y.shape[1]:
        # disposition attendue : (canaux, échantillons)
        raise ValueError(
            f"Signal shape {y.shape} looks channels-last; expected (channels, samples)"
        )
    if not np.all(np.isfinite(y)):
        raise ValueError("Signal contains non-finite samples (NaN or inf)")
    channels = 1 if y.ndim == 1 else int(y.shape[0])

    y = select_channel_strategy(y.astype(np.float32, copy=False))
    y = np.array(y, dtype=np.float32, order="C", copy=True)

    meta = SignalMeta(sample_rate=sr, length=int(y.size), channels=max(channels, 1))
    return y, meta
