# vocalcore_dsp/types/schemas.py
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ────────────────────────────────────────────────────────────────────────────
# Buffer metadata
# ────────────────────────────────────────────────────────────────────────────
class SignalMeta(BaseModel):
    sample_rate: int = Field(..., gt=0, description="Sample rate (Hz)")
    length: int = Field(..., ge=0, description="Number of samples (mono)")
    channels: int = Field(1, ge=1, description="Channels before mono folding")
    dtype: str = Field("float32", description="Audio buffer dtype")

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate


# ────────────────────────────────────────────────────────────────────────────
# User parameters (knobs)
# ────────────────────────────────────────────────────────────────────────────
class CorrectionParams(BaseModel):
    """
    Paramètres utilisateur de la correction.
    Accepte aussi les clés camelCase de l'interface (retuneSpeed, ...).
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        allow_inf_nan=False,
    )

    retune_speed: float = Field(20.0, ge=0.0, le=100.0, description="ms, 0 = instantané")
    humanize: float = Field(40.0, ge=0.0, le=100.0, description="% de variation réinjectée")
    tune_amount: float = Field(80.0, ge=0.0, le=100.0, description="% wet (corrigé)")

    @field_validator("retune_speed", "humanize", "tune_amount", mode="before")
    @classmethod
    def _reject_bool(cls, v):
        if isinstance(v, bool):
            raise ValueError("Boolean is not a valid parameter value")
        return v

    @property
    def wet(self) -> float:
        return self.tune_amount / 100.0

    @property
    def humanize_amount(self) -> float:
        return self.humanize / 100.0
