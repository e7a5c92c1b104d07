from enum import Enum

from vocalcore_dsp.types.schemas import CorrectionParams


class CorrectionPreset(Enum):
    # (retune_speed ms, humanize %, tune_amount %)
    HARD_TUNE = (0.0, 0.0, 100.0)     # quantification instantanée, effet "robot"
    NATURAL = (20.0, 40.0, 80.0)      # réglage par défaut de l'interface
    MELODIC = (15.0, 80.0, 88.0)      # correction rapide mais très humanisée

    @property
    def params(self) -> CorrectionParams:
        retune_speed, humanize, tune_amount = self.value
        return CorrectionParams(
            retune_speed=retune_speed, humanize=humanize, tune_amount=tune_amount
        )
