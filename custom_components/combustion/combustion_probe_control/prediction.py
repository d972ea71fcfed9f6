# custom_components/combustion/combustion_probe_control/prediction.py
"""Prediction block decoding and progress helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..exception import LengthError
from .bitfield import BitField, decode_fixed

__all__ = [
    "PREDICTION_BLOCK_BYTES",
    "MAX_SET_POINT",
    "PredictionState",
    "PredictionMode",
    "PredictionType",
    "PredictionInfo",
    "prediction_progress",
]

PREDICTION_BLOCK_BYTES = 7

STATE_FIELD = BitField(0, 4)
MODE_FIELD = BitField(4, 2)
TYPE_FIELD = BitField(6, 2)
SET_POINT_FIELD = BitField(8, 10)
HEAT_START_FIELD = BitField(18, 10)
SECONDS_FIELD = BitField(28, 17)
ESTIMATED_CORE_FIELD = BitField(45, 11)

SET_POINT_SCALE = 0.1
ESTIMATED_CORE_SCALE = 0.1
ESTIMATED_CORE_OFFSET = -20.0

# Largest set point the 10-bit field can carry.
MAX_SET_POINT = SET_POINT_FIELD.max_value * SET_POINT_SCALE


class PredictionState(IntEnum):
    PROBE_NOT_INSERTED = 0
    PROBE_INSERTED = 1
    WARMING = 2
    PREDICTING = 3
    REMOVAL_PREDICTION_DONE = 4
    RESERVED_5 = 5
    RESERVED_6 = 6
    UNKNOWN = 15

    @classmethod
    def from_raw(cls, value: int) -> "PredictionState":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class PredictionMode(IntEnum):
    NONE = 0
    TIME_TO_REMOVAL = 1
    REMOVAL_AND_RESTING = 2
    RESERVED = 3


class PredictionType(IntEnum):
    NONE = 0
    REMOVAL = 1
    RESTING = 2
    RESERVED = 3


def prediction_progress(
    estimated_core: float, heat_start: float, set_point: float
) -> Optional[float]:
    """Percentage of the way from heat start to the set point, clamped 0..100.

    Returns ``None`` when the set point equals the heat start temperature.
    """
    span = set_point - heat_start
    if abs(span) < 1e-3:
        return None
    progress = (estimated_core - heat_start) / span * 100.0
    return max(0.0, min(100.0, progress))


@dataclass(frozen=True)
class PredictionInfo:
    state: PredictionState = PredictionState.PROBE_NOT_INSERTED
    mode: PredictionMode = PredictionMode.NONE
    prediction_type: PredictionType = PredictionType.NONE
    set_point_temperature: float = 0.0
    heat_start_temperature: float = 0.0
    prediction_seconds: int = 0
    estimated_core_temperature: float = 0.0

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "PredictionInfo":
        """Decode the 7-byte prediction block of a status payload."""
        if len(data) < PREDICTION_BLOCK_BYTES:
            raise LengthError("prediction block", PREDICTION_BLOCK_BYTES, len(data))
        return cls(
            state=PredictionState.from_raw(STATE_FIELD.read(data)),
            mode=PredictionMode(MODE_FIELD.read(data)),
            prediction_type=PredictionType(TYPE_FIELD.read(data)),
            set_point_temperature=decode_fixed(SET_POINT_FIELD.read(data), SET_POINT_SCALE),
            heat_start_temperature=decode_fixed(HEAT_START_FIELD.read(data), SET_POINT_SCALE),
            prediction_seconds=SECONDS_FIELD.read(data),
            estimated_core_temperature=decode_fixed(
                ESTIMATED_CORE_FIELD.read(data), ESTIMATED_CORE_SCALE, ESTIMATED_CORE_OFFSET
            ),
        )

    @property
    def is_predicting(self) -> bool:
        return self.state is PredictionState.PREDICTING

    @property
    def is_done(self) -> bool:
        return self.state is PredictionState.REMOVAL_PREDICTION_DONE

    @property
    def is_inserted(self) -> bool:
        return self.state not in (PredictionState.PROBE_NOT_INSERTED, PredictionState.UNKNOWN)

    @property
    def temperature_progress(self) -> Optional[float]:
        return prediction_progress(
            self.estimated_core_temperature,
            self.heat_start_temperature,
            self.set_point_temperature,
        )

    @property
    def prediction_time_formatted(self) -> str:
        """``H:MM:SS`` or ``M:SS``."""
        minutes, seconds = divmod(self.prediction_seconds, 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"
