# custom_components/combustion/combustion_probe_control/status.py
"""Decoder for Probe Status characteristic notifications.

Layout::

    0-3     min log sequence (u32 LE)
    4-7     max log sequence (u32 LE)
    8-20    8 x 13-bit raw temperatures
    21      mode | color | id            (same packing as advertising)
    22      battery | virtual selection  (same packing as advertising)
    23-29   prediction block
    30-39   food-safe config             optional
    40-47   food-safe status             optional
    48      overheating bitmask          optional
    49      thermometer preferences      optional
    50-93   high + low alarm table       optional

Optional sections are present only when the payload is long enough to hold
them in full; older firmware stops after byte 29.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..exception import LengthError
from .advertising import (
    BatteryStatus,
    Overheating,
    ProbeColor,
    ProbeMode,
    decode_battery_virtual,
    decode_mode_color_id,
)
from .alarms import ALARM_CONFIG_BYTES, AlarmConfig
from .food_safety import (
    FOOD_SAFE_CONFIG_BYTES,
    FOOD_SAFE_STATUS_BYTES,
    FoodSafeConfig,
    FoodSafeStatus,
)
from .prediction import PREDICTION_BLOCK_BYTES, PredictionInfo
from .preferences import ThermometerPreferences
from .temperatures import (
    RAW_TEMPERATURE_BYTES,
    ProbeTemperatures,
    VirtualSensorSelection,
    VirtualTemperatures,
    compute_virtual_temperatures,
)

__all__ = ["STATUS_MIN_LENGTH", "ProbeStatus"]

_TEMPERATURES = 8
_MODE_COLOR_ID = _TEMPERATURES + RAW_TEMPERATURE_BYTES       # 21
_BATTERY_VIRTUAL = _MODE_COLOR_ID + 1                        # 22
_PREDICTION = _BATTERY_VIRTUAL + 1                           # 23
_FOOD_SAFE_CONFIG = _PREDICTION + PREDICTION_BLOCK_BYTES     # 30
_FOOD_SAFE_STATUS = _FOOD_SAFE_CONFIG + FOOD_SAFE_CONFIG_BYTES  # 40
_OVERHEATING = _FOOD_SAFE_STATUS + FOOD_SAFE_STATUS_BYTES    # 48
_PREFERENCES = _OVERHEATING + 1                              # 49
_ALARMS = _PREFERENCES + 1                                   # 50

STATUS_MIN_LENGTH = _FOOD_SAFE_CONFIG


@dataclass(frozen=True)
class ProbeStatus:
    min_sequence_number: int
    max_sequence_number: int
    temperatures: ProbeTemperatures
    mode: ProbeMode
    color: ProbeColor
    probe_id: int
    battery_status: BatteryStatus
    virtual_sensors: VirtualSensorSelection
    prediction: PredictionInfo
    food_safe_config: Optional[FoodSafeConfig] = None
    food_safe_status: Optional[FoodSafeStatus] = None
    overheating: Optional[Overheating] = None
    thermometer_preferences: Optional[ThermometerPreferences] = None
    alarm_config: Optional[AlarmConfig] = None

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "ProbeStatus":
        size = len(data)
        if size < STATUS_MIN_LENGTH:
            raise LengthError("probe status", STATUS_MIN_LENGTH, size)

        def section(start: int, length: int) -> Optional[bytes]:
            if size < start + length:
                return None
            return bytes(data[start:start + length])

        mode, color, probe_id = decode_mode_color_id(data[_MODE_COLOR_ID])
        battery, virtual = decode_battery_virtual(data[_BATTERY_VIRTUAL])

        fs_config = section(_FOOD_SAFE_CONFIG, FOOD_SAFE_CONFIG_BYTES)
        fs_status = section(_FOOD_SAFE_STATUS, FOOD_SAFE_STATUS_BYTES)
        overheating = section(_OVERHEATING, 1)
        preferences = section(_PREFERENCES, 1)
        alarms = section(_ALARMS, ALARM_CONFIG_BYTES)

        return cls(
            min_sequence_number=int.from_bytes(bytes(data[0:4]), "little"),
            max_sequence_number=int.from_bytes(bytes(data[4:8]), "little"),
            temperatures=ProbeTemperatures.from_raw_data(
                data[_TEMPERATURES:_TEMPERATURES + RAW_TEMPERATURE_BYTES]
            ),
            mode=mode,
            color=color,
            probe_id=probe_id,
            battery_status=battery,
            virtual_sensors=virtual,
            prediction=PredictionInfo.from_bytes(
                data[_PREDICTION:_PREDICTION + PREDICTION_BLOCK_BYTES]
            ),
            food_safe_config=FoodSafeConfig.from_bytes(fs_config) if fs_config else None,
            food_safe_status=FoodSafeStatus.from_bytes(fs_status) if fs_status else None,
            overheating=Overheating(overheating[0]) if overheating else None,
            thermometer_preferences=(
                ThermometerPreferences.from_byte(preferences[0]) if preferences else None
            ),
            alarm_config=AlarmConfig.from_bytes(alarms) if alarms else None,
        )

    @property
    def virtual_temperatures(self) -> VirtualTemperatures:
        return compute_virtual_temperatures(self.temperatures, self.virtual_sensors)

    @property
    def has_logs(self) -> bool:
        return self.max_sequence_number >= self.min_sequence_number

    @property
    def available_log_count(self) -> int:
        if not self.has_logs:
            return 0
        return self.max_sequence_number - self.min_sequence_number + 1
