# custom_components/combustion/combustion_probe_control/alarms.py
"""High/low temperature alarm table.

Each alarm is a 16-bit little-endian word::

    bit 0       set (enabled)
    bit 1       tripped
    bit 2       alarming (sounding now)
    bits 3-15   threshold, raw * 0.1 - 20 °C

The table holds 11 high alarms followed by 11 low alarms: T1-T8, then the
virtual core, surface and ambient channels.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from ..exception import LengthError, ParameterOutOfRangeError
from .bitfield import BitField, decode_fixed, encode_fixed

__all__ = [
    "ALARM_COUNT",
    "ALARM_STATUS_BYTES",
    "ALARM_CONFIG_BYTES",
    "CORE_INDEX",
    "SURFACE_INDEX",
    "AMBIENT_INDEX",
    "SENSOR_NAMES",
    "sensor_name",
    "AlarmStatus",
    "AlarmConfig",
]

ALARM_COUNT = 11
ALARM_STATUS_BYTES = 2
ALARM_ARRAY_BYTES = ALARM_COUNT * ALARM_STATUS_BYTES
ALARM_CONFIG_BYTES = 2 * ALARM_ARRAY_BYTES

CORE_INDEX = 8
SURFACE_INDEX = 9
AMBIENT_INDEX = 10

SENSOR_NAMES = ("T1", "T2", "T3", "T4", "T5", "T6", "T7", "T8", "Core", "Surface", "Ambient")

SET_FIELD = BitField(0, 1)
TRIPPED_FIELD = BitField(1, 1)
ALARMING_FIELD = BitField(2, 1)
TEMPERATURE_FIELD = BitField(3, 13)

ALARM_SCALE = 0.1
ALARM_OFFSET = -20.0
MIN_ALARM_TEMPERATURE = ALARM_OFFSET
MAX_ALARM_TEMPERATURE = decode_fixed(TEMPERATURE_FIELD.max_value, ALARM_SCALE, ALARM_OFFSET)


def sensor_name(index: int) -> str:
    if 0 <= index < ALARM_COUNT:
        return SENSOR_NAMES[index]
    return f"#{index}"


def _check_index(index: int) -> None:
    if not 0 <= index < ALARM_COUNT:
        raise ParameterOutOfRangeError("alarm index", index, f"0..{ALARM_COUNT - 1}")


@dataclass(frozen=True)
class AlarmStatus:
    set: bool = False
    tripped: bool = False
    alarming: bool = False
    temperature: float = 0.0

    @classmethod
    def enabled(cls, temperature: float) -> "AlarmStatus":
        if not MIN_ALARM_TEMPERATURE <= temperature <= MAX_ALARM_TEMPERATURE:
            raise ParameterOutOfRangeError(
                "alarm temperature",
                temperature,
                f"{MIN_ALARM_TEMPERATURE}..{MAX_ALARM_TEMPERATURE:.1f} °C",
            )
        return cls(set=True, temperature=temperature)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "AlarmStatus":
        if len(data) < ALARM_STATUS_BYTES:
            raise LengthError("alarm status", ALARM_STATUS_BYTES, len(data))
        return cls(
            set=bool(SET_FIELD.read(data)),
            tripped=bool(TRIPPED_FIELD.read(data)),
            alarming=bool(ALARMING_FIELD.read(data)),
            temperature=decode_fixed(TEMPERATURE_FIELD.read(data), ALARM_SCALE, ALARM_OFFSET),
        )

    def to_bytes(self) -> bytes:
        buf = bytearray(ALARM_STATUS_BYTES)
        SET_FIELD.write(buf, int(self.set))
        TRIPPED_FIELD.write(buf, int(self.tripped))
        ALARMING_FIELD.write(buf, int(self.alarming))
        TEMPERATURE_FIELD.write(
            buf, encode_fixed(self.temperature, ALARM_SCALE, ALARM_OFFSET, TEMPERATURE_FIELD.width)
        )
        return bytes(buf)

    def disabled(self) -> "AlarmStatus":
        return replace(self, set=False, tripped=False, alarming=False)


def _default_alarms() -> tuple[AlarmStatus, ...]:
    return (AlarmStatus(),) * ALARM_COUNT


@dataclass(frozen=True)
class AlarmConfig:
    high: tuple[AlarmStatus, ...] = _default_alarms()
    low: tuple[AlarmStatus, ...] = _default_alarms()

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "AlarmConfig":
        if len(data) < ALARM_CONFIG_BYTES:
            raise LengthError("alarm config", ALARM_CONFIG_BYTES, len(data))

        def array(start: int) -> tuple[AlarmStatus, ...]:
            return tuple(
                AlarmStatus.from_bytes(data[start + i * 2:start + i * 2 + 2])
                for i in range(ALARM_COUNT)
            )

        return cls(high=array(0), low=array(ALARM_ARRAY_BYTES))

    def to_bytes(self) -> bytes:
        return b"".join(a.to_bytes() for a in self.high) + b"".join(
            a.to_bytes() for a in self.low
        )

    # ── editing (returns a new table) ─────────────────────────────

    def with_high_alarm(self, index: int, temperature: Optional[float]) -> "AlarmConfig":
        """Enable the high alarm at ``index``, or disable it when ``temperature`` is None."""
        _check_index(index)
        alarm = self.high[index].disabled() if temperature is None else AlarmStatus.enabled(temperature)
        high = self.high[:index] + (alarm,) + self.high[index + 1:]
        return replace(self, high=high)

    def with_low_alarm(self, index: int, temperature: Optional[float]) -> "AlarmConfig":
        _check_index(index)
        alarm = self.low[index].disabled() if temperature is None else AlarmStatus.enabled(temperature)
        low = self.low[:index] + (alarm,) + self.low[index + 1:]
        return replace(self, low=low)

    def with_core_high_alarm(self, temperature: Optional[float]) -> "AlarmConfig":
        return self.with_high_alarm(CORE_INDEX, temperature)

    def with_core_low_alarm(self, temperature: Optional[float]) -> "AlarmConfig":
        return self.with_low_alarm(CORE_INDEX, temperature)

    def all_disabled(self) -> "AlarmConfig":
        return AlarmConfig(
            high=tuple(a.disabled() for a in self.high),
            low=tuple(a.disabled() for a in self.low),
        )

    # ── queries ───────────────────────────────────────────────────

    @property
    def core_high(self) -> AlarmStatus:
        return self.high[CORE_INDEX]

    @property
    def core_low(self) -> AlarmStatus:
        return self.low[CORE_INDEX]

    def any_enabled(self) -> bool:
        return any(a.set for a in self.high + self.low)

    def any_tripped(self) -> bool:
        return any(a.tripped for a in self.high + self.low)

    def any_alarming(self) -> bool:
        return any(a.alarming for a in self.high + self.low)

    def triggered_high_alarms(self) -> list[int]:
        return [i for i, a in enumerate(self.high) if a.tripped]

    def triggered_low_alarms(self) -> list[int]:
        return [i for i, a in enumerate(self.low) if a.tripped]
