# custom_components/combustion/combustion_probe_control/preferences.py
"""Thermometer preferences byte."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..exception import LengthError
from .bitfield import BitField

__all__ = ["PowerMode", "ThermometerPreferences"]

POWER_MODE_FIELD = BitField(0, 2)
RESERVED_FIELD = BitField(2, 6)


class PowerMode(IntEnum):
    NORMAL = 0
    ALWAYS_ON = 1

    @classmethod
    def from_raw(cls, value: int) -> "PowerMode":
        try:
            return cls(value)
        except ValueError:
            return cls.NORMAL


@dataclass(frozen=True)
class ThermometerPreferences:
    power_mode: PowerMode = PowerMode.NORMAL
    reserved: int = 0

    @classmethod
    def from_byte(cls, value: int) -> "ThermometerPreferences":
        buf = bytes([value & 0xFF])
        return cls(
            power_mode=PowerMode.from_raw(POWER_MODE_FIELD.read(buf)),
            reserved=RESERVED_FIELD.read(buf),
        )

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "ThermometerPreferences":
        if len(data) < 1:
            raise LengthError("thermometer preferences", 1, len(data))
        return cls.from_byte(data[0])

    def to_byte(self) -> int:
        buf = bytearray(1)
        POWER_MODE_FIELD.write(buf, int(self.power_mode))
        RESERVED_FIELD.write(buf, self.reserved)
        return buf[0]

    def to_bytes(self) -> bytes:
        return bytes([self.to_byte()])

    @property
    def is_always_on(self) -> bool:
        return self.power_mode is PowerMode.ALWAYS_ON
