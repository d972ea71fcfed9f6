# custom_components/combustion/combustion_probe_control/temperatures.py
"""Probe thermistor readings and the derived core/surface/ambient values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ..exception import LengthError
from .bitfield import BitField, decode_fixed, encode_fixed

__all__ = [
    "SENSOR_COUNT",
    "RAW_TEMPERATURE_BYTES",
    "INVALID_RAW",
    "raw_to_celsius",
    "celsius_to_raw",
    "celsius_to_fahrenheit",
    "fahrenheit_to_celsius",
    "ProbeTemperatures",
    "VirtualSensorSelection",
    "VirtualTemperatures",
    "compute_virtual_temperatures",
]

SENSOR_COUNT = 8
RAW_TEMPERATURE_BITS = 13
RAW_TEMPERATURE_BYTES = 13  # 8 x 13 bits

INVALID_RAW = 0x1FFF
MAX_VALID_RAW = 0x1FFE

TEMPERATURE_SCALE = 0.05
TEMPERATURE_OFFSET = -20.0

_SENSOR_FIELDS = tuple(
    BitField(i * RAW_TEMPERATURE_BITS, RAW_TEMPERATURE_BITS) for i in range(SENSOR_COUNT)
)


def raw_to_celsius(raw: int) -> Optional[float]:
    """Convert a 13-bit reading to °C; the sentinel yields ``None``."""
    if raw >= INVALID_RAW:
        return None
    return decode_fixed(raw, TEMPERATURE_SCALE, TEMPERATURE_OFFSET)


def celsius_to_raw(celsius: Optional[float]) -> int:
    """Convert °C back to a 13-bit reading. ``None`` encodes as the sentinel."""
    if celsius is None:
        return INVALID_RAW
    return encode_fixed(
        celsius, TEMPERATURE_SCALE, TEMPERATURE_OFFSET, maximum=MAX_VALID_RAW
    )


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9.0 / 5.0 + 32.0


def fahrenheit_to_celsius(fahrenheit: float) -> float:
    return (fahrenheit - 32.0) * 5.0 / 9.0


@dataclass(frozen=True)
class ProbeTemperatures:
    """The eight raw thermistor readings, T1 (tip) to T8 (handle)."""

    values: tuple[int, ...] = (INVALID_RAW,) * SENSOR_COUNT

    @classmethod
    def from_raw_data(cls, data: bytes | bytearray) -> "ProbeTemperatures":
        if len(data) < RAW_TEMPERATURE_BYTES:
            raise LengthError("temperature block", RAW_TEMPERATURE_BYTES, len(data))
        return cls(tuple(f.read(data) for f in _SENSOR_FIELDS))

    @classmethod
    def from_celsius(cls, temps: Sequence[Optional[float]]) -> "ProbeTemperatures":
        if len(temps) != SENSOR_COUNT:
            raise ValueError(f"Expected {SENSOR_COUNT} temperatures, got {len(temps)}")
        return cls(tuple(celsius_to_raw(t) for t in temps))

    def to_raw_data(self) -> bytes:
        buf = bytearray(RAW_TEMPERATURE_BYTES)
        for field, raw in zip(_SENSOR_FIELDS, self.values):
            field.write(buf, raw)
        return bytes(buf)

    def get(self, index: int) -> Optional[float]:
        """Temperature of sensor ``index`` (0-based) in °C."""
        if not 0 <= index < SENSOR_COUNT:
            return None
        return raw_to_celsius(self.values[index])

    @property
    def celsius(self) -> list[Optional[float]]:
        return [raw_to_celsius(v) for v in self.values]

    @property
    def fahrenheit(self) -> list[Optional[float]]:
        return [None if c is None else celsius_to_fahrenheit(c) for c in self.celsius]

    @property
    def valid_celsius(self) -> list[float]:
        return [c for c in self.celsius if c is not None]

    def max_temperature(self) -> Optional[float]:
        return max(self.valid_celsius, default=None)

    def min_temperature(self) -> Optional[float]:
        return min(self.valid_celsius, default=None)

    def average_temperature(self) -> Optional[float]:
        valid = self.valid_celsius
        if not valid:
            return None
        return sum(valid) / len(valid)


# ────────────────────────────────────────────────────────────────
# Virtual sensors
# ────────────────────────────────────────────────────────────────

CORE_SENSOR_FIELD = BitField(0, 3)
SURFACE_SENSOR_FIELD = BitField(3, 2)
AMBIENT_SENSOR_FIELD = BitField(5, 2)

# Physical sensors each virtual channel may resolve to.
CORE_SENSORS = range(0, SENSOR_COUNT)  # T1-T8
SURFACE_SENSORS = range(3, 7)     # T4-T7
AMBIENT_SENSORS = range(4, 8)     # T5-T8


@dataclass(frozen=True)
class VirtualSensorSelection:
    """Which physical sensor backs each virtual reading (0-based indices).

    An index is ``None`` when the packed selector does not resolve to a
    sensor that channel may use.
    """

    core_sensor: Optional[int] = 0
    surface_sensor: Optional[int] = 3
    ambient_sensor: Optional[int] = 7

    @classmethod
    def from_raw(cls, selector: int) -> "VirtualSensorSelection":
        """Decode the 7-bit selector shared by advertising and status data."""
        buf = bytes([selector & 0x7F])
        core = CORE_SENSOR_FIELD.read(buf)
        surface = SURFACE_SENSOR_FIELD.read(buf) + SURFACE_SENSORS.start
        ambient = AMBIENT_SENSOR_FIELD.read(buf) + AMBIENT_SENSORS.start
        return cls(
            core_sensor=core if core in CORE_SENSORS else None,
            surface_sensor=surface if surface in SURFACE_SENSORS else None,
            ambient_sensor=ambient if ambient in AMBIENT_SENSORS else None,
        )

    def to_raw(self) -> int:
        buf = bytearray(1)
        CORE_SENSOR_FIELD.write(buf, self.core_sensor or 0)
        SURFACE_SENSOR_FIELD.write(
            buf, (self.surface_sensor or SURFACE_SENSORS.start) - SURFACE_SENSORS.start
        )
        AMBIENT_SENSOR_FIELD.write(
            buf, (self.ambient_sensor or AMBIENT_SENSORS.start) - AMBIENT_SENSORS.start
        )
        return buf[0]


@dataclass(frozen=True)
class VirtualTemperatures:
    core: Optional[float] = None
    surface: Optional[float] = None
    ambient: Optional[float] = None
    sensor_selection: VirtualSensorSelection = VirtualSensorSelection()


def compute_virtual_temperatures(
    temperatures: ProbeTemperatures, selection: VirtualSensorSelection
) -> VirtualTemperatures:
    """Resolve the core/surface/ambient readings from the selected sensors."""

    def pick(index: Optional[int]) -> Optional[float]:
        return None if index is None else temperatures.get(index)

    return VirtualTemperatures(
        core=pick(selection.core_sensor),
        surface=pick(selection.surface_sensor),
        ambient=pick(selection.ambient_sensor),
        sensor_selection=selection,
    )
