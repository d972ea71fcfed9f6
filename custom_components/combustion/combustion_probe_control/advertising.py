# custom_components/combustion/combustion_probe_control/advertising.py
"""Decoder for the manufacturer-specific advertising payload.

Layout (company id already stripped by the BLE stack)::

    0       product type
    1-4     serial number (u32 LE)
    5-17    8 x 13-bit raw temperatures
    18      mode (bits 0-1) | color (bits 2-4) | probe id (bits 5-7)
    19      battery (bit 0) | virtual sensor selection (bits 1-7)
    20      network information (ignored)
    21      overheating bitmask (optional)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

from ..exception import LengthError
from .bitfield import BitField
from .temperatures import (
    RAW_TEMPERATURE_BYTES,
    SENSOR_COUNT,
    ProbeTemperatures,
    VirtualSensorSelection,
    VirtualTemperatures,
    compute_virtual_temperatures,
)

__all__ = [
    "ADVERTISING_MIN_LENGTH",
    "ProductType",
    "ProbeMode",
    "ProbeColor",
    "BatteryStatus",
    "Overheating",
    "AdvertisingData",
    "decode_mode_color_id",
    "encode_mode_color_id",
    "decode_battery_virtual",
    "serial_number_string",
]

ADVERTISING_MIN_LENGTH = 20

_SERIAL = slice(1, 5)
_TEMPERATURES = slice(5, 5 + RAW_TEMPERATURE_BYTES)
_MODE_COLOR_ID = 18
_BATTERY_VIRTUAL = 19
_OVERHEATING = 21

MODE_FIELD = BitField(0, 2)
COLOR_FIELD = BitField(2, 3)
ID_FIELD = BitField(5, 3)
BATTERY_FIELD = BitField(0, 1)
VIRTUAL_SELECTION_FIELD = BitField(1, 7)


class ProductType(IntEnum):
    UNKNOWN = 0
    PREDICTIVE_PROBE = 1
    MEATNET_REPEATER = 2
    GIANT_GRILL_GAUGE = 3
    DISPLAY = 4
    BOOSTER = 5

    @classmethod
    def from_raw(cls, value: int) -> "ProductType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ProbeMode(IntEnum):
    NORMAL = 0
    INSTANT_READ = 1
    RESERVED = 2
    ERROR = 3


class ProbeColor(IntEnum):
    YELLOW = 0
    GREY = 1
    RED = 2
    ORANGE = 3
    BLUE = 4
    GREEN = 5
    PURPLE = 6
    PINK = 7


class BatteryStatus(IntEnum):
    OK = 0
    LOW = 1


def serial_number_string(serial_number: int) -> str:
    return f"{serial_number:08X}"


def decode_mode_color_id(value: int) -> tuple[ProbeMode, ProbeColor, int]:
    """Split the mode/color/id byte. Probe ids are 1-8."""
    buf = bytes([value & 0xFF])
    return (
        ProbeMode(MODE_FIELD.read(buf)),
        ProbeColor(COLOR_FIELD.read(buf)),
        ID_FIELD.read(buf) + 1,
    )


def encode_mode_color_id(mode: ProbeMode, color: ProbeColor, probe_id: int) -> int:
    buf = bytearray(1)
    MODE_FIELD.write(buf, int(mode))
    COLOR_FIELD.write(buf, int(color))
    ID_FIELD.write(buf, probe_id - 1)
    return buf[0]


def decode_battery_virtual(value: int) -> tuple[BatteryStatus, VirtualSensorSelection]:
    buf = bytes([value & 0xFF])
    return (
        BatteryStatus(BATTERY_FIELD.read(buf)),
        VirtualSensorSelection.from_raw(VIRTUAL_SELECTION_FIELD.read(buf)),
    )


@dataclass(frozen=True)
class Overheating:
    """Bitmask of sensors above their safe operating temperature."""

    mask: int = 0

    def is_sensor_overheating(self, index: int) -> bool:
        if not 0 <= index < SENSOR_COUNT:
            return False
        return bool(self.mask & (1 << index))

    def is_any_overheating(self) -> bool:
        return self.mask != 0

    def is_internal_overheating(self) -> bool:
        """T1-T4."""
        return bool(self.mask & 0x0F)

    def is_handle_overheating(self) -> bool:
        """T5-T8."""
        return bool(self.mask & 0xF0)

    def overheating_indices(self) -> list[int]:
        return [i for i in range(SENSOR_COUNT) if self.mask & (1 << i)]


@dataclass(frozen=True)
class AdvertisingData:
    product_type: ProductType
    serial_number: int
    temperatures: ProbeTemperatures
    mode: ProbeMode
    color: ProbeColor
    probe_id: int
    battery_status: BatteryStatus
    virtual_sensors: VirtualSensorSelection
    overheating: Overheating = field(default_factory=Overheating)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "AdvertisingData":
        if len(data) < ADVERTISING_MIN_LENGTH:
            raise LengthError("advertising data", ADVERTISING_MIN_LENGTH, len(data))
        mode, color, probe_id = decode_mode_color_id(data[_MODE_COLOR_ID])
        battery, virtual = decode_battery_virtual(data[_BATTERY_VIRTUAL])
        overheating = Overheating(data[_OVERHEATING]) if len(data) > _OVERHEATING else Overheating()
        return cls(
            product_type=ProductType.from_raw(data[0]),
            serial_number=int.from_bytes(bytes(data[_SERIAL]), "little"),
            temperatures=ProbeTemperatures.from_raw_data(data[_TEMPERATURES]),
            mode=mode,
            color=color,
            probe_id=probe_id,
            battery_status=battery,
            virtual_sensors=virtual,
            overheating=overheating,
        )

    @property
    def serial_number_string(self) -> str:
        return serial_number_string(self.serial_number)

    @property
    def is_predictive_probe(self) -> bool:
        return self.product_type is ProductType.PREDICTIVE_PROBE

    @property
    def virtual_temperatures(self) -> VirtualTemperatures:
        return compute_virtual_temperatures(self.temperatures, self.virtual_sensors)

    @property
    def core_temperature(self) -> Optional[float]:
        return self.virtual_temperatures.core

    @property
    def is_instant_read(self) -> bool:
        return self.mode is ProbeMode.INSTANT_READ

    @property
    def is_battery_low(self) -> bool:
        return self.battery_status is BatteryStatus.LOW
