"""Shared payload builders for probe codec tests."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import pytest

from custom_components.combustion.combustion_probe_control.advertising import (
    ProbeColor,
    ProbeMode,
    encode_mode_color_id,
)
from custom_components.combustion.combustion_probe_control.alarms import AlarmConfig
from custom_components.combustion.combustion_probe_control.bitfield import write_bits
from custom_components.combustion.combustion_probe_control.food_safety import (
    FoodSafeConfig,
    FoodSafeState,
    FoodSafeStatus,
    IntegratedProduct,
)
from custom_components.combustion.combustion_probe_control.temperatures import ProbeTemperatures

SERIAL = 0x10005205
DEFAULT_TEMPS = (25.0, 24.0, 23.0, 22.0, 21.0, 20.0, 19.0, 18.0)


def build_advertising(
    *,
    serial: int = SERIAL,
    temps: Sequence[Optional[float]] = DEFAULT_TEMPS,
    mode: int = 0,
    color: int = 2,
    probe_id: int = 3,
    battery: int = 0,
    selector: int = 0,
    product: int = 1,
    overheating: Optional[int] = None,
) -> bytes:
    buf = bytearray(22 if overheating is not None else 20)
    buf[0] = product
    buf[1:5] = serial.to_bytes(4, "little")
    buf[5:18] = ProbeTemperatures.from_celsius(temps).to_raw_data()
    buf[18] = encode_mode_color_id(ProbeMode(mode), ProbeColor(color), probe_id)
    buf[19] = battery | (selector << 1)
    if overheating is not None:
        buf[21] = overheating
    return bytes(buf)


def build_prediction_block(
    *,
    state: int = 3,
    mode: int = 1,
    prediction_type: int = 1,
    set_point_raw: int = 545,
    heat_start_raw: int = 200,
    seconds: int = 600,
    estimated_core_raw: int = 650,
) -> bytes:
    buf = bytearray(7)
    write_bits(buf, 0, 4, state)
    write_bits(buf, 4, 2, mode)
    write_bits(buf, 6, 2, prediction_type)
    write_bits(buf, 8, 10, set_point_raw)
    write_bits(buf, 18, 10, heat_start_raw)
    write_bits(buf, 28, 17, seconds)
    write_bits(buf, 45, 11, estimated_core_raw)
    return bytes(buf)


FULL_STATUS_FOOD_SAFE = FoodSafeConfig.integrated(IntegratedProduct.POULTRY)
FULL_STATUS_FOOD_SAFE_STATUS = FoodSafeStatus(FoodSafeState.NOT_SAFE, 3.5, 120, 77)
FULL_STATUS_ALARMS = AlarmConfig().with_core_high_alarm(70.0)


def build_status(
    length: int = 94,
    *,
    min_seq: int = 10,
    max_seq: int = 25,
    temps: Sequence[Optional[float]] = DEFAULT_TEMPS,
    mode: int = 0,
    color: int = 4,
    probe_id: int = 2,
    battery: int = 1,
    selector: int = 0,
    prediction: Optional[bytes] = None,
    overheating: int = 0x01,
    preferences: int = 0x01,
) -> bytes:
    buf = bytearray(94)
    buf[0:4] = min_seq.to_bytes(4, "little")
    buf[4:8] = max_seq.to_bytes(4, "little")
    buf[8:21] = ProbeTemperatures.from_celsius(temps).to_raw_data()
    buf[21] = encode_mode_color_id(ProbeMode(mode), ProbeColor(color), probe_id)
    buf[22] = battery | (selector << 1)
    buf[23:30] = prediction if prediction is not None else build_prediction_block()
    buf[30:40] = FULL_STATUS_FOOD_SAFE.to_bytes()
    buf[40:48] = FULL_STATUS_FOOD_SAFE_STATUS.to_bytes()
    buf[48] = overheating
    buf[49] = preferences
    buf[50:94] = FULL_STATUS_ALARMS.to_bytes()
    return bytes(buf[:length])


@pytest.fixture
def make_advertising() -> Callable[..., bytes]:
    return build_advertising


@pytest.fixture
def make_status() -> Callable[..., bytes]:
    return build_status


@pytest.fixture
def make_prediction_block() -> Callable[..., bytes]:
    return build_prediction_block


class FakeClock:
    """Manually advanced clock for reconciler timing."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(100.0)
