"""Unit tests for raw temperature conversion and virtual sensors."""

from __future__ import annotations

import pytest

from custom_components.combustion.combustion_probe_control.temperatures import (
    INVALID_RAW,
    ProbeTemperatures,
    VirtualSensorSelection,
    celsius_to_fahrenheit,
    celsius_to_raw,
    compute_virtual_temperatures,
    fahrenheit_to_celsius,
    raw_to_celsius,
)
from custom_components.combustion.exception import LengthError


def test_raw_conversion_reference_points() -> None:
    assert raw_to_celsius(400) == pytest.approx(0.0)
    assert raw_to_celsius(2400) == pytest.approx(100.0)
    assert raw_to_celsius(860) == pytest.approx(23.0)
    assert raw_to_celsius(0x1FFF) is None


def test_celsius_round_trip_within_resolution() -> None:
    for celsius in (-20.0, 0.0, 23.4, 54.45, 100.0, 300.0):
        back = raw_to_celsius(celsius_to_raw(celsius))
        assert back == pytest.approx(celsius, abs=0.05)


def test_encoding_never_produces_sentinel() -> None:
    assert celsius_to_raw(None) == INVALID_RAW
    assert celsius_to_raw(1000.0) == 0x1FFE
    assert celsius_to_raw(-40.0) == 0


def test_fahrenheit_helpers() -> None:
    assert celsius_to_fahrenheit(100.0) == pytest.approx(212.0)
    assert fahrenheit_to_celsius(32.0) == pytest.approx(0.0)


def test_sensor_array_packing_preserves_sentinel() -> None:
    temps = ProbeTemperatures.from_celsius([20.0, None, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0])
    raw = temps.to_raw_data()
    assert len(raw) == 13
    decoded = ProbeTemperatures.from_raw_data(raw)
    assert decoded == temps
    assert decoded.get(1) is None
    assert decoded.get(7) == pytest.approx(80.0)
    assert decoded.get(8) is None
    assert decoded.max_temperature() == pytest.approx(80.0)
    assert decoded.min_temperature() == pytest.approx(20.0)


def test_sensor_array_requires_thirteen_bytes() -> None:
    with pytest.raises(LengthError):
        ProbeTemperatures.from_raw_data(bytes(12))


def test_virtual_selection_default_offsets() -> None:
    sel = VirtualSensorSelection.from_raw(0)
    assert (sel.core_sensor, sel.surface_sensor, sel.ambient_sensor) == (0, 3, 4)


def test_virtual_selection_packed_fields() -> None:
    # core 2, surface offset 1 -> T5, ambient offset 3 -> T8
    sel = VirtualSensorSelection.from_raw(2 | (1 << 3) | (3 << 5))
    assert (sel.core_sensor, sel.surface_sensor, sel.ambient_sensor) == (2, 4, 7)
    assert VirtualSensorSelection.from_raw(sel.to_raw()) == sel


@pytest.mark.parametrize(("selector", "expected"), [(6, 70.0), (7, 80.0)])
def test_core_selector_reaches_last_sensors(selector: int, expected: float) -> None:
    sel = VirtualSensorSelection.from_raw(selector)
    assert sel.core_sensor == selector
    temps = ProbeTemperatures.from_celsius([10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0])
    virtual = compute_virtual_temperatures(temps, sel)
    assert virtual.core == pytest.approx(expected)
    assert virtual.surface == pytest.approx(40.0)


def test_compute_virtual_temperatures() -> None:
    temps = ProbeTemperatures.from_celsius([10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0])
    virtual = compute_virtual_temperatures(temps, VirtualSensorSelection(1, 5, 7))
    assert virtual.core == pytest.approx(20.0)
    assert virtual.surface == pytest.approx(60.0)
    assert virtual.ambient == pytest.approx(80.0)
