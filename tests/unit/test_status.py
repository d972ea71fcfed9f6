"""Unit tests for the session-status decoder."""

from __future__ import annotations

import pytest

from custom_components.combustion.combustion_probe_control.advertising import (
    BatteryStatus,
    ProbeColor,
)
from custom_components.combustion.combustion_probe_control.food_safety import (
    FoodSafeMode,
    IntegratedProduct,
)
from custom_components.combustion.combustion_probe_control.prediction import (
    PredictionMode,
    PredictionState,
    PredictionType,
)
from custom_components.combustion.combustion_probe_control.preferences import PowerMode
from custom_components.combustion.combustion_probe_control.status import ProbeStatus
from custom_components.combustion.exception import LengthError


def test_minimum_payload_has_no_optional_sections(make_status) -> None:
    status = ProbeStatus.from_bytes(make_status(30))
    assert status.food_safe_config is None
    assert status.food_safe_status is None
    assert status.overheating is None
    assert status.thermometer_preferences is None
    assert status.alarm_config is None
    assert status.min_sequence_number == 10
    assert status.max_sequence_number == 25


def test_one_byte_short_fails(make_status) -> None:
    with pytest.raises(LengthError):
        ProbeStatus.from_bytes(make_status(29))


def test_core_fields(make_status) -> None:
    status = ProbeStatus.from_bytes(make_status(30, selector=2))
    assert status.color is ProbeColor.BLUE
    assert status.probe_id == 2
    assert status.battery_status is BatteryStatus.LOW
    assert status.temperatures.get(0) == pytest.approx(25.0)
    assert status.virtual_temperatures.core == pytest.approx(23.0)
    assert status.available_log_count == 16
    assert status.has_logs


def test_prediction_block(make_status) -> None:
    prediction = ProbeStatus.from_bytes(make_status(30)).prediction
    assert prediction.state is PredictionState.PREDICTING
    assert prediction.mode is PredictionMode.TIME_TO_REMOVAL
    assert prediction.prediction_type is PredictionType.REMOVAL
    assert prediction.set_point_temperature == pytest.approx(54.5)
    assert prediction.heat_start_temperature == pytest.approx(20.0)
    assert prediction.prediction_seconds == 600
    assert prediction.estimated_core_temperature == pytest.approx(45.0)


def test_full_payload_sections(make_status) -> None:
    status = ProbeStatus.from_bytes(make_status(94))
    assert status.food_safe_config is not None
    assert status.food_safe_config.mode is FoodSafeMode.INTEGRATED
    assert status.food_safe_config.product is IntegratedProduct.POULTRY
    assert status.food_safe_status is not None
    assert status.food_safe_status.log_reduction == pytest.approx(3.5)
    assert status.food_safe_status.log_sequence_number == 77
    assert status.overheating is not None
    assert status.overheating.overheating_indices() == [0]
    assert status.thermometer_preferences is not None
    assert status.thermometer_preferences.power_mode is PowerMode.ALWAYS_ON
    assert status.alarm_config is not None
    assert status.alarm_config.core_high.set
    assert status.alarm_config.core_high.temperature == pytest.approx(70.0)


@pytest.mark.parametrize(
    ("length", "config", "fs_status", "overheat", "prefs", "alarms"),
    [
        (39, False, False, False, False, False),
        (40, True, False, False, False, False),
        (48, True, True, False, False, False),
        (49, True, True, True, False, False),
        (93, True, True, True, True, False),
    ],
)
def test_truncation_points(make_status, length, config, fs_status, overheat, prefs, alarms) -> None:
    status = ProbeStatus.from_bytes(make_status(length))
    assert (status.food_safe_config is not None) is config
    assert (status.food_safe_status is not None) is fs_status
    assert (status.overheating is not None) is overheat
    assert (status.thermometer_preferences is not None) is prefs
    assert (status.alarm_config is not None) is alarms


def test_empty_log_range(make_status) -> None:
    status = ProbeStatus.from_bytes(make_status(30, min_seq=8, max_seq=3))
    assert not status.has_logs
    assert status.available_log_count == 0
