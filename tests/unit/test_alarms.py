"""Unit tests for the high/low alarm table."""

from __future__ import annotations

import pytest

from custom_components.combustion.combustion_probe_control.alarms import (
    ALARM_CONFIG_BYTES,
    CORE_INDEX,
    AlarmConfig,
    AlarmStatus,
    sensor_name,
)
from custom_components.combustion.exception import LengthError, ParameterOutOfRangeError


def test_alarm_word_layout() -> None:
    alarm = AlarmStatus(set=True, tripped=False, alarming=True, temperature=63.0)
    word = 1 | 4 | (830 << 3)
    assert alarm.to_bytes() == word.to_bytes(2, "little")
    decoded = AlarmStatus.from_bytes(alarm.to_bytes())
    assert decoded.set and decoded.alarming and not decoded.tripped
    assert decoded.temperature == pytest.approx(63.0)


def test_alarm_status_needs_two_bytes() -> None:
    with pytest.raises(LengthError):
        AlarmStatus.from_bytes(b"\x01")


def test_config_is_forty_four_bytes() -> None:
    config = AlarmConfig()
    assert len(config.to_bytes()) == ALARM_CONFIG_BYTES == 44
    assert not config.any_enabled()
    with pytest.raises(LengthError):
        AlarmConfig.from_bytes(bytes(43))


def test_high_then_low_ordering() -> None:
    config = AlarmConfig().with_high_alarm(0, 100.0).with_low_alarm(10, 5.0)
    raw = config.to_bytes()
    assert AlarmStatus.from_bytes(raw[0:2]).set
    assert AlarmStatus.from_bytes(raw[42:44]).temperature == pytest.approx(5.0)
    decoded = AlarmConfig.from_bytes(raw)
    assert decoded.high[0].temperature == pytest.approx(100.0)
    assert decoded.low[10].set
    assert not decoded.high[10].set


def test_core_alarm_helpers() -> None:
    config = AlarmConfig().with_core_high_alarm(70.0).with_core_low_alarm(2.0)
    assert config.core_high.set
    assert config.core_high.temperature == pytest.approx(70.0)
    assert config.core_low.temperature == pytest.approx(2.0)
    assert config.high[CORE_INDEX] is config.core_high
    cleared = config.with_core_high_alarm(None)
    assert not cleared.core_high.set
    assert cleared.core_high.temperature == pytest.approx(70.0)
    assert config.core_high.set


def test_all_disabled_clears_every_flag() -> None:
    tripped = AlarmStatus(set=True, tripped=True, alarming=True, temperature=50.0)
    config = AlarmConfig(high=(tripped,) * 11, low=(tripped,) * 11)
    assert config.any_tripped()
    assert config.any_alarming()
    assert config.triggered_high_alarms() == list(range(11))
    off = config.all_disabled()
    assert not off.any_enabled()
    assert not off.any_tripped()
    assert off.triggered_low_alarms() == []


@pytest.mark.parametrize("temperature", [-20.5, 800.0])
def test_threshold_out_of_range(temperature: float) -> None:
    with pytest.raises(ParameterOutOfRangeError):
        AlarmStatus.enabled(temperature)


@pytest.mark.parametrize("index", [-1, 11])
def test_index_out_of_range(index: int) -> None:
    with pytest.raises(ParameterOutOfRangeError):
        AlarmConfig().with_high_alarm(index, 50.0)


def test_sensor_names() -> None:
    assert sensor_name(0) == "T1"
    assert sensor_name(CORE_INDEX) == "Core"
    assert sensor_name(10) == "Ambient"
    assert sensor_name(12) == "#12"
