"""Unit tests for the thermometer preferences byte."""

from __future__ import annotations

import pytest

from custom_components.combustion.combustion_probe_control.preferences import (
    PowerMode,
    ThermometerPreferences,
)
from custom_components.combustion.exception import LengthError


def test_reserved_bits_survive_round_trip() -> None:
    prefs = ThermometerPreferences.from_byte(0xAD)
    assert prefs.power_mode is PowerMode.ALWAYS_ON
    assert prefs.is_always_on
    assert prefs.reserved == 43
    assert prefs.to_byte() == 0xAD
    assert prefs.to_bytes() == b"\xAD"


@pytest.mark.parametrize("value", [0x02, 0x03])
def test_reserved_power_modes_read_as_normal(value: int) -> None:
    assert ThermometerPreferences.from_byte(value).power_mode is PowerMode.NORMAL


def test_from_bytes() -> None:
    assert ThermometerPreferences.from_bytes(b"\x01\xFF").power_mode is PowerMode.ALWAYS_ON
    with pytest.raises(LengthError):
        ThermometerPreferences.from_bytes(b"")
