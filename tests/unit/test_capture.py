"""Unit tests for payload capture and replay."""

from __future__ import annotations

import base64
import io

import pytest

from custom_components.combustion.combustion_probe_control.capture import (
    KIND_ADVERTISING,
    KIND_STATUS,
    iter_records,
    make_record,
    replay,
    write_jsonl,
)


def test_jsonl_round_trip() -> None:
    rows = [make_record(KIND_ADVERTISING, b"\x01\x02", 1.23456, rssi=-40), make_record(KIND_STATUS, b"\xff", 2.0)]
    out = io.StringIO()
    write_jsonl(rows, out)
    assert out.getvalue().count("\n") == 2
    out.seek(0)
    back = list(iter_records(out))
    assert back == rows
    assert back[0]["t"] == 1.235
    assert back[0]["bytes_hex"] == "0102"
    assert "rssi" not in back[1]


def test_json_array_input() -> None:
    stream = io.StringIO('  [{"kind": "status", "bytes_hex": "00"}, {"kind": "x"}]')
    assert [r["kind"] for r in iter_records(stream)] == ["status", "x"]
    assert list(iter_records(io.StringIO("   \n"))) == []


def test_replay_applies_rows_in_order(make_advertising, make_status) -> None:
    rows = [
        make_record(KIND_ADVERTISING, make_advertising(probe_id=2), 0.0, rssi=-55),
        {"t": 1.0, "kind": KIND_STATUS, "bytes_b64": base64.b64encode(make_status(94)).decode()},
        make_record(KIND_ADVERTISING, make_advertising(serial=0x99), 1.5),
        make_record(KIND_STATUS, b"\x00\x01", 2.0),
        {"t": 2.5, "kind": "scan", "bytes_hex": "00"},
    ]
    result = replay(rows)
    assert result.applied == 2
    assert result.skipped == 3
    state = result.state
    assert state.serial_number == 0x10005205
    assert state.rssi == -55
    assert state.probe_id == 2
    assert state.last_update == pytest.approx(1.0)
    assert state.alarm_config is not None
    assert state.food_safe is not None


def test_replay_of_nothing() -> None:
    result = replay([], serial_number=7)
    assert result.applied == 0
    assert result.state.serial_number == 7
    assert result.state.last_update is None


def test_replay_ignores_other_products_before_locking_on(make_advertising) -> None:
    rows = [
        make_record(KIND_ADVERTISING, make_advertising(product=4, serial=0xABCDEF01, probe_id=8), 0.0),
        make_record(KIND_ADVERTISING, make_advertising(probe_id=3), 0.5),
        make_record(KIND_ADVERTISING, make_advertising(probe_id=3), 1.0),
    ]
    result = replay(rows)
    assert result.applied == 2
    assert result.skipped == 1
    assert result.state.serial_number == 0x10005205
    assert result.state.probe_id == 3


def test_replay_holds_status_until_serial_is_known(make_advertising, make_status) -> None:
    rows = [
        make_record(KIND_STATUS, make_status(94), 0.5),
        make_record(KIND_ADVERTISING, make_advertising(), 1.0),
    ]
    result = replay(rows)
    assert result.applied == 2
    assert result.skipped == 0
    assert result.state.serial_number == 0x10005205
    assert result.state.serial_number_string == "10005205"
    assert result.state.alarm_config is not None
    assert result.state.last_update == pytest.approx(1.0)


def test_replay_of_status_only_capture(make_status) -> None:
    result = replay([make_record(KIND_STATUS, make_status(94), 2.0)])
    assert result.applied == 1
    assert result.state.serial_number == 0
    assert result.state.last_update == pytest.approx(2.0)
