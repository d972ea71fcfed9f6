"""CLI tests for the offline decoders and probe commands."""

from __future__ import annotations

import asyncio

import pytest
from typer.testing import CliRunner

from custom_components.combustion.combustion_probe_control import capture, combustionctl
from custom_components.combustion.combustion_probe_control import protocol
from custom_components.combustion.combustion_probe_control.alarms import AlarmConfig

runner = CliRunner()


class RecordingDevice:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.alarm_config = AlarmConfig().with_low_alarm(0, 10.0)

    @property
    def state(self):
        return type("State", (), {"alarm_config": self.alarm_config})()

    async def set_probe_id(self, probe_id):
        self.calls.append(("set_probe_id", probe_id))

    async def set_alarms(self, config):
        self.calls.append(("set_alarms", config))


@pytest.fixture
def device(monkeypatch) -> RecordingDevice:
    fake = RecordingDevice()

    def fake_run(ctx, serial, func, timeout=0.0):
        return asyncio.run(func(fake))

    monkeypatch.setattr(combustionctl, "_run_with_probe", fake_run)
    return fake


def test_decode_advertising(make_advertising) -> None:
    result = runner.invoke(combustionctl.app, ["decode-advertising", make_advertising().hex()])
    assert result.exit_code == 0, result.output
    assert "10005205" in result.output
    assert "PREDICTIVE_PROBE" in result.output


def test_decode_advertising_short_payload() -> None:
    result = runner.invoke(combustionctl.app, ["decode-advertising", "01 02 03"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_decode_advertising_bad_hex() -> None:
    result = runner.invoke(combustionctl.app, ["decode-advertising", "012"])
    assert result.exit_code == 2


def test_decode_status(make_status) -> None:
    result = runner.invoke(combustionctl.app, ["decode-status", make_status(94).hex()])
    assert result.exit_code == 0, result.output
    assert "log records available: 16" in result.output
    assert "ALWAYS_ON" in result.output


def test_decode_status_short_payload(make_status) -> None:
    result = runner.invoke(combustionctl.app, ["decode-status", make_status(30).hex()[:-2]])
    assert result.exit_code == 1


def test_decode_frame() -> None:
    frames = protocol.build_silence_alarms_request().to_bytes() + protocol.build_set_probe_id_request(2).to_bytes()
    result = runner.invoke(combustionctl.app, ["decode-frame", frames.hex()])
    assert result.exit_code == 0, result.output
    assert "SILENCE_ALARMS" in result.output
    assert "SET_PROBE_ID" in result.output


def test_decode_frame_bad_crc() -> None:
    data = bytearray(protocol.build_set_probe_id_request(2).to_bytes())
    data[-1] ^= 0x01
    result = runner.invoke(combustionctl.app, ["decode-frame", data.hex()])
    assert result.exit_code == 1
    assert "CRC" in result.output


def test_replay(tmp_path, make_advertising) -> None:
    path = tmp_path / "capture.jsonl"
    with path.open("w", encoding="utf-8") as out:
        capture.write_jsonl([capture.make_record(capture.KIND_ADVERTISING, make_advertising(), 0.5)], out)
    result = runner.invoke(combustionctl.app, ["replay", str(path)])
    assert result.exit_code == 0, result.output
    assert "applied 1 rows, skipped 0" in result.output


def test_set_id(device) -> None:
    result = runner.invoke(combustionctl.app, ["set-id", "10005205", "5"])
    assert result.exit_code == 0, result.output
    assert device.calls == [("set_probe_id", 5)]


def test_set_id_out_of_range(device) -> None:
    result = runner.invoke(combustionctl.app, ["set-id", "10005205", "9"])
    assert result.exit_code == 2
    assert device.calls == []


def test_set_alarm_keeps_other_entries(device) -> None:
    result = runner.invoke(combustionctl.app, ["set-alarm", "10005205", "core", "--high", "70"])
    assert result.exit_code == 0, result.output
    (name, config), = device.calls
    assert name == "set_alarms"
    assert config.core_high.set
    assert config.core_high.temperature == pytest.approx(70.0)
    assert config.low[0].set
    assert "Core: high 70.0" in result.output


def test_set_alarm_needs_an_option(device) -> None:
    result = runner.invoke(combustionctl.app, ["set-alarm", "10005205", "T1"])
    assert result.exit_code == 2
    assert device.calls == []
