"""Unit tests for advertisement routing in ProbeScanner."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from custom_components.combustion.combustion_probe_control import scanner as scanner_module
from custom_components.combustion.combustion_probe_control.device import ProbeDevice
from custom_components.combustion.combustion_probe_control.scanner import ProbeScanner
from custom_components.combustion.const import COMBUSTION_MANUFACTURER_ID
from custom_components.combustion.exception import ProbeNotFoundError


def _adv(payload: bytes, rssi: int = -60, company: int = COMBUSTION_MANUFACTURER_ID):
    return SimpleNamespace(manufacturer_data={company: payload}, rssi=rssi)


def _ble(address: str):
    return SimpleNamespace(address=address, name=None)


class FakeBleakScanner:
    """Delivers queued advertisements once started."""

    pending: list = []
    instances: list = []

    def __init__(self, detection_callback) -> None:
        self._callback = detection_callback
        self.stopped = False
        FakeBleakScanner.instances.append(self)

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        for device, adv in FakeBleakScanner.pending:
            loop.call_soon(self._callback, device, adv)

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def fake_bleak(monkeypatch):
    FakeBleakScanner.pending = []
    FakeBleakScanner.instances = []
    monkeypatch.setattr(scanner_module, "BleakScanner", FakeBleakScanner)
    return FakeBleakScanner


def test_detection_routes_combustion_payloads(make_advertising) -> None:
    seen = []
    scanner = ProbeScanner(on_payload=lambda addr, data, rssi: seen.append((addr, rssi)))
    scanner.detection_callback(_ble("AA:01"), _adv(make_advertising(), -48))
    scanner.detection_callback(_ble("AA:02"), _adv(make_advertising(serial=2), company=0x004C))
    assert seen == [("AA:01", -48)]
    assert len(scanner.manager) == 1
    assert scanner.ble_device("10005205").address == "AA:01"
    assert scanner.manager.get("10005205").state.rssi == -48


def test_non_probe_payload_is_recorded_but_not_managed(make_advertising) -> None:
    seen = []
    scanner = ProbeScanner(on_payload=lambda addr, data, rssi: seen.append(data))
    scanner.detection_callback(_ble("AA:03"), _adv(make_advertising(product=2)))
    assert len(seen) == 1
    assert len(scanner.manager) == 0
    assert scanner.ble_device("10005205") is None


def test_find_probe(fake_bleak, make_advertising) -> None:
    fake_bleak.pending = [
        (_ble("AA:01"), _adv(make_advertising(serial=1))),
        (_ble("AA:02"), _adv(make_advertising(serial=0x1000ABCD))),
    ]

    async def scenario():
        scanner = ProbeScanner()
        return await scanner.find_probe("1000abcd", timeout=1.0)

    device = asyncio.run(scenario())
    assert device.address == "AA:02"
    assert fake_bleak.instances[0].stopped


def test_find_probe_times_out(fake_bleak) -> None:
    async def scenario():
        await ProbeScanner().find_probe("DEADBEEF", timeout=0.05)

    with pytest.raises(ProbeNotFoundError):
        asyncio.run(scenario())
    assert fake_bleak.instances[0].stopped


def test_find_probe_leaves_outer_scan_running(fake_bleak, make_advertising) -> None:
    fake_bleak.pending = [(_ble("AA:01"), _adv(make_advertising()))]

    async def scenario():
        async with ProbeScanner() as scanner:
            await scanner.find_probe("10005205", timeout=1.0)
            return fake_bleak.instances[0].stopped

    assert asyncio.run(scenario()) is False
    assert fake_bleak.instances[0].stopped


def test_advertisement_data_reaches_tracked_session(make_advertising) -> None:
    scanner = ProbeScanner()
    scanner.detection_callback(_ble("AA:01"), _adv(make_advertising(), -48))
    assert scanner.advertisement_data("10005205").rssi == -48

    entry = scanner.manager.get("10005205")
    session = ProbeDevice("AA:01", entry.reconciler, scanner.advertisement_data("10005205"))
    assert session.rssi == -48
    scanner.track("10005205", session)
    scanner.detection_callback(_ble("AA:09"), _adv(make_advertising(), -71))
    assert session.rssi == -71
    assert session.address == "AA:09"
    assert scanner.advertisement_data("10005206") is None
