"""Unit tests for the probe registry."""

from __future__ import annotations

import pytest

from custom_components.combustion.combustion_probe_control.manager import ProbeManager


@pytest.fixture
def manager(clock) -> ProbeManager:
    return ProbeManager(max_probes=3, stale_timeout=15.0, clock=clock)


def test_first_sight_creates_entry(manager, make_advertising) -> None:
    state = manager.handle_advertisement("AA:BB:CC:00:00:01", make_advertising(serial=0x1000ABCD), -50)
    assert state is not None
    assert state.rssi == -50
    assert len(manager) == 1
    assert "1000ABCD" in manager
    entry = manager.get("1000abcd")
    assert entry is not None
    assert entry.identity == "AA:BB:CC:00:00:01"
    assert entry.state.probe_id == 3


def test_repeat_advertisement_updates_same_entry(manager, make_advertising) -> None:
    manager.handle_advertisement("addr-1", make_advertising(probe_id=1), -70)
    manager.handle_advertisement("addr-2", make_advertising(probe_id=2), -60)
    assert len(manager) == 1
    entry = manager.probes()[0]
    assert entry.identity == "addr-2"
    assert entry.state.probe_id == 2
    assert entry.state.rssi == -60


def test_non_probe_and_garbage_are_ignored(manager, make_advertising) -> None:
    assert manager.handle_advertisement("addr", make_advertising(product=5)) is None
    assert manager.handle_advertisement("addr", b"\x01\x02\x03") is None
    assert len(manager) == 0


def test_nearest_probe(manager, make_advertising) -> None:
    assert manager.nearest_probe() is None
    manager.handle_advertisement("a", make_advertising(serial=1), -80)
    manager.handle_advertisement("b", make_advertising(serial=2), -45)
    manager.handle_advertisement("c", make_advertising(serial=3))
    assert manager.nearest_probe().serial == "00000002"
    assert [e.serial for e in manager.probes_by_signal()] == ["00000002", "00000001", "00000003"]


def test_probe_limit(manager, make_advertising) -> None:
    for serial in range(1, 4):
        assert manager.handle_advertisement("x", make_advertising(serial=serial)) is not None
    assert manager.handle_advertisement("x", make_advertising(serial=4)) is None
    assert len(manager) == 3
    assert manager.handle_advertisement("x", make_advertising(serial=2)) is not None


def test_stale_probes_and_removal(manager, clock, make_advertising) -> None:
    manager.handle_advertisement("a", make_advertising(serial=1))
    clock.advance(10.0)
    manager.handle_advertisement("b", make_advertising(serial=2))
    clock.advance(10.0)
    assert [e.serial for e in manager.stale_probes()] == ["00000001"]

    removed = manager.remove("00000001")
    assert removed is not None
    assert manager.remove("00000001") is None
    assert len(manager) == 1
    manager.clear()
    assert len(manager) == 0
