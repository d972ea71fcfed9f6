# custom_components/combustion/combustion_probe_control/scanner.py
"""Passive discovery of probes through :class:`bleak.BleakScanner`."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from ..const import COMBUSTION_MANUFACTURER_ID, DEFAULT_SCAN_TIMEOUT
from ..exception import ProbeNotFoundError
from .device import ProbeDevice
from .manager import ProbeManager
from .state import ProbeState

__all__ = ["ProbeScanner"]

_LOGGER = logging.getLogger(__name__)

# (address, manufacturer payload, rssi)
PayloadCallback = Callable[[str, bytes, Optional[int]], None]


class ProbeScanner:
    """Feed Combustion advertisements into a :class:`ProbeManager`."""

    def __init__(
        self,
        manager: Optional[ProbeManager] = None,
        on_payload: Optional[PayloadCallback] = None,
    ) -> None:
        self.manager = manager or ProbeManager()
        self._on_payload = on_payload
        self._devices: dict[str, BLEDevice] = {}
        self._advertisements: dict[str, AdvertisementData] = {}
        self._sessions: dict[str, ProbeDevice] = {}
        self._scanner: Optional[BleakScanner] = None
        self._seen = asyncio.Event()

    def ble_device(self, serial: str) -> Optional[BLEDevice]:
        """Last BLE device a probe with this serial was heard from."""
        return self._devices.get(serial.upper())

    def advertisement_data(self, serial: str) -> Optional[AdvertisementData]:
        return self._advertisements.get(serial.upper())

    def track(self, serial: str, device: ProbeDevice) -> None:
        """Keep a session's BLE device and signal strength current while scanning."""
        self._sessions[serial.upper()] = device

    def detection_callback(self, device: BLEDevice, adv: AdvertisementData) -> None:
        data = adv.manufacturer_data.get(COMBUSTION_MANUFACTURER_ID)
        if data is None:
            return
        if self._on_payload is not None:
            self._on_payload(device.address, bytes(data), adv.rssi)
        state = self.manager.handle_advertisement(device.address, data, adv.rssi)
        if state is None:
            return
        serial = state.serial_number_string
        self._devices[serial] = device
        self._advertisements[serial] = adv
        session = self._sessions.get(serial)
        if session is not None:
            session.set_ble_device_and_advertisement_data(device, adv)
        self._seen.set()

    async def start(self) -> None:
        if self._scanner is not None:
            return
        self._scanner = BleakScanner(detection_callback=self.detection_callback)
        await self._scanner.start()
        _LOGGER.debug("Scanning for probes")

    async def stop(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            await scanner.stop()
            _LOGGER.debug("Stopped scanning")

    async def __aenter__(self) -> "ProbeScanner":
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def scan(self, timeout: float = DEFAULT_SCAN_TIMEOUT) -> list[ProbeState]:
        """Scan for ``timeout`` seconds and return every probe seen."""
        async with self:
            await asyncio.sleep(timeout)
        return [e.state for e in self.manager.probes()]

    async def find_probe(self, serial: str, timeout: float = DEFAULT_SCAN_TIMEOUT) -> BLEDevice:
        """Scan until the probe with ``serial`` is heard, or raise."""
        serial = serial.upper()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        owns_scan = self._scanner is None
        if owns_scan:
            await self.start()
        try:
            while (device := self.ble_device(serial)) is None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise ProbeNotFoundError(f"Probe {serial} not found within {timeout}s")
                self._seen.clear()
                try:
                    await asyncio.wait_for(self._seen.wait(), remaining)
                except asyncio.TimeoutError:
                    pass
        finally:
            if owns_scan:
                await self.stop()
        return device
