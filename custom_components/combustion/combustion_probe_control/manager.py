# custom_components/combustion/combustion_probe_control/manager.py
"""Registry of probes seen over the air, keyed by serial number."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..const import ID_COLOR_GRACE_PERIOD, MAX_PROBES, STALE_TIMEOUT
from ..exception import ProtocolError
from .advertising import AdvertisingData, serial_number_string
from .state import ProbeState, ProbeStateReconciler

__all__ = ["ProbeEntry", "ProbeManager"]

_LOGGER = logging.getLogger(__name__)


@dataclass
class ProbeEntry:
    """A managed probe: its reconciler and the radio identity it was heard on."""

    serial: str
    identity: str
    reconciler: ProbeStateReconciler

    @property
    def state(self) -> ProbeState:
        return self.reconciler.snapshot()


class ProbeManager:
    """Arena of per-probe reconcilers.

    Entries are created on first sight of a predictive probe and removed
    only by :meth:`remove`.
    """

    def __init__(
        self,
        *,
        max_probes: int = MAX_PROBES,
        stale_timeout: float = STALE_TIMEOUT,
        grace_period: float = ID_COLOR_GRACE_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, ProbeEntry] = {}
        self._max_probes = max_probes
        self._stale_timeout = stale_timeout
        self._grace_period = grace_period
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, serial: object) -> bool:
        return serial in self._entries

    def handle_advertisement(
        self, identity: str, data: bytes | bytearray, rssi: Optional[int] = None
    ) -> Optional[ProbeState]:
        """Decode and apply one advertisement.

        Returns the updated state, or ``None`` when the payload was not from
        a predictive probe, could not be decoded, or the arena is full.
        """
        try:
            adv = AdvertisingData.from_bytes(data)
        except ProtocolError as ex:
            _LOGGER.debug("%s: dropping advertisement: %s", identity, ex)
            return None
        if not adv.is_predictive_probe:
            _LOGGER.debug("%s: ignoring %s advertisement", identity, adv.product_type.name)
            return None

        entry = self._entries.get(adv.serial_number_string)
        if entry is None:
            entry = self._add(adv.serial_number, identity)
            if entry is None:
                return None
        entry.identity = identity
        return entry.reconciler.apply_advertising(adv, rssi)

    def _add(self, serial_number: int, identity: str) -> Optional[ProbeEntry]:
        serial = serial_number_string(serial_number)
        if len(self._entries) >= self._max_probes:
            _LOGGER.warning(
                "Probe limit of %s reached; ignoring %s (%s)", self._max_probes, serial, identity
            )
            return None
        entry = ProbeEntry(
            serial=serial,
            identity=identity,
            reconciler=ProbeStateReconciler(
                serial_number,
                stale_timeout=self._stale_timeout,
                grace_period=self._grace_period,
                clock=self._clock,
            ),
        )
        self._entries[serial] = entry
        _LOGGER.debug("Discovered probe %s at %s", serial, identity)
        return entry

    def get(self, serial: str) -> Optional[ProbeEntry]:
        return self._entries.get(serial.upper())

    def probes(self) -> list[ProbeEntry]:
        return list(self._entries.values())

    def probes_by_signal(self) -> list[ProbeEntry]:
        """Strongest RSSI first; probes without RSSI go last."""
        return sorted(
            self._entries.values(),
            key=lambda e: -(e.state.rssi) if e.state.rssi is not None else float("inf"),
        )

    def nearest_probe(self) -> Optional[ProbeEntry]:
        ranked = [e for e in self.probes_by_signal() if e.state.rssi is not None]
        return ranked[0] if ranked else None

    def stale_probes(self) -> list[ProbeEntry]:
        return [e for e in self._entries.values() if e.reconciler.is_stale()]

    def remove(self, serial: str) -> Optional[ProbeEntry]:
        entry = self._entries.pop(serial.upper(), None)
        if entry is not None:
            entry.reconciler.close_subscriptions()
        return entry

    def clear(self) -> None:
        for serial in list(self._entries):
            self.remove(serial)
