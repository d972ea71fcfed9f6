"""BLE-bound probe classes."""

from __future__ import annotations

from .probe_device import ConnectionState, ProbeDevice

__all__ = ["ConnectionState", "ProbeDevice"]
