# custom_components/combustion/combustion_probe_control/capture.py
"""Record and replay raw probe payloads as JSON Lines.

One row per payload::

    {"t": 12.5, "kind": "status", "bytes_hex": "...", "rssi": -60}

``kind`` is ``advertising`` or ``status``; ``bytes_b64`` may replace
``bytes_hex``. Replaying feeds the rows through the same decoders and
reconciler the live session uses, with the reconciler clock following ``t``.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, TextIO

from ..exception import ProtocolError
from .advertising import AdvertisingData
from .state import ProbeState, ProbeStateReconciler
from .status import ProbeStatus

__all__ = [
    "KIND_ADVERTISING",
    "KIND_STATUS",
    "iter_records",
    "make_record",
    "write_jsonl",
    "ReplayResult",
    "replay",
]

_LOGGER = logging.getLogger(__name__)

KIND_ADVERTISING = "advertising"
KIND_STATUS = "status"


def iter_records(stream: TextIO) -> Iterator[Dict[str, Any]]:
    """Yield rows from either a JSON array or a JSON Lines stream."""
    first = stream.read(1)
    while first and first.isspace():
        first = stream.read(1)
    if not first:
        return
    if first == "[":
        yield from json.loads("[" + stream.read())
        return
    line = first + stream.readline()
    if line.strip():
        yield json.loads(line)
    for line in stream:
        if line.strip():
            yield json.loads(line)


def make_record(kind: str, data: bytes, t: float, rssi: Optional[int] = None) -> Dict[str, Any]:
    row: Dict[str, Any] = {"t": round(t, 3), "kind": kind, "bytes_hex": data.hex()}
    if rssi is not None:
        row["rssi"] = rssi
    return row


def write_jsonl(rows: Iterable[Dict[str, Any]], out: TextIO) -> None:
    for r in rows:
        out.write(json.dumps(r, ensure_ascii=False, separators=(",", ":")))
        out.write("\n")


def _payload_of(row: Dict[str, Any]) -> bytes:
    if "bytes_hex" in row:
        return bytes.fromhex("".join(str(row["bytes_hex"]).split()))
    if "bytes_b64" in row:
        return base64.b64decode(row["bytes_b64"])
    raise ValueError("row has neither bytes_hex nor bytes_b64")


class _ReplayClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@dataclass(frozen=True)
class ReplayResult:
    state: ProbeState
    applied: int
    skipped: int


def replay(rows: Iterable[Dict[str, Any]], serial_number: Optional[int] = None) -> ReplayResult:
    """Apply captured rows in order and return the resulting probe state.

    Advertising rows from other products or from another serial number than
    the replayed probe, rows of unknown kind and undecodable payloads are
    skipped. Status rows heard before the serial number is known are held
    back and applied, in order, once it is.
    """
    clock = _ReplayClock()
    reconciler: Optional[ProbeStateReconciler] = None
    held: list[tuple[float, ProbeStatus]] = []
    applied = skipped = 0

    def _start(serial: int) -> ProbeStateReconciler:
        rec = ProbeStateReconciler(serial, clock=clock)
        now = clock.now
        for t, status in held:
            clock.now = t
            rec.apply_status(status)
        clock.now = now
        held.clear()
        return rec

    for row in rows:
        try:
            kind = row.get("kind")
            data = _payload_of(row)
            clock.now = float(row.get("t", clock.now))
            if kind == KIND_ADVERTISING:
                adv = AdvertisingData.from_bytes(data)
                if not adv.is_predictive_probe:
                    _LOGGER.debug("Skipping %s advertisement", adv.product_type.name)
                    skipped += 1
                    continue
                if serial_number is None:
                    serial_number = adv.serial_number
                if adv.serial_number != serial_number:
                    skipped += 1
                    continue
                if reconciler is None:
                    reconciler = _start(serial_number)
                reconciler.apply_advertising(adv, row.get("rssi"))
            elif kind == KIND_STATUS:
                status = ProbeStatus.from_bytes(data)
                if serial_number is None:
                    held.append((clock.now, status))
                else:
                    if reconciler is None:
                        reconciler = _start(serial_number)
                    reconciler.apply_status(status)
            else:
                _LOGGER.debug("Skipping row of kind %r", kind)
                skipped += 1
                continue
        except (ProtocolError, ValueError) as ex:
            _LOGGER.debug("Skipping undecodable row: %s", ex)
            skipped += 1
            continue
        applied += 1

    if reconciler is None:
        reconciler = _start(serial_number or 0)
    return ReplayResult(state=reconciler.snapshot(), applied=applied, skipped=skipped)
