# custom_components/combustion/combustion_probe_control/crc.py
"""CRC-16/CCITT-FALSE as used by the probe UART framing."""

from __future__ import annotations

from typing import Union

__all__ = ["crc16", "append_crc", "verify_crc"]

CRC_INIT = 0xFFFF
CRC_POLY = 0x1021


def _make_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ CRC_POLY) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
        table.append(crc)
    return tuple(table)


_TABLE = _make_table()


def crc16(data: Union[bytes, bytearray, memoryview]) -> int:
    """Return the CRC of ``data`` (init 0xFFFF, poly 0x1021, no final xor)."""
    crc = CRC_INIT
    for byte in bytes(data):
        crc = ((crc << 8) & 0xFFFF) ^ _TABLE[((crc >> 8) ^ byte) & 0xFF]
    return crc


def append_crc(data: Union[bytes, bytearray]) -> bytes:
    """Return ``data`` followed by its CRC, low byte first."""
    return bytes(data) + crc16(data).to_bytes(2, "little")


def verify_crc(data: Union[bytes, bytearray]) -> bool:
    """Check a buffer whose last two bytes are the little-endian CRC of the rest."""
    if len(data) < 3:
        return False
    received = int.from_bytes(bytes(data[-2:]), "little")
    return crc16(data[:-2]) == received
