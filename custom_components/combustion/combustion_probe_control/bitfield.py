# custom_components/combustion/combustion_probe_control/bitfield.py
"""Bit-packed field access and fixed-point scaling.

Every probe payload is a little-endian bit stream: bit 0 of a field sits in
the least significant bit of the byte that contains it, and fields run
across byte boundaries without padding. All codecs in this package describe
their layout as a table of :class:`BitField` constants and go through
:func:`read_bits` / :func:`write_bits`.
"""

from __future__ import annotations

from typing import NamedTuple, Optional, Union

__all__ = [
    "MAX_FIELD_WIDTH",
    "BitField",
    "read_bits",
    "write_bits",
    "decode_fixed",
    "encode_fixed",
]

MAX_FIELD_WIDTH = 32

Buffer = Union[bytes, bytearray, memoryview]


def _check_range(buffer_len: int, bit_offset: int, width: int) -> None:
    if not 1 <= width <= MAX_FIELD_WIDTH:
        raise ValueError(f"Bit field width must be 1..{MAX_FIELD_WIDTH}, got {width}")
    if bit_offset < 0:
        raise IndexError(f"Negative bit offset {bit_offset}")
    if bit_offset + width > buffer_len * 8:
        raise IndexError(
            f"Bit range {bit_offset}+{width} exceeds buffer of {buffer_len} bytes"
        )


def read_bits(buffer: Buffer, bit_offset: int, width: int) -> int:
    """Read an unsigned ``width``-bit value starting at ``bit_offset``."""
    _check_range(len(buffer), bit_offset, width)
    first = bit_offset // 8
    last = (bit_offset + width - 1) // 8
    chunk = int.from_bytes(bytes(buffer[first:last + 1]), "little")
    return (chunk >> (bit_offset % 8)) & ((1 << width) - 1)


def write_bits(buffer: bytearray, bit_offset: int, width: int, value: int) -> None:
    """Write ``value`` (masked to ``width`` bits) at ``bit_offset`` in place."""
    _check_range(len(buffer), bit_offset, width)
    first = bit_offset // 8
    last = (bit_offset + width - 1) // 8
    shift = bit_offset % 8
    mask = ((1 << width) - 1) << shift
    chunk = int.from_bytes(bytes(buffer[first:last + 1]), "little")
    chunk = (chunk & ~mask) | ((int(value) << shift) & mask)
    buffer[first:last + 1] = chunk.to_bytes(last - first + 1, "little")


class BitField(NamedTuple):
    """Position of one packed field inside a payload."""

    offset: int
    width: int

    @property
    def max_value(self) -> int:
        return (1 << self.width) - 1

    def read(self, buffer: Buffer) -> int:
        return read_bits(buffer, self.offset, self.width)

    def write(self, buffer: bytearray, value: int) -> None:
        write_bits(buffer, self.offset, self.width, value)


# ────────────────────────────────────────────────────────────────
# Fixed-point scaling
# ────────────────────────────────────────────────────────────────

def decode_fixed(raw: int, scale: float, offset: float = 0.0) -> float:
    """``raw * scale + offset``."""
    return raw * scale + offset


def encode_fixed(
    value: float,
    scale: float,
    offset: float = 0.0,
    width: int = MAX_FIELD_WIDTH,
    maximum: Optional[int] = None,
) -> int:
    """Inverse of :func:`decode_fixed`, rounded to nearest and clamped.

    The result is clamped to ``[0, maximum]`` where ``maximum`` defaults to
    the largest value that fits in ``width`` bits.
    """
    top = (1 << width) - 1 if maximum is None else maximum
    raw = int(round((value - offset) / scale))
    return max(0, min(raw, top))
