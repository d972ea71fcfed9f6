# custom_components/combustion/combustion_probe_control/protocol.py
"""UART message framing and request builders.

Every message on the Nordic UART characteristics is framed as::

    [0xCA 0xFE] [crc16 LE] [type] [len] [payload ...]

with the CRC computed over ``type``, ``len`` and the payload. Responses use
the request type with bit 7 set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

from ..exception import (
    CrcMismatchError,
    InvalidFramingError,
    LengthError,
    ParameterOutOfRangeError,
)
from .advertising import ProbeColor
from .alarms import AlarmConfig
from .bitfield import BitField, encode_fixed
from .crc import crc16
from .food_safety import FoodSafeConfig
from .prediction import MAX_SET_POINT, SET_POINT_SCALE, PredictionMode
from .preferences import PowerMode

__all__ = [
    "UART_SYNC",
    "HEADER_SIZE",
    "RESPONSE_FLAG",
    "MessageType",
    "UartMessage",
    "SessionInfo",
    "parse_frames",
    "build_set_probe_id_request",
    "build_set_probe_color_request",
    "build_read_session_info_request",
    "build_read_logs_request",
    "build_set_prediction_request",
    "build_cancel_prediction_request",
    "build_read_over_temperature_request",
    "build_configure_food_safe_request",
    "build_reset_food_safe_request",
    "build_set_power_mode_request",
    "build_reset_thermometer_request",
    "build_set_high_low_alarms_request",
    "build_silence_alarms_request",
]

UART_SYNC = b"\xCA\xFE"
HEADER_SIZE = 6
MAX_PAYLOAD = 0xFF
RESPONSE_FLAG = 0x80


class MessageType(IntEnum):
    SET_PROBE_ID = 0x01
    SET_PROBE_COLOR = 0x02
    READ_SESSION_INFO = 0x03
    READ_LOGS = 0x04
    SET_PREDICTION = 0x05
    READ_OVER_TEMPERATURE = 0x06
    CONFIGURE_FOOD_SAFE = 0x07
    RESET_FOOD_SAFE = 0x08
    SET_POWER_MODE = 0x09
    RESET_THERMOMETER = 0x0A
    SET_HIGH_LOW_ALARMS = 0x0B
    SILENCE_ALARMS = 0x0C

    SET_PROBE_ID_RESPONSE = 0x81
    SET_PROBE_COLOR_RESPONSE = 0x82
    READ_SESSION_INFO_RESPONSE = 0x83
    READ_LOGS_RESPONSE = 0x84
    SET_PREDICTION_RESPONSE = 0x85
    READ_OVER_TEMPERATURE_RESPONSE = 0x86
    CONFIGURE_FOOD_SAFE_RESPONSE = 0x87
    RESET_FOOD_SAFE_RESPONSE = 0x88
    SET_POWER_MODE_RESPONSE = 0x89
    RESET_THERMOMETER_RESPONSE = 0x8A
    SET_HIGH_LOW_ALARMS_RESPONSE = 0x8B
    SILENCE_ALARMS_RESPONSE = 0x8C

    UNKNOWN = 0xFF

    @classmethod
    def _missing_(cls, value: object) -> "MessageType":
        return cls.UNKNOWN

    @property
    def is_response(self) -> bool:
        return bool(self.value & RESPONSE_FLAG)

    @property
    def is_request(self) -> bool:
        return not self.is_response

    def response_type(self) -> Optional["MessageType"]:
        """Matching response type for a request, ``None`` for responses."""
        if self.is_response:
            return None
        return MessageType(self.value | RESPONSE_FLAG)


@dataclass(frozen=True)
class UartMessage:
    message_type: MessageType
    payload: bytes = b""
    raw_type: int = field(default=-1, compare=False)

    def __post_init__(self) -> None:
        if len(self.payload) > MAX_PAYLOAD:
            raise ParameterOutOfRangeError("payload length", len(self.payload), f"max {MAX_PAYLOAD}")
        if self.raw_type < 0:
            object.__setattr__(self, "raw_type", int(self.message_type))

    @property
    def frame_length(self) -> int:
        return HEADER_SIZE + len(self.payload)

    def to_bytes(self) -> bytes:
        body = bytes([self.raw_type & 0xFF, len(self.payload)]) + bytes(self.payload)
        return UART_SYNC + crc16(body).to_bytes(2, "little") + body

    @classmethod
    def parse(cls, data: bytes | bytearray) -> "UartMessage":
        """Parse one frame from the start of ``data``.

        Trailing bytes beyond the declared payload are ignored.
        """
        if len(data) < HEADER_SIZE:
            raise LengthError("UART header", HEADER_SIZE, len(data))
        if bytes(data[0:2]) != UART_SYNC:
            raise InvalidFramingError(
                f"Invalid sync bytes: {data[0]:#04x} {data[1]:#04x}"
            )
        payload_len = data[5]
        total = HEADER_SIZE + payload_len
        if len(data) < total:
            raise LengthError("UART message", total, len(data))
        received = int.from_bytes(bytes(data[2:4]), "little")
        calculated = crc16(data[4:total])
        if received != calculated:
            raise CrcMismatchError(expected=calculated, actual=received)
        raw_type = data[4]
        return cls(MessageType(raw_type), bytes(data[HEADER_SIZE:total]), raw_type)

    @property
    def is_response(self) -> bool:
        return bool(self.raw_type & RESPONSE_FLAG)

    @property
    def is_success(self) -> bool:
        """Responses carry a status byte first; 0 or no byte means success."""
        return not self.payload or self.payload[0] == 0


def parse_frames(data: bytes | bytearray) -> list[UartMessage]:
    """Parse every back-to-back frame in one notification."""
    out: list[UartMessage] = []
    view = bytes(data)
    while view:
        msg = UartMessage.parse(view)
        out.append(msg)
        view = view[msg.frame_length:]
    return out


# ────────────────────────────────────────────────────────────────
# Session information response
# ────────────────────────────────────────────────────────────────

SESSION_INFO_BYTES = 6


@dataclass(frozen=True)
class SessionInfo:
    session_id: int = 0
    sample_period_ms: int = 0

    @classmethod
    def from_payload(cls, payload: bytes | bytearray) -> "SessionInfo":
        """``[session_id u32 LE][sample_period_ms u16 LE]``."""
        if len(payload) < SESSION_INFO_BYTES:
            raise LengthError("session info", SESSION_INFO_BYTES, len(payload))
        return cls(
            session_id=int.from_bytes(bytes(payload[0:4]), "little"),
            sample_period_ms=int.from_bytes(bytes(payload[4:6]), "little"),
        )

    @property
    def sample_rate_hz(self) -> float:
        if self.sample_period_ms == 0:
            return 0.0
        return 1000.0 / self.sample_period_ms


# ────────────────────────────────────────────────────────────────
# Request builders
# ────────────────────────────────────────────────────────────────

PREDICTION_SET_POINT_FIELD = BitField(0, 10)
PREDICTION_MODE_FIELD = BitField(10, 2)


def build_set_probe_id_request(probe_id: int) -> UartMessage:
    """Probe ids are 1-8; the wire carries ``id - 1``."""
    if not 1 <= probe_id <= 8:
        raise ParameterOutOfRangeError("probe_id", probe_id, "1..8")
    return UartMessage(MessageType.SET_PROBE_ID, bytes([probe_id - 1]))


def build_set_probe_color_request(color: ProbeColor) -> UartMessage:
    return UartMessage(MessageType.SET_PROBE_COLOR, bytes([int(color) & 0x07]))


def build_read_session_info_request() -> UartMessage:
    return UartMessage(MessageType.READ_SESSION_INFO)


def build_read_logs_request(min_sequence: int, max_sequence: int) -> UartMessage:
    for name, value in (("min_sequence", min_sequence), ("max_sequence", max_sequence)):
        if not 0 <= value <= 0xFFFFFFFF:
            raise ParameterOutOfRangeError(name, value, "u32")
    payload = min_sequence.to_bytes(4, "little") + max_sequence.to_bytes(4, "little")
    return UartMessage(MessageType.READ_LOGS, payload)


def build_set_prediction_request(mode: PredictionMode, set_point: float) -> UartMessage:
    """``set_point`` in °C, 0.1 °C resolution."""
    if not 0.0 <= set_point <= MAX_SET_POINT + 1e-9:
        raise ParameterOutOfRangeError("set_point", set_point, f"0..{MAX_SET_POINT:.1f} °C")
    buf = bytearray(2)
    PREDICTION_SET_POINT_FIELD.write(
        buf, encode_fixed(set_point, SET_POINT_SCALE, width=PREDICTION_SET_POINT_FIELD.width)
    )
    PREDICTION_MODE_FIELD.write(buf, int(mode))
    return UartMessage(MessageType.SET_PREDICTION, bytes(buf))


def build_cancel_prediction_request() -> UartMessage:
    return build_set_prediction_request(PredictionMode.NONE, 0.0)


def build_read_over_temperature_request() -> UartMessage:
    return UartMessage(MessageType.READ_OVER_TEMPERATURE)


def build_configure_food_safe_request(config: FoodSafeConfig) -> UartMessage:
    return UartMessage(MessageType.CONFIGURE_FOOD_SAFE, config.to_bytes())


def build_reset_food_safe_request() -> UartMessage:
    return UartMessage(MessageType.RESET_FOOD_SAFE)


def build_set_power_mode_request(mode: PowerMode) -> UartMessage:
    return UartMessage(MessageType.SET_POWER_MODE, bytes([int(mode) & 0x03]))


def build_reset_thermometer_request() -> UartMessage:
    return UartMessage(MessageType.RESET_THERMOMETER)


def build_set_high_low_alarms_request(config: AlarmConfig) -> UartMessage:
    return UartMessage(MessageType.SET_HIGH_LOW_ALARMS, config.to_bytes())


def build_silence_alarms_request() -> UartMessage:
    return UartMessage(MessageType.SILENCE_ALARMS)
