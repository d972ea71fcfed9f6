# custom_components/combustion/exception.py
"""Exceptions raised by the Combustion probe stack."""

from __future__ import annotations


class CombustionError(Exception):
    """Base class for every error raised by this package."""


# ────────────────────────────────────────────────────────────────
# Decode-time (structural) errors
# ────────────────────────────────────────────────────────────────

class ProtocolError(CombustionError):
    """A payload could not be decoded."""


class LengthError(ProtocolError):
    """Payload shorter than the format requires."""

    def __init__(self, what: str, needed: int, actual: int) -> None:
        super().__init__(f"{what}: need {needed} bytes, got {actual}")
        self.needed = needed
        self.actual = actual


class InvalidFramingError(ProtocolError):
    """UART frame does not start with the sync bytes."""


class CrcMismatchError(ProtocolError):
    """UART frame CRC does not match its contents."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"CRC mismatch: expected 0x{expected:04X}, got 0x{actual:04X}")
        self.expected = expected
        self.actual = actual


# ────────────────────────────────────────────────────────────────
# Caller errors
# ────────────────────────────────────────────────────────────────

class ParameterOutOfRangeError(CombustionError, ValueError):
    """A value passed by the caller is outside the encodable range."""

    def __init__(self, name: str, value: object, detail: str = "") -> None:
        msg = f"{name} out of range: {value!r}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.name = name
        self.value = value


# ────────────────────────────────────────────────────────────────
# Session errors
# ────────────────────────────────────────────────────────────────

class NotConnectedError(CombustionError):
    """Command issued without an active session."""


class ConnectionFailedError(CombustionError):
    """Connecting to the probe failed."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class ConnectionInProgressError(ConnectionFailedError):
    """Another connection attempt to the same probe is still running."""


class ResponseTimeoutError(CombustionError):
    """The probe did not answer a request in time."""


class CommandRejectedError(CombustionError):
    """The probe answered a request with a non-zero status byte."""


class CharacteristicMissingError(CombustionError):
    """A required GATT characteristic is missing."""


class ProbeNotFoundError(CombustionError):
    """No probe with the requested serial number was seen."""
