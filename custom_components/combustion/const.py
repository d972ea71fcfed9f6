# custom_components/combustion/const.py
"""Constants for the Combustion predictive thermometer integration."""

from __future__ import annotations

# ────────────────────────────────────────────────────────────────
# Bluetooth identifiers
# ────────────────────────────────────────────────────────────────
COMBUSTION_MANUFACTURER_ID = 0x09C7

PROBE_STATUS_CHAR_UUID = "00000101-CAAB-3792-3D44-97AE51C1407A"  # notify

# Nordic UART (write to RX, notify on TX)
UART_RX_CHAR_UUID = "6E400002-B5A3-F393-E0A9-E50E24DCCA9E"
UART_TX_CHAR_UUID = "6E400003-B5A3-F393-E0A9-E50E24DCCA9E"

# ────────────────────────────────────────────────────────────────
# Session / reconciliation timing (seconds)
# ────────────────────────────────────────────────────────────────
DEFAULT_ATTEMPTS = 3
RECONNECT_DELAY = 1.0
BLEAK_BACKOFF_TIME = 0.25
RESPONSE_TIMEOUT = 5.0
DEFAULT_SCAN_TIMEOUT = 5.0

STALE_TIMEOUT = 15.0
ID_COLOR_GRACE_PERIOD = 5.0

MAX_PROBES = 8
