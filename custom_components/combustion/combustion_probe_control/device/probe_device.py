# custom_components/combustion/combustion_probe_control/device/probe_device.py
"""BLE session with a single predictive probe."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional, Union

from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.backends.service import BleakGATTServiceCollection
from bleak.exc import BleakDBusError
from bleak_retry_connector import BLEAK_RETRY_EXCEPTIONS as BLEAK_EXCEPTIONS
from bleak_retry_connector import (
    BleakClientWithServiceCache,
    establish_connection,
    retry_bluetooth_connection_error,
)

from ...const import (
    BLEAK_BACKOFF_TIME,
    DEFAULT_ATTEMPTS,
    PROBE_STATUS_CHAR_UUID,
    RECONNECT_DELAY,
    RESPONSE_TIMEOUT,
    UART_RX_CHAR_UUID,
    UART_TX_CHAR_UUID,
)
from ...exception import (
    CharacteristicMissingError,
    CommandRejectedError,
    ConnectionFailedError,
    ConnectionInProgressError,
    NotConnectedError,
    ProtocolError,
    ResponseTimeoutError,
)
from .. import protocol
from ..advertising import ProbeColor
from ..alarms import AlarmConfig
from ..food_safety import FoodSafeConfig
from ..prediction import PredictionMode
from ..preferences import PowerMode
from ..protocol import MessageType, SessionInfo, UartMessage
from ..state import ProbeState, ProbeStateReconciler, StateSubscription
from ..status import ProbeStatus

__all__ = ["ConnectionState", "ProbeDevice"]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


def _mk_ble_device(addr_or_ble: Union[BLEDevice, str]) -> BLEDevice:
    """Return a BLEDevice, building a bare one from a MAC string."""
    if isinstance(addr_or_ble, BLEDevice):
        return addr_or_ble
    return BLEDevice(str(addr_or_ble).upper(), None, None)


class ProbeDevice:
    """Connection to one probe.

    Status notifications are decoded on a listener task and applied to the
    probe's :class:`ProbeStateReconciler`; UART responses are routed to the
    request waiting for them.
    """

    _logger: logging.Logger

    def __init__(
        self,
        ble_device: Union[BLEDevice, str],
        reconciler: ProbeStateReconciler,
        advertisement_data: AdvertisementData | None = None,
        *,
        attempts: int = DEFAULT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY,
        response_timeout: float = RESPONSE_TIMEOUT,
    ) -> None:
        self._ble_device = _mk_ble_device(ble_device)
        self._logger = logging.getLogger(self._ble_device.address.replace(":", "-"))
        self._advertisement_data = advertisement_data
        self.reconciler = reconciler
        self._attempts = attempts
        self._reconnect_delay = reconnect_delay
        self._response_timeout = response_timeout
        self._client: BleakClientWithServiceCache | None = None
        self._status_char: BleakGATTCharacteristic | None = None
        self._read_char: BleakGATTCharacteristic | None = None
        self._write_char: BleakGATTCharacteristic | None = None
        self._connection_state = ConnectionState.DISCONNECTED
        self._operation_lock = asyncio.Lock()
        self._expected_disconnect = False
        self._inbox: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue()
        self._listener: asyncio.Task[None] | None = None
        self._pending: dict[MessageType, asyncio.Future[UartMessage]] = {}

    def set_log_level(self, level: int | str) -> None:
        """Set log level."""
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                level = logging.INFO
        self._logger.setLevel(level)

    def set_ble_device_and_advertisement_data(
        self, ble_device: BLEDevice, advertisement_data: AdvertisementData
    ) -> None:
        """Refresh the device handle and signal strength from a new scan result."""
        self._ble_device = ble_device
        self._advertisement_data = advertisement_data

# ────────────────────────────────────────────────────────────────
# class ProbeDevice
# @property
# ────────────────────────────────────────────────────────────────

    @property
    def address(self) -> str:
        return self._ble_device.address

    @property
    def name(self) -> str:
        return self._ble_device.name or self._ble_device.address

    @property
    def rssi(self) -> int | None:
        if self._advertisement_data:
            return self._advertisement_data.rssi
        return None

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def is_connected(self) -> bool:
        return (
            self._connection_state is ConnectionState.CONNECTED
            and self._client is not None
            and self._client.is_connected
        )

    @property
    def state(self) -> ProbeState:
        return self.reconciler.snapshot()

    def subscribe(self) -> StateSubscription:
        """Stream of state snapshots; close the handle to stop it."""
        return self.reconciler.subscribe()

# ────────────────────────────────────────────────────────────────
# Probe commands
# ────────────────────────────────────────────────────────────────

    async def set_probe_id(self, probe_id: int) -> None:
        await self._send(protocol.build_set_probe_id_request(probe_id))
        self.reconciler.set_probe_id(probe_id)

    async def set_color(self, color: ProbeColor) -> None:
        await self._send(protocol.build_set_probe_color_request(color))
        self.reconciler.set_color(color)

    async def set_prediction(self, mode: PredictionMode, set_point: float) -> None:
        await self._send(protocol.build_set_prediction_request(mode, set_point))

    async def cancel_prediction(self) -> None:
        await self._send(protocol.build_cancel_prediction_request())

    async def configure_food_safe(self, config: FoodSafeConfig) -> None:
        await self._send(protocol.build_configure_food_safe_request(config))
        self.reconciler.set_food_safe_config(config)

    async def reset_food_safe(self) -> None:
        await self._send(protocol.build_reset_food_safe_request())
        self.reconciler.clear_food_safe()

    async def set_power_mode(self, mode: PowerMode) -> None:
        await self._send(protocol.build_set_power_mode_request(mode))
        self.reconciler.set_power_mode(mode)

    async def reset_thermometer(self) -> None:
        await self._send(protocol.build_reset_thermometer_request())

    async def set_alarms(self, config: AlarmConfig) -> None:
        await self._send(protocol.build_set_high_low_alarms_request(config))
        self.reconciler.set_alarm_config(config)

    def _current_alarms(self) -> AlarmConfig:
        return self.reconciler.snapshot().alarm_config or AlarmConfig()

    async def set_core_high_alarm(self, temperature: Optional[float]) -> None:
        await self.set_alarms(self._current_alarms().with_core_high_alarm(temperature))

    async def set_core_low_alarm(self, temperature: Optional[float]) -> None:
        await self.set_alarms(self._current_alarms().with_core_low_alarm(temperature))

    async def disable_all_alarms(self) -> None:
        await self.set_alarms(self._current_alarms().all_disabled())

    async def silence_alarms(self) -> None:
        await self._send(protocol.build_silence_alarms_request())

    async def read_session_info(self, timeout: float | None = None) -> SessionInfo:
        """Ask the probe for its session id and sample period."""
        response = await self._request(protocol.build_read_session_info_request(), timeout)
        return SessionInfo.from_payload(response.payload[1:])

# ────────────────────────────────────────────────────────────────
# Bluetooth methods
# ────────────────────────────────────────────────────────────────

    async def _send(self, message: UartMessage) -> None:
        if not self.is_connected:
            raise NotConnectedError(f"{self.name}: not connected")
        data = message.to_bytes()
        self._logger.debug(
            "%s: Sending %s %s", self.name, message.message_type.name, data.hex(" ").upper()
        )
        if self._operation_lock.locked():
            self._logger.debug(
                "%s: Operation already in progress, waiting for it to complete; RSSI: %s",
                self.name,
                self.rssi,
            )
        async with self._operation_lock:
            try:
                await self._write_locked(data)
            except BLEAK_EXCEPTIONS:
                self._logger.debug("%s: communication failed", self.name, exc_info=True)
                raise

    async def _request(self, message: UartMessage, timeout: float | None) -> UartMessage:
        response_type = message.message_type.response_type()
        assert response_type is not None  # nosec
        if response_type in self._pending:
            raise ProtocolError(f"{message.message_type.name} already awaiting a response")
        future: asyncio.Future[UartMessage] = asyncio.get_running_loop().create_future()
        self._pending[response_type] = future
        try:
            await self._send(message)
            response = await asyncio.wait_for(
                future, self._response_timeout if timeout is None else timeout
            )
        except asyncio.TimeoutError as ex:
            raise ResponseTimeoutError(
                f"{self.name}: no {response_type.name} within timeout"
            ) from ex
        finally:
            self._pending.pop(response_type, None)
        if not response.is_success:
            raise CommandRejectedError(
                f"{self.name}: {message.message_type.name} rejected "
                f"({response.payload[:1].hex().upper() or 'empty'})"
            )
        return response

    @retry_bluetooth_connection_error(DEFAULT_ATTEMPTS)
    async def _write_locked(self, data: bytes) -> None:
        client, write_char = self._client, self._write_char
        if client is None or write_char is None:
            raise NotConnectedError(f"{self.name}: connection lost")
        try:
            await client.write_gatt_char(write_char, data, False)
        except BleakDBusError as ex:
            self._logger.debug(
                "%s: RSSI: %s; Backing off %ss after error: %s",
                self.name,
                self.rssi,
                BLEAK_BACKOFF_TIME,
                ex,
            )
            await asyncio.sleep(BLEAK_BACKOFF_TIME)
            raise

    def _status_handler(self, _sender: BleakGATTCharacteristic, data: bytearray) -> None:
        self._inbox.put_nowait(("status", bytes(data)))

    def _uart_handler(self, _sender: BleakGATTCharacteristic, data: bytearray) -> None:
        self._inbox.put_nowait(("uart", bytes(data)))

    async def _listen(self, inbox: asyncio.Queue[tuple[str, bytes]]) -> None:
        """Drain this session's notifications until cancelled."""
        while True:
            kind, data = await inbox.get()
            self._logger.debug(
                "%s: %s notification: %s", self.name, kind, data.hex(" ").upper()
            )
            if kind == "status":
                self._handle_status(data)
            else:
                self._handle_uart(data)

    def _handle_status(self, data: bytes) -> None:
        try:
            status = ProbeStatus.from_bytes(data)
        except ProtocolError as ex:
            self._logger.debug("%s: dropping status notification: %s", self.name, ex)
            return
        self.reconciler.apply_status(status)

    def _handle_uart(self, data: bytes) -> None:
        try:
            messages = protocol.parse_frames(data)
        except ProtocolError as ex:
            self._logger.debug("%s: dropping UART notification: %s", self.name, ex)
            return
        for msg in messages:
            future = self._pending.get(msg.message_type)
            if future is not None and not future.done():
                future.set_result(msg)
            else:
                self._logger.debug(
                    "%s: unsolicited %s (0x%02X)", self.name, msg.message_type.name, msg.raw_type
                )

    def _disconnected(self, client: BleakClientWithServiceCache) -> None:
        """Disconnected callback."""
        if self._expected_disconnect or self._connection_state is not ConnectionState.CONNECTED:
            self._logger.debug(
                "%s: Disconnected from device; RSSI: %s", self.name, self.rssi
            )
            return
        self._logger.warning(
            "%s: Device unexpectedly disconnected; RSSI: %s",
            self.name,
            self.rssi,
        )
        self._connection_state = ConnectionState.DISCONNECTED
        self._client = None
        self._inbox = asyncio.Queue()
        if self._listener is not None:
            self._listener.cancel()
        self._fail_pending(NotConnectedError(f"{self.name}: disconnected"))

    def _resolve_characteristics(self, services: BleakGATTServiceCollection) -> bool:
        self._status_char = services.get_characteristic(PROBE_STATUS_CHAR_UUID)
        self._read_char = services.get_characteristic(UART_TX_CHAR_UUID)
        self._write_char = services.get_characteristic(UART_RX_CHAR_UUID)
        return bool(self._status_char and self._read_char and self._write_char)

    async def _establish(self) -> BleakClientWithServiceCache:
        """Connect with bounded retries and a fixed delay between attempts."""
        last_error: Exception | None = None
        for attempt in range(1, self._attempts + 1):
            self._logger.debug(
                "%s: Connecting (attempt %s/%s); RSSI: %s",
                self.name,
                attempt,
                self._attempts,
                self.rssi,
            )
            try:
                return await establish_connection(
                    BleakClientWithServiceCache,
                    self._ble_device,
                    self.name,
                    self._disconnected,
                    max_attempts=1,
                    use_services_cache=True,
                    ble_device_callback=lambda: self._ble_device,
                )
            except BLEAK_EXCEPTIONS as ex:
                last_error = ex
                self._logger.warning(
                    "%s: Connection attempt %s/%s failed: %s",
                    self.name,
                    attempt,
                    self._attempts,
                    ex,
                )
            if attempt < self._attempts:
                await asyncio.sleep(self._reconnect_delay)
        raise ConnectionFailedError(
            f"{self.name}: failed to connect after {self._attempts} attempts: {last_error}",
            attempts=self._attempts,
        ) from last_error

    async def connect(self) -> None:
        """Open the session; no-op when already connected."""
        if self._connection_state is ConnectionState.CONNECTING:
            raise ConnectionInProgressError(
                f"{self.name}: connection already in progress", attempts=0
            )
        if self.is_connected:
            return
        self._connection_state = ConnectionState.CONNECTING
        self._expected_disconnect = False
        await self._stop_listener()
        try:
            client = await self._establish()
            self._logger.debug("%s: Connected; RSSI: %s", self.name, self.rssi)
            if not self._resolve_characteristics(client.services):
                self._expected_disconnect = True
                await client.disconnect()
                raise CharacteristicMissingError(
                    f"{self.name}: failed to resolve probe characteristics"
                )
            self._client = client
            self._inbox = asyncio.Queue()
            self._listener = asyncio.create_task(self._listen(self._inbox))
            await client.start_notify(self._status_char, self._status_handler)  # type: ignore[arg-type]
            await client.start_notify(self._read_char, self._uart_handler)  # type: ignore[arg-type]
            self._connection_state = ConnectionState.CONNECTED
        except BaseException:
            if self._connection_state is ConnectionState.CONNECTING:
                await self._teardown()
            raise

    async def disconnect(self) -> None:
        """Close the session. Listener tasks are stopped before this returns."""
        self._logger.debug("%s: Disconnecting", self.name)
        self._connection_state = ConnectionState.DISCONNECTING
        await self._teardown()

    async def _teardown(self) -> None:
        client = self._client
        chars = [c for c in (self._status_char, self._read_char) if c is not None]
        self._expected_disconnect = True
        self._client = None
        self._status_char = None
        self._read_char = None
        self._write_char = None

        if client is not None and client.is_connected:
            for char in chars:
                try:
                    await client.stop_notify(char)
                except BLEAK_EXCEPTIONS:
                    self._logger.debug(
                        "%s: stop_notify failed (already stopped?)", self.name, exc_info=True
                    )
        await self._stop_listener()
        self._inbox = asyncio.Queue()
        self._fail_pending(NotConnectedError(f"{self.name}: disconnected"))
        if client is not None and client.is_connected:
            await client.disconnect()
        self._connection_state = ConnectionState.DISCONNECTED

    async def _stop_listener(self) -> None:
        listener, self._listener = self._listener, None
        if listener is None:
            return
        listener.cancel()
        try:
            await listener
        except asyncio.CancelledError:
            pass

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def __aenter__(self) -> "ProbeDevice":
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.disconnect()
