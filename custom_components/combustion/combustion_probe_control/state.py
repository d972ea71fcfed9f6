# custom_components/combustion/combustion_probe_control/state.py
"""Per-probe state merged from advertising and status notifications."""

from __future__ import annotations

import asyncio
import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..const import ID_COLOR_GRACE_PERIOD, STALE_TIMEOUT
from .advertising import (
    AdvertisingData,
    BatteryStatus,
    Overheating,
    ProbeColor,
    ProbeMode,
)
from .alarms import AlarmConfig
from .food_safety import FoodSafeConfig, FoodSafeData
from .prediction import PredictionInfo
from .preferences import PowerMode, ThermometerPreferences
from .status import ProbeStatus
from .temperatures import (
    ProbeTemperatures,
    VirtualSensorSelection,
    VirtualTemperatures,
    compute_virtual_temperatures,
)

__all__ = ["ProbeState", "ProbeStateReconciler", "StateSubscription"]

_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class ProbeState:
    """Everything known about one probe.

    ``last_update`` and the ``*_set_at`` anchors are clock readings
    (seconds, monotonic by default); ``None`` means never.
    """

    serial_number: int
    probe_id: int = 1
    color: ProbeColor = ProbeColor.YELLOW
    mode: ProbeMode = ProbeMode.NORMAL
    battery_status: BatteryStatus = BatteryStatus.OK
    temperatures: ProbeTemperatures = field(default_factory=ProbeTemperatures)
    virtual_sensors: VirtualSensorSelection = field(default_factory=VirtualSensorSelection)
    virtual_temperatures: VirtualTemperatures = field(default_factory=VirtualTemperatures)
    overheating: Overheating = field(default_factory=Overheating)
    rssi: Optional[int] = None
    min_sequence_number: Optional[int] = None
    max_sequence_number: Optional[int] = None
    prediction: Optional[PredictionInfo] = None
    food_safe: Optional[FoodSafeData] = None
    alarm_config: Optional[AlarmConfig] = None
    preferences: Optional[ThermometerPreferences] = None
    last_update: Optional[float] = None
    stale: bool = False
    id_set_at: Optional[float] = None
    color_set_at: Optional[float] = None

    @property
    def serial_number_string(self) -> str:
        return f"{self.serial_number:08X}"

    @property
    def core_temperature(self) -> Optional[float]:
        return self.virtual_temperatures.core

    @property
    def surface_temperature(self) -> Optional[float]:
        return self.virtual_temperatures.surface

    @property
    def ambient_temperature(self) -> Optional[float]:
        return self.virtual_temperatures.ambient


class StateSubscription:
    """Stream of state snapshots for one consumer.

    Iterate with ``async for``; iteration ends once :meth:`close` is called.
    """

    def __init__(self, owner: "ProbeStateReconciler", loop: asyncio.AbstractEventLoop) -> None:
        self._owner = owner
        self._loop = loop
        self._queue: asyncio.Queue[Optional[ProbeState]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, snapshot: Optional[ProbeState]) -> None:
        if self._loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(snapshot)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, snapshot)

    def close(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._owner._unsubscribe(self)
        self._push(None)

    async def get(self) -> Optional[ProbeState]:
        """Next snapshot, or ``None`` once closed."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def __aiter__(self) -> "StateSubscription":
        return self

    async def __anext__(self) -> ProbeState:
        snapshot = await self.get()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot

    def __enter__(self) -> "StateSubscription":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class ProbeStateReconciler:
    """Owns one :class:`ProbeState` and applies updates to it.

    All mutation happens under one lock; readers get copies through
    :meth:`snapshot`.
    """

    def __init__(
        self,
        serial_number: int,
        *,
        stale_timeout: float = STALE_TIMEOUT,
        grace_period: float = ID_COLOR_GRACE_PERIOD,
        clock: Clock = time.monotonic,
    ) -> None:
        self._state = ProbeState(serial_number=serial_number)
        self._stale_timeout = stale_timeout
        self._grace_period = grace_period
        self._clock = clock
        self._lock = threading.Lock()
        self._subscribers: list[StateSubscription] = []

    @property
    def serial_number(self) -> int:
        return self._state.serial_number

    def snapshot(self) -> ProbeState:
        with self._lock:
            return copy.copy(self._state)

    # ── incoming data ─────────────────────────────────────────────

    def _within_grace(self, anchor: Optional[float], now: float) -> bool:
        return anchor is not None and now - anchor < self._grace_period

    def _apply_identity(self, probe_id: int, color: ProbeColor, now: float) -> None:
        st = self._state
        if not self._within_grace(st.id_set_at, now):
            st.probe_id = probe_id
        if not self._within_grace(st.color_set_at, now):
            st.color = color

    def _apply_readings(
        self,
        temperatures: ProbeTemperatures,
        virtual: VirtualSensorSelection,
        mode: ProbeMode,
        battery: BatteryStatus,
    ) -> None:
        st = self._state
        st.temperatures = temperatures
        st.virtual_sensors = virtual
        st.virtual_temperatures = compute_virtual_temperatures(temperatures, virtual)
        st.mode = mode
        st.battery_status = battery

    def _touch(self, now: float) -> None:
        self._state.last_update = now
        self._state.stale = False

    def apply_advertising(self, adv: AdvertisingData, rssi: Optional[int] = None) -> ProbeState:
        with self._lock:
            now = self._clock()
            self._apply_readings(adv.temperatures, adv.virtual_sensors, adv.mode, adv.battery_status)
            self._apply_identity(adv.probe_id, adv.color, now)
            self._state.overheating = adv.overheating
            if rssi is not None:
                self._state.rssi = rssi
            self._touch(now)
            snap = copy.copy(self._state)
        self._publish(snap)
        return snap

    def apply_status(self, status: ProbeStatus) -> ProbeState:
        with self._lock:
            now = self._clock()
            st = self._state
            self._apply_readings(
                status.temperatures, status.virtual_sensors, status.mode, status.battery_status
            )
            self._apply_identity(status.probe_id, status.color, now)
            st.min_sequence_number = status.min_sequence_number
            st.max_sequence_number = status.max_sequence_number
            st.prediction = status.prediction
            if status.food_safe_config is not None or status.food_safe_status is not None:
                base = st.food_safe or FoodSafeData()
                st.food_safe = base.merge(status.food_safe_config, status.food_safe_status)
            if status.overheating is not None:
                st.overheating = status.overheating
            if status.thermometer_preferences is not None:
                st.preferences = status.thermometer_preferences
            if status.alarm_config is not None:
                st.alarm_config = status.alarm_config
            self._touch(now)
            snap = copy.copy(st)
        self._publish(snap)
        return snap

    # ── local writes ──────────────────────────────────────────────

    def _update(self, apply: Callable[[ProbeState, float], None]) -> ProbeState:
        with self._lock:
            apply(self._state, self._clock())
            snap = copy.copy(self._state)
        self._publish(snap)
        return snap

    def set_probe_id(self, probe_id: int) -> ProbeState:
        def apply(st: ProbeState, now: float) -> None:
            st.probe_id = probe_id
            st.id_set_at = now

        return self._update(apply)

    def set_color(self, color: ProbeColor) -> ProbeState:
        def apply(st: ProbeState, now: float) -> None:
            st.color = color
            st.color_set_at = now

        return self._update(apply)

    def set_alarm_config(self, config: AlarmConfig) -> ProbeState:
        return self._update(lambda st, _now: setattr(st, "alarm_config", config))

    def set_food_safe_config(self, config: FoodSafeConfig) -> ProbeState:
        return self._update(lambda st, _now: setattr(st, "food_safe", FoodSafeData(config=config)))

    def clear_food_safe(self) -> ProbeState:
        return self._update(lambda st, _now: setattr(st, "food_safe", None))

    def set_power_mode(self, mode: PowerMode) -> ProbeState:
        def apply(st: ProbeState, _now: float) -> None:
            reserved = st.preferences.reserved if st.preferences else 0
            st.preferences = ThermometerPreferences(power_mode=mode, reserved=reserved)

        return self._update(apply)

    # ── staleness ─────────────────────────────────────────────────

    def is_stale(self) -> bool:
        """True when nothing was heard for longer than the stale timeout."""
        with self._lock:
            last = self._state.last_update
            stale = last is not None and self._clock() - last > self._stale_timeout
            self._state.stale = stale
            return stale

    # ── subscriptions ─────────────────────────────────────────────

    def subscribe(self) -> StateSubscription:
        """Open a snapshot stream; must be called from a running event loop."""
        sub = StateSubscription(self, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: StateSubscription) -> None:
        with self._lock:
            try:
                self._subscribers.remove(sub)
            except ValueError:
                pass

    def close_subscriptions(self) -> None:
        with self._lock:
            subs = tuple(self._subscribers)
        for sub in subs:
            sub.close()

    def _publish(self, snap: ProbeState) -> None:
        with self._lock:
            subs = tuple(self._subscribers)
        for sub in subs:
            sub._push(copy.copy(snap))
