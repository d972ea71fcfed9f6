"""Codecs and state tracking for Combustion predictive thermometers.

BLE-bound classes live in :mod:`.device` and :mod:`.scanner` so the codec
modules can be used without a radio.
"""

from __future__ import annotations

from .advertising import AdvertisingData, BatteryStatus, ProbeColor, ProbeMode, ProductType
from .alarms import AlarmConfig, AlarmStatus
from .food_safety import (
    FoodSafeConfig,
    FoodSafeData,
    FoodSafeMode,
    FoodSafeState,
    FoodSafeStatus,
    IntegratedProduct,
    Serving,
    SimplifiedProduct,
    food_safety_progress,
)
from .manager import ProbeManager
from .prediction import PredictionInfo, PredictionMode, PredictionState, prediction_progress
from .preferences import PowerMode, ThermometerPreferences
from .protocol import MessageType, SessionInfo, UartMessage
from .state import ProbeState, ProbeStateReconciler, StateSubscription
from .status import ProbeStatus
from .temperatures import (
    ProbeTemperatures,
    VirtualSensorSelection,
    VirtualTemperatures,
    compute_virtual_temperatures,
)

__all__ = [
    "AdvertisingData",
    "AlarmConfig",
    "AlarmStatus",
    "BatteryStatus",
    "FoodSafeConfig",
    "FoodSafeData",
    "FoodSafeMode",
    "FoodSafeState",
    "FoodSafeStatus",
    "IntegratedProduct",
    "MessageType",
    "PowerMode",
    "PredictionInfo",
    "PredictionMode",
    "PredictionState",
    "ProbeColor",
    "ProbeManager",
    "ProbeMode",
    "ProbeState",
    "ProbeStateReconciler",
    "ProbeStatus",
    "ProbeTemperatures",
    "ProductType",
    "Serving",
    "SessionInfo",
    "SimplifiedProduct",
    "StateSubscription",
    "ThermometerPreferences",
    "UartMessage",
    "VirtualSensorSelection",
    "VirtualTemperatures",
    "compute_virtual_temperatures",
    "food_safety_progress",
    "prediction_progress",
]
