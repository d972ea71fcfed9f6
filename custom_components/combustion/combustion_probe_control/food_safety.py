# custom_components/combustion/combustion_probe_control/food_safety.py
"""Food-safety configuration and status.

Configuration (10 bytes, bit offsets)::

    0   mode                 3 bits   Simplified / Integrated
    3   product             10 bits   meaning depends on mode
    13  serving              3 bits
    16  threshold           13 bits   x 0.05 °C
    29  z-value             13 bits   x 0.05 °C
    42  reference temp      13 bits   x 0.05 °C
    55  D-value at ref      13 bits   x 0.05
    68  target log reduce    8 bits   x 0.1

Status (8 bytes, bit offsets)::

    0   state                3 bits
    3   log reduction        8 bits   x 0.1
    11  seconds above thr   16 bits
    27  log sequence        32 bits
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import NamedTuple, Optional, Union

from ..exception import LengthError, ParameterOutOfRangeError
from .bitfield import BitField, decode_fixed, encode_fixed

__all__ = [
    "FOOD_SAFE_CONFIG_BYTES",
    "FOOD_SAFE_STATUS_BYTES",
    "FoodSafeMode",
    "Serving",
    "SimplifiedProduct",
    "IntegratedProduct",
    "IntegratedParameters",
    "FoodSafeState",
    "FoodSafeConfig",
    "FoodSafeStatus",
    "FoodSafeData",
    "food_safety_progress",
]

FOOD_SAFE_CONFIG_BYTES = 10
FOOD_SAFE_STATUS_BYTES = 8

CFG_MODE = BitField(0, 3)
CFG_PRODUCT = BitField(3, 10)
CFG_SERVING = BitField(13, 3)
CFG_THRESHOLD = BitField(16, 13)
CFG_Z_VALUE = BitField(29, 13)
CFG_REFERENCE = BitField(42, 13)
CFG_D_VALUE = BitField(55, 13)
CFG_LOG_REDUCTION = BitField(68, 8)

ST_STATE = BitField(0, 3)
ST_LOG_REDUCTION = BitField(3, 8)
ST_SECONDS = BitField(11, 16)
ST_SEQUENCE = BitField(27, 32)

TEMPERATURE_SCALE = 0.05
LOG_REDUCTION_SCALE = 0.1


class FoodSafeMode(IntEnum):
    SIMPLIFIED = 0
    INTEGRATED = 1


class Serving(IntEnum):
    SERVED_IMMEDIATELY = 0
    COOKED_AND_CHILLED = 1


class SimplifiedProduct(IntEnum):
    DEFAULT = 0
    ANY_POULTRY = 1
    BEEF_CUTS = 2
    PORK_CUTS = 3
    VEAL_CUTS = 4
    LAMB_CUTS = 5
    GROUND_MEATS = 6
    HAM_FRESH_OR_SMOKED = 7
    HAM_COOKED_AND_REHEATED = 8
    EGGS = 9
    FISH_AND_SHELLFISH = 10
    LEFTOVERS = 11
    CASSEROLES = 12


class IntegratedProduct(IntEnum):
    POULTRY = 0
    MEATS = 1
    MEATS_GROUND = 2
    POULTRY_GROUND = 3
    SEAFOOD = 4
    SEAFOOD_GROUND = 5
    DAIRY = 6
    EGGS = 7
    CUSTOM = 1023


# Instant-kill temperature (°C) for each simplified product.
SIMPLIFIED_THRESHOLDS: dict[SimplifiedProduct, float] = {
    SimplifiedProduct.DEFAULT: 63.0,
    SimplifiedProduct.ANY_POULTRY: 74.0,
    SimplifiedProduct.BEEF_CUTS: 63.0,
    SimplifiedProduct.PORK_CUTS: 63.0,
    SimplifiedProduct.VEAL_CUTS: 63.0,
    SimplifiedProduct.LAMB_CUTS: 63.0,
    SimplifiedProduct.GROUND_MEATS: 71.0,
    SimplifiedProduct.HAM_FRESH_OR_SMOKED: 63.0,
    SimplifiedProduct.HAM_COOKED_AND_REHEATED: 74.0,
    SimplifiedProduct.EGGS: 71.0,
    SimplifiedProduct.FISH_AND_SHELLFISH: 63.0,
    SimplifiedProduct.LEFTOVERS: 74.0,
    SimplifiedProduct.CASSEROLES: 74.0,
}


class IntegratedParameters(NamedTuple):
    threshold: float
    z_value: float
    reference_temperature: float
    d_value: float
    target_log_reduction: float


INTEGRATED_PARAMETERS: dict[IntegratedProduct, IntegratedParameters] = {
    IntegratedProduct.POULTRY: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 7.0),
    IntegratedProduct.MEATS: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 5.0),
    IntegratedProduct.MEATS_GROUND: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 6.5),
    IntegratedProduct.POULTRY_GROUND: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 7.0),
    IntegratedProduct.SEAFOOD: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 6.0),
    IntegratedProduct.SEAFOOD_GROUND: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 6.0),
    IntegratedProduct.DAIRY: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 5.0),
    IntegratedProduct.EGGS: IntegratedParameters(54.4, 5.5, 70.0, 1.0, 5.0),
}

Product = Union[SimplifiedProduct, IntegratedProduct]


def food_safety_progress(log_reduction: float, target: float) -> float:
    """Percentage of the target log reduction achieved, clamped 0..100."""
    if target <= 0:
        return 100.0
    return max(0.0, min(100.0, log_reduction / target * 100.0))


def _enum_or(enum_cls, value: int, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _product_from_raw(mode: FoodSafeMode, value: int) -> Product:
    if mode is FoodSafeMode.INTEGRATED:
        return _enum_or(IntegratedProduct, value, IntegratedProduct.CUSTOM)
    return _enum_or(SimplifiedProduct, value, SimplifiedProduct.DEFAULT)


# ────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FoodSafeConfig:
    mode: FoodSafeMode = FoodSafeMode.SIMPLIFIED
    product: Product = SimplifiedProduct.DEFAULT
    serving: Serving = Serving.SERVED_IMMEDIATELY
    threshold_temperature: float = 0.0
    z_value: float = 0.0
    reference_temperature: float = 0.0
    d_value_at_reference: float = 0.0
    target_log_reduction: float = 0.0

    def __post_init__(self) -> None:
        expected = IntegratedProduct if self.mode is FoodSafeMode.INTEGRATED else SimplifiedProduct
        if not isinstance(self.product, expected):
            raise ParameterOutOfRangeError(
                "product", self.product, f"{self.mode.name} mode needs a {expected.__name__}"
            )

    @classmethod
    def simplified(
        cls, product: SimplifiedProduct, serving: Serving = Serving.SERVED_IMMEDIATELY
    ) -> "FoodSafeConfig":
        return cls(
            mode=FoodSafeMode.SIMPLIFIED,
            product=product,
            serving=serving,
            threshold_temperature=SIMPLIFIED_THRESHOLDS[product],
        )

    @classmethod
    def integrated(
        cls, product: IntegratedProduct, serving: Serving = Serving.SERVED_IMMEDIATELY
    ) -> "FoodSafeConfig":
        if product is IntegratedProduct.CUSTOM:
            raise ParameterOutOfRangeError("product", product, "use FoodSafeConfig.custom()")
        p = INTEGRATED_PARAMETERS[product]
        return cls(
            mode=FoodSafeMode.INTEGRATED,
            product=product,
            serving=serving,
            threshold_temperature=p.threshold,
            z_value=p.z_value,
            reference_temperature=p.reference_temperature,
            d_value_at_reference=p.d_value,
            target_log_reduction=p.target_log_reduction,
        )

    @classmethod
    def custom(
        cls,
        threshold_temperature: float,
        z_value: float,
        reference_temperature: float,
        d_value_at_reference: float,
        target_log_reduction: float,
        serving: Serving = Serving.SERVED_IMMEDIATELY,
    ) -> "FoodSafeConfig":
        for name, value, field_ in (
            ("threshold_temperature", threshold_temperature, CFG_THRESHOLD),
            ("z_value", z_value, CFG_Z_VALUE),
            ("reference_temperature", reference_temperature, CFG_REFERENCE),
            ("d_value_at_reference", d_value_at_reference, CFG_D_VALUE),
        ):
            top = field_.max_value * TEMPERATURE_SCALE
            if not 0.0 <= value <= top:
                raise ParameterOutOfRangeError(name, value, f"0..{top:.2f}")
        top = CFG_LOG_REDUCTION.max_value * LOG_REDUCTION_SCALE
        if not 0.0 <= target_log_reduction <= top:
            raise ParameterOutOfRangeError("target_log_reduction", target_log_reduction, f"0..{top:.1f}")
        return cls(
            mode=FoodSafeMode.INTEGRATED,
            product=IntegratedProduct.CUSTOM,
            serving=serving,
            threshold_temperature=threshold_temperature,
            z_value=z_value,
            reference_temperature=reference_temperature,
            d_value_at_reference=d_value_at_reference,
            target_log_reduction=target_log_reduction,
        )

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "FoodSafeConfig":
        if len(data) < FOOD_SAFE_CONFIG_BYTES:
            raise LengthError("food safe config", FOOD_SAFE_CONFIG_BYTES, len(data))
        mode = _enum_or(FoodSafeMode, CFG_MODE.read(data), FoodSafeMode.SIMPLIFIED)
        return cls(
            mode=mode,
            product=_product_from_raw(mode, CFG_PRODUCT.read(data)),
            serving=_enum_or(Serving, CFG_SERVING.read(data), Serving.SERVED_IMMEDIATELY),
            threshold_temperature=decode_fixed(CFG_THRESHOLD.read(data), TEMPERATURE_SCALE),
            z_value=decode_fixed(CFG_Z_VALUE.read(data), TEMPERATURE_SCALE),
            reference_temperature=decode_fixed(CFG_REFERENCE.read(data), TEMPERATURE_SCALE),
            d_value_at_reference=decode_fixed(CFG_D_VALUE.read(data), TEMPERATURE_SCALE),
            target_log_reduction=decode_fixed(CFG_LOG_REDUCTION.read(data), LOG_REDUCTION_SCALE),
        )

    def to_bytes(self) -> bytes:
        buf = bytearray(FOOD_SAFE_CONFIG_BYTES)
        CFG_MODE.write(buf, int(self.mode))
        CFG_PRODUCT.write(buf, int(self.product))
        CFG_SERVING.write(buf, int(self.serving))
        for field_, value in (
            (CFG_THRESHOLD, self.threshold_temperature),
            (CFG_Z_VALUE, self.z_value),
            (CFG_REFERENCE, self.reference_temperature),
            (CFG_D_VALUE, self.d_value_at_reference),
        ):
            field_.write(buf, encode_fixed(value, TEMPERATURE_SCALE, width=field_.width))
        CFG_LOG_REDUCTION.write(
            buf, encode_fixed(self.target_log_reduction, LOG_REDUCTION_SCALE, width=CFG_LOG_REDUCTION.width)
        )
        return bytes(buf)

    @property
    def product_name(self) -> str:
        return self.product.name.replace("_", " ").title()


# ────────────────────────────────────────────────────────────────
# Status
# ────────────────────────────────────────────────────────────────

class FoodSafeState(IntEnum):
    NOT_SAFE = 0
    SAFE = 1
    SAFETY_IMPOSSIBLE = 2


@dataclass(frozen=True)
class FoodSafeStatus:
    state: FoodSafeState = FoodSafeState.NOT_SAFE
    log_reduction: float = 0.0
    seconds_above_threshold: int = 0
    log_sequence_number: int = 0

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "FoodSafeStatus":
        if len(data) < FOOD_SAFE_STATUS_BYTES:
            raise LengthError("food safe status", FOOD_SAFE_STATUS_BYTES, len(data))
        return cls(
            state=_enum_or(FoodSafeState, ST_STATE.read(data), FoodSafeState.NOT_SAFE),
            log_reduction=decode_fixed(ST_LOG_REDUCTION.read(data), LOG_REDUCTION_SCALE),
            seconds_above_threshold=ST_SECONDS.read(data),
            log_sequence_number=ST_SEQUENCE.read(data),
        )

    def to_bytes(self) -> bytes:
        buf = bytearray(FOOD_SAFE_STATUS_BYTES)
        ST_STATE.write(buf, int(self.state))
        ST_LOG_REDUCTION.write(
            buf, encode_fixed(self.log_reduction, LOG_REDUCTION_SCALE, width=ST_LOG_REDUCTION.width)
        )
        ST_SECONDS.write(buf, self.seconds_above_threshold)
        ST_SEQUENCE.write(buf, self.log_sequence_number)
        return bytes(buf)

    @property
    def is_safe(self) -> bool:
        return self.state is FoodSafeState.SAFE

    @property
    def is_terminal(self) -> bool:
        return self.state is FoodSafeState.SAFETY_IMPOSSIBLE


# ────────────────────────────────────────────────────────────────
# Combined view kept by the probe state
# ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FoodSafeData:
    config: FoodSafeConfig = field(default_factory=FoodSafeConfig)
    status: Optional[FoodSafeStatus] = None

    def merge(
        self,
        config: Optional[FoodSafeConfig] = None,
        status: Optional[FoodSafeStatus] = None,
    ) -> "FoodSafeData":
        """Return a copy with whichever parts were supplied replaced."""
        return FoodSafeData(
            config=self.config if config is None else config,
            status=self.status if status is None else status,
        )

    @property
    def is_safe(self) -> bool:
        return self.status is not None and self.status.is_safe

    @property
    def progress_percent(self) -> float:
        if self.status is None:
            return 0.0
        if self.config.mode is FoodSafeMode.SIMPLIFIED:
            return 100.0 if self.status.is_safe else 0.0
        return food_safety_progress(self.status.log_reduction, self.config.target_log_reduction)

    @property
    def remaining_reduction(self) -> float:
        if self.status is None:
            return self.config.target_log_reduction
        return max(self.config.target_log_reduction - self.status.log_reduction, 0.0)
