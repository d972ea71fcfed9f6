# custom_components/combustion/combustion_probe_control/combustionctl.py
"""Combustion probe control CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import IntEnum
from pathlib import Path
from typing import Any, Awaitable, Callable, NoReturn, Optional, TypeVar

import typer
from rich import print
from rich.table import Table
from typer import Context
from typing_extensions import Annotated

from ..const import DEFAULT_SCAN_TIMEOUT
from ..exception import CombustionError, ProtocolError
from . import capture
from .advertising import AdvertisingData, ProbeColor
from .alarms import ALARM_COUNT, SENSOR_NAMES, AlarmConfig
from .device import ProbeDevice
from .food_safety import (
    FoodSafeConfig,
    FoodSafeMode,
    IntegratedProduct,
    Serving,
    SimplifiedProduct,
)
from .prediction import PredictionMode
from .preferences import PowerMode
from .protocol import SessionInfo, parse_frames
from .scanner import ProbeScanner
from .state import ProbeState, ProbeStateReconciler
from .status import ProbeStatus

app = typer.Typer(help="Combustion predictive thermometer control")

T = TypeVar("T")
E = TypeVar("E", bound=IntEnum)

# ────────────────────────────────────────────────────────────────
# Global options (e.g., --debug)
# ────────────────────────────────────────────────────────────────

@app.callback(invoke_without_command=True)
def _global_options(
    ctx: Context,
    debug: Annotated[
        bool,
        typer.Option("--debug/--no-debug", help="Enable verbose debug logging"),
    ] = False,
):
    """Global options for all probe subcommands."""
    ctx.obj = ctx.obj or {}
    ctx.obj["debug"] = bool(debug)

    if debug:
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(rich_tracebacks=True, show_time=False, show_level=True)],
        )
        logging.getLogger("bleak").setLevel(logging.DEBUG)
        logging.getLogger("custom_components.combustion").setLevel(logging.DEBUG)

# ────────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────────

def _parse_hex_blob(blob: str) -> bytes:
    s = "".join(blob.strip().split())
    if len(s) % 2 != 0:
        raise typer.BadParameter("Hex length must be even.")
    try:
        return bytes.fromhex(s)
    except ValueError as e:
        raise typer.BadParameter("Invalid hex characters in payload.") from e


def _bhex(b: bytes | bytearray) -> str:
    """Space-separated upper-hex, e.g. 'CA FE 12 34 01 01 00'."""
    return bytes(b).hex(" ").upper()


def _enum_by_name(enum_cls: type[E], name: str) -> E:
    key = name.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return enum_cls[key]
    except KeyError:
        choices = ", ".join(m.name.lower().replace("_", "-") for m in enum_cls)
        raise typer.BadParameter(f"Unknown value '{name}'. Choose from: {choices}") from None


def _sensor_index(sensor: str) -> int:
    """Accept 0-10, or a name like T1, core, surface, ambient."""
    s = sensor.strip()
    if s.isdigit() and 0 <= int(s) < ALARM_COUNT:
        return int(s)
    names = [n.lower() for n in SENSOR_NAMES]
    if s.lower() in names:
        return names.index(s.lower())
    raise typer.BadParameter(f"Unknown sensor '{sensor}'. Use 0-10 or one of: {', '.join(SENSOR_NAMES)}")


def _fmt_temp(value: Optional[float]) -> str:
    return "--" if value is None else f"{value:.1f} °C"


def _fail(ex: Exception) -> NoReturn:
    print(f"[red]Error:[/red] {ex}")
    raise typer.Exit(code=1)


def _run_with_probe(
    ctx: Context,
    serial: str,
    func: Callable[[ProbeDevice], Awaitable[T]],
    timeout: float = DEFAULT_SCAN_TIMEOUT,
) -> T:
    """Find the probe, connect, run ``func`` and disconnect."""

    async def _async_func() -> T:
        scanner = ProbeScanner()
        ble_device = await scanner.find_probe(serial, timeout)
        entry = scanner.manager.get(serial)
        assert entry is not None  # nosec
        device = ProbeDevice(ble_device, entry.reconciler, scanner.advertisement_data(serial))
        if ctx.obj and ctx.obj.get("debug"):
            device.set_log_level("DEBUG")
        async with device:
            return await func(device)

    try:
        return asyncio.run(_async_func())
    except CombustionError as ex:
        _fail(ex)


def _state_table(state: ProbeState) -> Table:
    table = Table("Field", "Value", title=f"Probe {state.serial_number_string}")
    table.add_row("Probe ID", str(state.probe_id))
    table.add_row("Color", state.color.name.title())
    table.add_row("Mode", state.mode.name)
    table.add_row("Battery", state.battery_status.name)
    table.add_row("RSSI", "--" if state.rssi is None else f"{state.rssi} dBm")
    table.add_row("Core", _fmt_temp(state.core_temperature))
    table.add_row("Surface", _fmt_temp(state.surface_temperature))
    table.add_row("Ambient", _fmt_temp(state.ambient_temperature))
    table.add_row("T1-T8", "  ".join(_fmt_temp(t) for t in state.temperatures.celsius))
    if state.overheating.is_any_overheating():
        table.add_row(
            "Overheating",
            ", ".join(f"T{i + 1}" for i in state.overheating.overheating_indices()),
        )
    if state.prediction is not None:
        p = state.prediction
        progress = p.temperature_progress
        table.add_row(
            "Prediction",
            f"{p.state.name} {p.mode.name} -> {p.set_point_temperature:.1f} °C, "
            f"{p.prediction_time_formatted}"
            + ("" if progress is None else f" ({progress:.0f}%)"),
        )
    if state.food_safe is not None:
        fs = state.food_safe
        status = fs.status.state.name if fs.status else "--"
        table.add_row(
            "Food safety",
            f"{fs.config.mode.name} {fs.config.product_name}: {status} "
            f"({fs.progress_percent:.0f}%)",
        )
    if state.alarm_config is not None and state.alarm_config.any_enabled():
        ac = state.alarm_config
        parts = [f"{SENSOR_NAMES[i]} > {a.temperature:.1f}" for i, a in enumerate(ac.high) if a.set]
        parts += [f"{SENSOR_NAMES[i]} < {a.temperature:.1f}" for i, a in enumerate(ac.low) if a.set]
        table.add_row("Alarms", ", ".join(parts))
    if state.preferences is not None:
        table.add_row("Power mode", state.preferences.power_mode.name)
    if state.min_sequence_number is not None:
        table.add_row("Log range", f"{state.min_sequence_number}..{state.max_sequence_number}")
    return table


# ────────────────────────────────────────────────────────────────
# combustionctl list-probes
# ────────────────────────────────────────────────────────────────

@app.command(name="list-probes")
def list_probes(
    timeout: Annotated[float, typer.Option(help="Scan duration in seconds")] = DEFAULT_SCAN_TIMEOUT,
) -> None:
    """Scan for probes and list them, strongest signal first."""
    print("the search for probes is running")
    scanner = ProbeScanner()
    asyncio.run(scanner.scan(timeout))
    table = Table("Serial", "Address", "ID", "Color", "Core", "Battery", "RSSI")
    for entry in scanner.manager.probes_by_signal():
        st = entry.state
        table.add_row(
            entry.serial,
            entry.identity,
            str(st.probe_id),
            st.color.name.title(),
            _fmt_temp(st.core_temperature),
            st.battery_status.name,
            "--" if st.rssi is None else str(st.rssi),
        )
    print("Discovered the following probes:")
    print(table)


# ────────────────────────────────────────────────────────────────
# combustionctl monitor <serial>
# ────────────────────────────────────────────────────────────────

@app.command()
def monitor(
    ctx: Context,
    serial: Annotated[str, typer.Argument(help="Probe serial number, e.g. 10005205")],
    duration: Annotated[float, typer.Option(help="Seconds to run")] = 30.0,
    connect: Annotated[bool, typer.Option("--connect/--no-connect", help="Open a session for status notifications")] = False,
    record: Annotated[Optional[Path], typer.Option(help="Write advertising payloads to a JSONL file")] = None,
) -> None:
    """Print live readings for one probe."""
    serial = serial.upper()
    rows: list[dict[str, Any]] = []
    started = time.monotonic()

    def _record(address: str, data: bytes, rssi: Optional[int]) -> None:
        rows.append(capture.make_record(capture.KIND_ADVERTISING, data, time.monotonic() - started, rssi))

    def _line(st: ProbeState) -> str:
        return (
            f"[{time.monotonic() - started:6.1f}s] {st.serial_number_string} "
            f"core {_fmt_temp(st.core_temperature)}  surface {_fmt_temp(st.surface_temperature)}  "
            f"ambient {_fmt_temp(st.ambient_temperature)}"
        )

    async def _watch(sub: Any) -> None:
        async for st in sub:
            print(_line(st))

    async def _async_func() -> None:
        scanner = ProbeScanner(on_payload=_record if record else None)
        async with scanner:
            ble_device = await scanner.find_probe(serial, DEFAULT_SCAN_TIMEOUT)
            entry = scanner.manager.get(serial)
            assert entry is not None  # nosec
            device: Optional[ProbeDevice] = None
            if connect:
                device = ProbeDevice(ble_device, entry.reconciler, scanner.advertisement_data(serial))
                scanner.track(serial, device)
                if ctx.obj and ctx.obj.get("debug"):
                    device.set_log_level("DEBUG")
                await device.connect()
            sub = entry.reconciler.subscribe()
            task = asyncio.create_task(_watch(sub))
            try:
                await asyncio.sleep(duration)
            finally:
                sub.close()
                await task
                if device is not None:
                    await device.disconnect()
        print(_state_table(entry.state))

    try:
        asyncio.run(_async_func())
    except CombustionError as ex:
        _fail(ex)
    finally:
        if record:
            with record.open("w", encoding="utf-8") as out:
                capture.write_jsonl(rows, out)
            print(f"Wrote {len(rows)} rows to {record}")


# ────────────────────────────────────────────────────────────────
# Offline decoders
# ────────────────────────────────────────────────────────────────

@app.command(name="decode-advertising")
def decode_advertising(
    payload: Annotated[str, typer.Argument(help="Manufacturer data as hex (company id stripped)")],
) -> None:
    """Decode one advertising payload."""
    try:
        adv = AdvertisingData.from_bytes(_parse_hex_blob(payload))
    except ProtocolError as ex:
        _fail(ex)
    table = Table("Field", "Value", title=f"Advertising {adv.serial_number_string}")
    table.add_row("Product", adv.product_type.name)
    table.add_row("Probe ID", str(adv.probe_id))
    table.add_row("Color", adv.color.name.title())
    table.add_row("Mode", adv.mode.name)
    table.add_row("Battery", adv.battery_status.name)
    vt = adv.virtual_temperatures
    table.add_row("Core / Surface / Ambient", " / ".join(_fmt_temp(t) for t in (vt.core, vt.surface, vt.ambient)))
    table.add_row("T1-T8", "  ".join(_fmt_temp(t) for t in adv.temperatures.celsius))
    table.add_row("Overheating", ", ".join(f"T{i + 1}" for i in adv.overheating.overheating_indices()) or "none")
    print(table)


@app.command(name="decode-status")
def decode_status(
    payload: Annotated[str, typer.Argument(help="Probe Status notification as hex")],
) -> None:
    """Decode one status notification and show the resulting state."""
    try:
        status = ProbeStatus.from_bytes(_parse_hex_blob(payload))
    except ProtocolError as ex:
        _fail(ex)
    state = ProbeStateReconciler(0).apply_status(status)
    print(_state_table(state))
    print(
        f"log records available: {status.available_log_count}; "
        f"sections: food-safe={'yes' if status.food_safe_config else 'no'} "
        f"alarms={'yes' if status.alarm_config else 'no'} "
        f"preferences={'yes' if status.thermometer_preferences else 'no'}"
    )


@app.command(name="decode-frame")
def decode_frame(
    frame: Annotated[str, typer.Argument(help="One or more UART frames as hex")],
) -> None:
    """Check framing and CRC of UART messages."""
    try:
        messages = parse_frames(_parse_hex_blob(frame))
    except ProtocolError as ex:
        _fail(ex)
    table = Table("Type", "Raw", "Response", "Payload")
    for msg in messages:
        table.add_row(
            msg.message_type.name,
            f"0x{msg.raw_type:02X}",
            ("ok" if msg.is_success else "error") if msg.is_response else "-",
            _bhex(msg.payload) or "(empty)",
        )
    print(table)


@app.command()
def replay(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="JSONL or JSON array capture")],
    serial: Annotated[Optional[str], typer.Option(help="Only replay this serial number")] = None,
) -> None:
    """Replay a capture through the state reconciler."""
    with path.open("r", encoding="utf-8") as stream:
        result = capture.replay(
            capture.iter_records(stream), int(serial, 16) if serial else None
        )
    print(_state_table(result.state))
    print(f"applied {result.applied} rows, skipped {result.skipped}")


# ────────────────────────────────────────────────────────────────
# Probe commands (connect, write, disconnect)
# ────────────────────────────────────────────────────────────────

SerialArg = Annotated[str, typer.Argument(help="Probe serial number")]
TimeoutOpt = Annotated[float, typer.Option(help="Scan timeout in seconds")]


@app.command(name="set-id")
def set_id(
    ctx: Context,
    serial: SerialArg,
    probe_id: Annotated[int, typer.Argument(min=1, max=8)],
    timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT,
) -> None:
    """Set the probe ID (1-8)."""
    _run_with_probe(ctx, serial, lambda d: d.set_probe_id(probe_id), timeout)
    print(f"Probe {serial.upper()} ID set to {probe_id}")


@app.command(name="set-color")
def set_color(
    ctx: Context,
    serial: SerialArg,
    color: Annotated[str, typer.Argument(help="yellow, grey, red, orange, blue, green, purple, pink")],
    timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT,
) -> None:
    """Set the probe color."""
    value = _enum_by_name(ProbeColor, color)
    _run_with_probe(ctx, serial, lambda d: d.set_color(value), timeout)
    print(f"Probe {serial.upper()} color set to {value.name.lower()}")


@app.command(name="set-prediction")
def set_prediction(
    ctx: Context,
    serial: SerialArg,
    set_point: Annotated[float, typer.Argument(help="Target core temperature in °C")],
    mode: Annotated[str, typer.Option(help="time-to-removal or removal-and-resting")] = "time-to-removal",
    timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT,
) -> None:
    """Start a prediction towards a core set point."""
    value = _enum_by_name(PredictionMode, mode)
    _run_with_probe(ctx, serial, lambda d: d.set_prediction(value, set_point), timeout)
    print(f"Prediction set: {value.name} -> {set_point:.1f} °C")


@app.command(name="cancel-prediction")
def cancel_prediction(ctx: Context, serial: SerialArg, timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT) -> None:
    """Cancel the running prediction."""
    _run_with_probe(ctx, serial, lambda d: d.cancel_prediction(), timeout)
    print("Prediction cancelled")


@app.command(name="configure-food-safe")
def configure_food_safe(
    ctx: Context,
    serial: SerialArg,
    product: Annotated[str, typer.Argument(help="Product name, e.g. poultry, beef-cuts")],
    mode: Annotated[str, typer.Option(help="simplified or integrated")] = "integrated",
    serving: Annotated[str, typer.Option(help="served-immediately or cooked-and-chilled")] = "served-immediately",
    timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT,
) -> None:
    """Enable food-safety tracking for a product."""
    fs_mode = _enum_by_name(FoodSafeMode, mode)
    fs_serving = _enum_by_name(Serving, serving)
    if fs_mode is FoodSafeMode.INTEGRATED:
        config = FoodSafeConfig.integrated(_enum_by_name(IntegratedProduct, product), fs_serving)
    else:
        config = FoodSafeConfig.simplified(_enum_by_name(SimplifiedProduct, product), fs_serving)
    _run_with_probe(ctx, serial, lambda d: d.configure_food_safe(config), timeout)
    print(f"Food safety configured: {config.mode.name} {config.product_name}")


@app.command(name="reset-food-safe")
def reset_food_safe(ctx: Context, serial: SerialArg, timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT) -> None:
    """Reset food-safety tracking."""
    _run_with_probe(ctx, serial, lambda d: d.reset_food_safe(), timeout)
    print("Food safety reset")


@app.command(name="set-alarm")
def set_alarm(
    ctx: Context,
    serial: SerialArg,
    sensor: Annotated[str, typer.Argument(help="0-10, T1..T8, core, surface or ambient")],
    high: Annotated[Optional[float], typer.Option(help="High alarm in °C")] = None,
    low: Annotated[Optional[float], typer.Option(help="Low alarm in °C")] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Disable both alarms for the sensor")] = False,
    timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT,
) -> None:
    """Set or clear the high/low alarm of one sensor."""
    index = _sensor_index(sensor)
    if not clear and high is None and low is None:
        raise typer.BadParameter("Give --high, --low or --clear.")

    async def _apply(device: ProbeDevice) -> AlarmConfig:
        config = device.state.alarm_config or AlarmConfig()
        if clear:
            config = config.with_high_alarm(index, None).with_low_alarm(index, None)
        if high is not None:
            config = config.with_high_alarm(index, high)
        if low is not None:
            config = config.with_low_alarm(index, low)
        await device.set_alarms(config)
        return config

    config = _run_with_probe(ctx, serial, _apply, timeout)
    h, lo = config.high[index], config.low[index]
    print(
        f"{SENSOR_NAMES[index]}: high {'%.1f °C' % h.temperature if h.set else 'off'}, "
        f"low {'%.1f °C' % lo.temperature if lo.set else 'off'}"
    )


@app.command(name="silence-alarms")
def silence_alarms(ctx: Context, serial: SerialArg, timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT) -> None:
    """Silence sounding alarms."""
    _run_with_probe(ctx, serial, lambda d: d.silence_alarms(), timeout)
    print("Alarms silenced")


@app.command(name="set-power-mode")
def set_power_mode(
    ctx: Context,
    serial: SerialArg,
    mode: Annotated[str, typer.Argument(help="normal or always-on")],
    timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT,
) -> None:
    """Set the thermometer power mode."""
    value = _enum_by_name(PowerMode, mode)
    _run_with_probe(ctx, serial, lambda d: d.set_power_mode(value), timeout)
    print(f"Power mode set to {value.name.lower()}")


@app.command(name="reset-thermometer")
def reset_thermometer(ctx: Context, serial: SerialArg, timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT) -> None:
    """Reset the thermometer to factory settings."""
    _run_with_probe(ctx, serial, lambda d: d.reset_thermometer(), timeout)
    print("Thermometer reset")


@app.command(name="session-info")
def session_info(ctx: Context, serial: SerialArg, timeout: TimeoutOpt = DEFAULT_SCAN_TIMEOUT) -> None:
    """Read the current session id and sample period."""
    info: SessionInfo = _run_with_probe(ctx, serial, lambda d: d.read_session_info(), timeout)
    print(f"session 0x{info.session_id:08X}, sample period {info.sample_period_ms} ms ({info.sample_rate_hz:.2f} Hz)")


if __name__ == "__main__":
    app()
