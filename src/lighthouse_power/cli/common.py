from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from lighthouse_power.config import Settings, get_settings, resolve_config_path
from lighthouse_power.core import SimulatedTransport
from lighthouse_power.models import Device, DeviceStatus, PowerResult
from lighthouse_power.services import LighthouseService

from .response import EXIT_GENERAL_ERROR, CommandResponse

_STATUS_STYLES = {
    DeviceStatus.ONLINE: "green",
    DeviceStatus.STANDBY: "blue",
    DeviceStatus.TRANSITIONING: "yellow",
    DeviceStatus.UNREACHABLE: "red",
}


@dataclass
class CliState:
    json_output: bool = False
    simulate: bool = False


def cli_state(ctx: typer.Context) -> CliState:
    state = ctx.find_root().obj
    return state if isinstance(state, CliState) else CliState()


def load_settings_or_exit(state: CliState | None = None) -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        if state is not None and state.json_output:
            CommandResponse.error(str(exc), EXIT_GENERAL_ERROR).emit()
        typer.echo(str(exc), err=True)
        raise typer.Exit(EXIT_GENERAL_ERROR) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(EXIT_GENERAL_ERROR) from exc


def build_service(ctx: typer.Context) -> LighthouseService:
    state = cli_state(ctx)
    settings = load_settings_or_exit(state)
    transport = SimulatedTransport.demo() if state.simulate else None
    return LighthouseService(settings, transport=transport)


def device_rows(devices: list[Device]) -> list[dict[str, object]]:
    return [device.model_dump(mode="json") for device in devices]


def outcome_rows(result: PowerResult) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for outcome in result.devices:
        row = outcome.device.model_dump(mode="json")
        row["status"] = outcome.status.value
        row["attempts"] = outcome.attempts
        row["error"] = outcome.error
        rows.append(row)
    return rows


def print_devices(console: Console, devices: list[Device]) -> None:
    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="green")
    table.add_column("Last seen")

    for device in devices:
        last_seen = device.last_seen.strftime("%Y-%m-%d %H:%M:%S") if device.last_seen else ""
        table.add_row(device.name, device.address, last_seen)

    console.print(table)


def print_result(console: Console, result: PowerResult) -> None:
    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="green")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Error")

    for outcome in result.devices:
        style = _STATUS_STYLES[outcome.status]
        table.add_row(
            outcome.device.name,
            outcome.device.address,
            f"[{style}]{outcome.status.value}[/{style}]",
            str(outcome.attempts),
            outcome.error or "",
        )

    console.print(table)
    colour = "green" if not result.failed else "yellow"
    console.print(f"\n[{colour}]{result.summary()}[/{colour}]")
    if result.timed_out:
        console.print("[yellow]![/yellow] Time budget ran out before every device answered")
