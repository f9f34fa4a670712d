from __future__ import annotations

from collections.abc import Callable

import typer
from rich.console import Console

from lighthouse_power.errors import AdapterUnavailableError
from lighthouse_power.models import PowerCommand, PowerResult
from lighthouse_power.services import LighthouseService

from .common import build_service, cli_state, outcome_rows, print_result
from .response import (
    EXIT_BLUETOOTH_ERROR,
    EXIT_COMMAND_FAILED,
    EXIT_NO_DEVICES_FOUND,
    EXIT_SUCCESS,
    CommandResponse,
)


def exit_code_for(result: PowerResult) -> int:
    if result.empty:
        return EXIT_NO_DEVICES_FOUND
    if not result.succeeded:
        return EXIT_COMMAND_FAILED
    return EXIT_SUCCESS


def run_power_command(
    ctx: typer.Context,
    command: PowerCommand,
    action: Callable[[LighthouseService], PowerResult],
) -> None:
    state = cli_state(ctx)
    console = Console()

    if not state.json_output:
        console.print(f"Sending {command.label} to base stations...")

    with build_service(ctx) as service:
        try:
            result = action(service)
        except AdapterUnavailableError as exc:
            if state.json_output:
                CommandResponse.error(
                    f"Bluetooth adapter unavailable: {exc}", EXIT_BLUETOOTH_ERROR
                ).emit()
            typer.echo(f"Bluetooth adapter unavailable: {exc}", err=True)
            raise typer.Exit(EXIT_BLUETOOTH_ERROR) from exc

    code = exit_code_for(result)
    if state.json_output:
        CommandResponse(
            success=code == EXIT_SUCCESS,
            message=result.summary(),
            devices=outcome_rows(result),
            error_code=code,
        ).emit()
        return

    if result.empty:
        console.print("No base stations found.")
    else:
        print_result(console, result)
    if code != EXIT_SUCCESS:
        raise typer.Exit(code)


def register(app: typer.Typer) -> None:
    @app.command("on")
    def power_on(ctx: typer.Context) -> None:
        """Wake every known or discovered base station."""
        run_power_command(ctx, PowerCommand.POWER_ON, lambda service: service.power_on_all())

    @app.command()
    def standby(ctx: typer.Context) -> None:
        """Put every known or discovered base station in standby."""
        run_power_command(ctx, PowerCommand.STANDBY, lambda service: service.standby_all())
