"""Hooks invoked by SteamVR itself, not meant for interactive use."""

from __future__ import annotations

import logging
from collections.abc import Callable

import typer

from lighthouse_power.errors import AdapterUnavailableError
from lighthouse_power.models import PowerResult
from lighthouse_power.services import LighthouseService

from .common import build_service, cli_state, outcome_rows
from .response import EXIT_BLUETOOTH_ERROR, CommandResponse

logger = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True, help="SteamVR lifecycle hooks")


def _run_hook(ctx: typer.Context, hook: Callable[[LighthouseService], PowerResult]) -> None:
    state = cli_state(ctx)
    with build_service(ctx) as service:
        try:
            result = hook(service)
        except AdapterUnavailableError as exc:
            logger.error("Bluetooth adapter unavailable: %s", exc)
            if state.json_output:
                CommandResponse.error(str(exc), EXIT_BLUETOOTH_ERROR).emit()
            raise typer.Exit(EXIT_BLUETOOTH_ERROR) from exc

    # partial success still counts; the hook must not stall SteamVR
    if state.json_output:
        CommandResponse.ok(result.summary(), outcome_rows(result)).emit()
    else:
        typer.echo(result.summary())


@app.command("started")
def runtime_started(ctx: typer.Context) -> None:
    """Power base stations on (SteamVR started)."""
    _run_hook(ctx, lambda service: service.on_runtime_started())


@app.command("stopped")
def runtime_stopped(ctx: typer.Context) -> None:
    """Put base stations in standby (SteamVR stopped)."""
    _run_hook(ctx, lambda service: service.on_runtime_stopped())
