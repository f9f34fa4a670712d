from __future__ import annotations

from typing import NoReturn

import typer
from rich.console import Console

from lighthouse_power.errors import RegistrationError

from .common import build_service, cli_state
from .response import EXIT_STEAMVR_ERROR, CommandResponse

app = typer.Typer(no_args_is_help=True, help="Manage SteamVR auto-start registration")


def _fail(ctx: typer.Context, message: str, exc: RegistrationError) -> NoReturn:
    if cli_state(ctx).json_output:
        CommandResponse.error(f"{message}: {exc}", EXIT_STEAMVR_ERROR).emit()
    typer.echo(f"{message}: {exc}", err=True)
    raise typer.Exit(EXIT_STEAMVR_ERROR) from exc


@app.command("register")
def register_steamvr(ctx: typer.Context) -> None:
    """Let SteamVR power base stations on when it starts."""
    with build_service(ctx) as service:
        try:
            service.set_registration(True)
        except RegistrationError as exc:
            _fail(ctx, "Failed to register with SteamVR", exc)
        manifest = service.bridge.manifest_path

    if cli_state(ctx).json_output:
        CommandResponse.ok("Successfully registered with SteamVR").emit()
        return
    Console().print(f"[green]✓[/green] Registered {manifest} with SteamVR")


@app.command("unregister")
def unregister_steamvr(ctx: typer.Context) -> None:
    """Remove the SteamVR registration."""
    with build_service(ctx) as service:
        try:
            service.set_registration(False)
        except RegistrationError as exc:
            _fail(ctx, "Failed to unregister from SteamVR", exc)

    if cli_state(ctx).json_output:
        CommandResponse.ok("Successfully unregistered from SteamVR").emit()
        return
    Console().print("[green]✓[/green] Unregistered from SteamVR")


@app.command("status")
def steamvr_status(ctx: typer.Context) -> None:
    """Show whether SteamVR will start lighthouse-power."""
    with build_service(ctx) as service:
        try:
            registered = service.get_registration_status()
        except RegistrationError as exc:
            _fail(ctx, "Could not read SteamVR registration", exc)

    if cli_state(ctx).json_output:
        CommandResponse.ok("registered" if registered else "not registered").emit()
        return
    if registered:
        Console().print("[green]Registered[/green] with SteamVR")
    else:
        Console().print("[yellow]Not registered[/yellow] with SteamVR")
