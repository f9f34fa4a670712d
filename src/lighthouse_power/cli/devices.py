from __future__ import annotations

import logging
from typing import Annotated

import typer
from rich.console import Console

from lighthouse_power.errors import AdapterUnavailableError, PersistenceError

from .common import build_service, cli_state, device_rows, print_devices
from .response import EXIT_BLUETOOTH_ERROR, EXIT_GENERAL_ERROR, CommandResponse

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    @app.command()
    def scan(ctx: typer.Context) -> None:
        """Scan for base stations and remember them."""
        state = cli_state(ctx)
        console = Console()

        if not state.json_output:
            console.print("Scanning for base stations...")

        with build_service(ctx) as service:
            try:
                devices = service.scan_for_devices()
            except AdapterUnavailableError as exc:
                if state.json_output:
                    CommandResponse.error(
                        f"Failed to scan for devices: {exc}", EXIT_BLUETOOTH_ERROR
                    ).emit()
                typer.echo(f"Bluetooth adapter unavailable: {exc}", err=True)
                raise typer.Exit(EXIT_BLUETOOTH_ERROR) from exc

        if state.json_output:
            CommandResponse.ok(
                "Successfully scanned and saved device information", device_rows(devices)
            ).emit()
            return

        if not devices:
            console.print("No base stations found.")
            return

        print_devices(console, devices)
        console.print(f"\n[green]{len(devices)} known base station(s)[/green]")

    @app.command()
    def devices(
        ctx: typer.Context,
        scan_if_empty: Annotated[
            bool,
            typer.Option("--scan-if-empty", help="Scan when no devices are saved yet"),
        ] = False,
    ) -> None:
        """List saved base stations."""
        state = cli_state(ctx)
        console = Console()

        with build_service(ctx) as service:
            known = service.get_devices()
            if not known and scan_if_empty:
                logger.info("No saved devices; scanning")
                try:
                    known = service.scan_for_devices()
                except AdapterUnavailableError as exc:
                    if state.json_output:
                        CommandResponse.error(
                            f"Failed to scan for devices: {exc}", EXIT_BLUETOOTH_ERROR
                        ).emit()
                    typer.echo(f"Bluetooth adapter unavailable: {exc}", err=True)
                    raise typer.Exit(EXIT_BLUETOOTH_ERROR) from exc

        if state.json_output:
            CommandResponse.ok(
                "Successfully retrieved device information", device_rows(known)
            ).emit()
            return

        if not known:
            console.print("No saved base stations. Run 'lighthouse-power scan'.")
            return
        print_devices(console, known)

    @app.command()
    def clear(
        ctx: typer.Context,
        yes: Annotated[
            bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")
        ] = False,
    ) -> None:
        """Forget every saved base station."""
        state = cli_state(ctx)

        with build_service(ctx) as service:
            if (
                not yes
                and not state.json_output
                and service.load_preferences().confirm_clear
                and not typer.confirm("Forget all saved base stations?")
            ):
                raise typer.Abort()
            try:
                service.clear_saved_devices()
            except PersistenceError as exc:
                if state.json_output:
                    CommandResponse.error(str(exc), EXIT_GENERAL_ERROR).emit()
                typer.echo(str(exc), err=True)
                raise typer.Exit(EXIT_GENERAL_ERROR) from exc

        if state.json_output:
            CommandResponse.ok("Cleared saved devices").emit()
            return
        Console().print("[green]✓[/green] Cleared saved base stations")

    @app.command()
    def reset(
        ctx: typer.Context,
        yes: Annotated[
            bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")
        ] = False,
    ) -> None:
        """Delete saved devices and preferences."""
        state = cli_state(ctx)
        if not yes and not state.json_output:
            typer.confirm("Delete all lighthouse-power data?", abort=True)

        with build_service(ctx) as service:
            try:
                service.reset_data()
            except PersistenceError as exc:
                if state.json_output:
                    CommandResponse.error(str(exc), EXIT_GENERAL_ERROR).emit()
                typer.echo(str(exc), err=True)
                raise typer.Exit(EXIT_GENERAL_ERROR) from exc
            path = service.database.path

        if state.json_output:
            CommandResponse.ok("Application data reset").emit()
            return
        Console().print(f"[green]✓[/green] Removed data in {path}")
