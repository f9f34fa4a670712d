from __future__ import annotations

import typer
from rich.console import Console

from lighthouse_power.errors import RegistrationError

from .common import build_service, resolve_config_path_or_exit


def register(app: typer.Typer) -> None:
    @app.command()
    def info(ctx: typer.Context) -> None:
        """Show data locations, settings and SteamVR registration."""
        config_path, config_exists = resolve_config_path_or_exit(allow_missing=True)

        with build_service(ctx) as service:
            settings = service.settings
            devices = service.get_devices()
            preferences = service.load_preferences()
            try:
                registered = "yes" if service.get_registration_status() else "no"
            except RegistrationError as exc:
                registered = f"unknown ({exc})"
            appconfig = service.bridge.store.path
            db = service.database

        console = Console()

        console.print("[bold]lighthouse-power[/bold]\n")
        console.print(f"Data directory: {db.path}")
        console.print(f"Device registry: {db.devices_path}")
        console.print(f"Config file: {config_path if config_exists else 'defaults'}")

        console.print("\n[bold]Configuration[/bold]")
        console.print(f"Scan window: {settings.scanning.scan_window}s")
        console.print(
            f"Connect: {settings.power.max_attempts} attempt(s), "
            f"{settings.power.connect_timeout}s timeout"
        )
        console.print(f"Call budget: {settings.power.call_budget}s")
        console.print(f"Theme: {preferences.theme}")

        console.print("\n[bold]SteamVR[/bold]")
        console.print(f"Registration record: {appconfig}")
        console.print(f"Registered: {registered}")

        console.print("\n[bold]Statistics[/bold]")
        console.print(f"Saved base stations: {len(devices)}")
