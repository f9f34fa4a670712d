from __future__ import annotations

from typing import Annotated

import typer

from lighthouse_power.config import (
    Settings,
    data_dir_from_settings,
    render_settings_toml,
    write_settings,
)
from lighthouse_power.storage import Database

from .common import load_settings_or_exit, resolve_config_path_or_exit

app = typer.Typer(no_args_is_help=True, help="Show or create the configuration file")


@app.command("show")
def show_config(
    defaults: Annotated[
        bool,
        typer.Option("--defaults", help="Print built-in defaults, ignoring the config file"),
    ] = False,
) -> None:
    """Print the effective settings as TOML."""
    if defaults:
        typer.echo(render_settings_toml(Settings()))
        return

    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    typer.echo(f"# source: {path if exists else 'built-in defaults'}")
    typer.echo(render_settings_toml(settings))


@app.command("init")
def init_config(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Replace an existing config file"),
    ] = False,
) -> None:
    """Write a default config file and create the data directory."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    if exists and not force:
        typer.echo(f"{path} already exists; use --force to replace it")
        raise typer.Exit()

    settings = Settings()
    write_settings(settings, path)
    Database(data_dir_from_settings(settings)).init()
    typer.echo(f"{'Replaced' if exists else 'Created'} {path}")
