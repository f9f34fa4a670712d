from __future__ import annotations

from typing import Annotated

import typer

from lighthouse_power.utils.logging import setup_logging

from . import config as config_cmd
from . import lifecycle as lifecycle_cmd
from . import steamvr as steamvr_cmd
from .common import CliState
from .devices import register as register_devices
from .info import register as register_info
from .power import register as register_power

app = typer.Typer(
    help="lighthouse-power - switch VR base stations on and off over Bluetooth",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")
app.add_typer(steamvr_cmd.app, name="steamvr")
app.add_typer(lifecycle_cmd.app, name="lifecycle", hidden=True)

register_devices(app)
register_power(app)
register_info(app)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print a single JSON response"),
    ] = False,
    simulate: Annotated[
        bool,
        typer.Option(
            "--simulate",
            envvar="LIGHTHOUSE_POWER_SIMULATE",
            help="Use simulated base stations instead of Bluetooth",
        ),
    ] = False,
) -> None:
    """lighthouse-power CLI."""
    setup_logging()
    ctx.obj = CliState(json_output=json_output, simulate=simulate)

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"lighthouse-power version {get_version('lighthouse-power')}")
        raise typer.Exit()
