from __future__ import annotations

from typing import Any

import typer
from pydantic import BaseModel, Field

EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_BLUETOOTH_ERROR = 2
EXIT_NO_DEVICES_FOUND = 3
EXIT_COMMAND_FAILED = 4
EXIT_STEAMVR_ERROR = 5


class CommandResponse(BaseModel):
    """Machine-readable result printed with ``--json``."""

    success: bool
    message: str
    devices: list[dict[str, Any]] = Field(default_factory=list)
    error_code: int = EXIT_SUCCESS

    @classmethod
    def ok(cls, message: str, devices: list[dict[str, Any]] | None = None) -> CommandResponse:
        return cls(success=True, message=message, devices=devices or [])

    @classmethod
    def error(
        cls,
        message: str,
        error_code: int,
        devices: list[dict[str, Any]] | None = None,
    ) -> CommandResponse:
        return cls(success=False, message=message, devices=devices or [], error_code=error_code)

    def emit(self) -> None:
        typer.echo(self.model_dump_json())
        if self.error_code != EXIT_SUCCESS:
            raise typer.Exit(self.error_code)
