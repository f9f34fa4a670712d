from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "LIGHTHOUSE_POWER_CONFIG"


class DatabaseConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class ScanningConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    scan_window: float = Field(default=5.0, gt=0)
    name_prefix: str = "LHB"
    manufacturer_id: int = Field(default=1373, ge=0, le=0xFFFF)


class PowerConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    connect_timeout: float = Field(default=10.0, gt=0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_initial: float = Field(default=0.5, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    backoff_max: float = Field(default=4.0, ge=0)
    call_budget: float = Field(default=60.0, gt=0)
    max_concurrency: int = Field(default=4, ge=1, le=16)

    @model_validator(mode="after")
    def _check_backoff(self) -> PowerConfig:
        if self.backoff_max < self.backoff_initial:
            raise ValueError("backoff_max must not be smaller than backoff_initial")
        return self


class SteamVRConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    app_key: str = "lighthouse-power.lifecycle"
    appconfig_path: str | None = None
    manifest_path: str | None = None
    hook_timeout: float = Field(default=45.0, gt=0)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scanning: ScanningConfig = Field(default_factory=ScanningConfig)
    power: PowerConfig = Field(default_factory=PowerConfig)
    steamvr: SteamVRConfig = Field(default_factory=SteamVRConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.database.path)


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    scanning = settings.scanning
    power = settings.power
    steamvr = settings.steamvr
    lines = [
        "# lighthouse-power configuration",
        "",
        "[database]",
        f"path = {_toml_string(settings.database.path)}",
        "",
        "[scanning]",
        "# seconds spent listening for base station advertisements",
        f"scan_window = {scanning.scan_window}",
        f"name_prefix = {_toml_string(scanning.name_prefix)}",
        f"manufacturer_id = {scanning.manufacturer_id}",
        "",
        "[power]",
        f"connect_timeout = {power.connect_timeout}",
        f"max_attempts = {power.max_attempts}",
        f"backoff_initial = {power.backoff_initial}",
        f"backoff_factor = {power.backoff_factor}",
        f"backoff_max = {power.backoff_max}",
        "# upper bound for a whole power-on/standby call, in seconds",
        f"call_budget = {power.call_budget}",
        f"max_concurrency = {power.max_concurrency}",
        "",
        "[steamvr]",
        f"app_key = {_toml_string(steamvr.app_key)}",
    ]
    if steamvr.appconfig_path is not None:
        lines.append(f"appconfig_path = {_toml_string(steamvr.appconfig_path)}")
    if steamvr.manifest_path is not None:
        lines.append(f"manifest_path = {_toml_string(steamvr.manifest_path)}")
    lines.append(f"hook_timeout = {steamvr.hook_timeout}")
    lines.append("")
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
