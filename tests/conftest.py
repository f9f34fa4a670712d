from __future__ import annotations

from pathlib import Path

import pytest

from lighthouse_power.config import (
    DatabaseConfig,
    PowerConfig,
    ScanningConfig,
    Settings,
    SteamVRConfig,
    get_settings,
    write_settings,
)
from lighthouse_power.core import PowerOrchestrator, SimulatedTransport
from lighthouse_power.storage import Database, DeviceRegistry


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("LIGHTHOUSE_POWER_CONFIG", raising=False)
    monkeypatch.delenv("LIGHTHOUSE_POWER_SIMULATE", raising=False)
    monkeypatch.setenv("LOGLEVEL", "ERROR")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def scanning() -> ScanningConfig:
    return ScanningConfig(scan_window=0.05)


@pytest.fixture
def power() -> PowerConfig:
    return PowerConfig(connect_timeout=0.1, backoff_initial=0.0, call_budget=5.0)


@pytest.fixture
def database(tmp_path: Path) -> Database:
    return Database(tmp_path / "data")


@pytest.fixture
def registry(database: Database) -> DeviceRegistry:
    return DeviceRegistry(database)


@pytest.fixture
def transport() -> SimulatedTransport:
    return SimulatedTransport()


@pytest.fixture
def orchestrator(
    transport: SimulatedTransport,
    registry: DeviceRegistry,
    scanning: ScanningConfig,
    power: PowerConfig,
) -> PowerOrchestrator:
    return PowerOrchestrator(transport, registry, scanning, power)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database=DatabaseConfig(path=str(tmp_path / "data")),
        scanning=ScanningConfig(scan_window=0.05),
        power=PowerConfig(connect_timeout=0.1, backoff_initial=0.0, call_budget=5.0),
        steamvr=SteamVRConfig(
            appconfig_path=str(tmp_path / "steam" / "config" / "appconfig.json"),
            hook_timeout=5.0,
        ),
    )


@pytest.fixture
def cli_config(tmp_path: Path, settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_path = tmp_path / "config.toml"
    write_settings(settings, config_path)
    monkeypatch.setenv("LIGHTHOUSE_POWER_CONFIG", str(config_path))
    get_settings.cache_clear()
    return config_path
