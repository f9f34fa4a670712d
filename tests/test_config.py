from __future__ import annotations

import pytest
from pydantic import ValidationError

from lighthouse_power.config import (
    CONFIG_ENV_VAR,
    PowerConfig,
    ScanningConfig,
    Settings,
    SteamVRConfig,
    get_settings,
    load_settings,
    render_settings_toml,
    write_settings,
)


def test_config_roundtrip(tmp_path):
    path = tmp_path / "config.toml"
    settings = Settings(
        scanning=ScanningConfig(scan_window=2.5, name_prefix="LHB"),
        power=PowerConfig(max_attempts=5, backoff_factor=3.0),
        steamvr=SteamVRConfig(appconfig_path="/tmp/appconfig.json"),
    )
    write_settings(settings, path)

    loaded = load_settings(path)
    assert loaded.scanning.scan_window == 2.5
    assert loaded.power.max_attempts == 5
    assert loaded.power.backoff_factor == 3.0
    assert loaded.steamvr.appconfig_path == "/tmp/appconfig.json"
    assert loaded.steamvr.manifest_path is None


def test_defaults_match_base_station_protocol():
    settings = Settings()
    assert settings.scanning.name_prefix == "LHB"
    assert settings.scanning.manufacturer_id == 1373
    assert settings.power.max_attempts == 3


def test_invalid_toml_is_reported(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[power\nmax_attempts = 3\n")

    with pytest.raises(ValueError, match="Invalid TOML"):
        load_settings(path)


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[power]\nretries = 3\n")

    with pytest.raises(ValueError, match="Invalid config file"):
        load_settings(path)


def test_env_var_pointing_to_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.toml"))

    with pytest.raises(FileNotFoundError):
        get_settings()


def test_env_var_selects_config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    write_settings(Settings(power=PowerConfig(call_budget=12.0)), path)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    assert get_settings().power.call_budget == 12.0


def test_render_lists_every_section():
    rendered = render_settings_toml(Settings())
    for section in ("[database]", "[scanning]", "[power]", "[steamvr]"):
        assert section in rendered


def test_backoff_cap_below_initial_delay_is_rejected():
    with pytest.raises(ValidationError, match="backoff_max"):
        PowerConfig(backoff_initial=5.0, backoff_max=1.0)
