from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from lighthouse_power.errors import PersistenceError
from lighthouse_power.models import Device, Preferences

logger = logging.getLogger(__name__)

DEVICES_FILE = "devices.json"
PREFERENCES_FILE = "preferences.json"


def _write_json_atomic(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as handle:
            json.dump(data, handle, indent=2)
            handle.write("\n")
        os.replace(tmp_name, path)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise PersistenceError(f"Could not write {path}: {exc}") from exc


def _read_json(path: Path) -> Any:
    try:
        with path.open("r") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise PersistenceError(f"Could not read {path}: {exc}") from exc


def parse_devices(data: Any) -> list[Device]:
    """Validate a persisted device list, keeping the last entry per address.

    Entries that fail validation are skipped so one bad record does not cost
    the rest of the store.
    """
    if not isinstance(data, list):
        raise PersistenceError("device store must contain a list")

    by_address: dict[str, Device] = {}
    valid = 0
    for entry in data:
        try:
            device = Device.model_validate(entry)
        except ValidationError as exc:
            logger.warning("Skipping invalid device entry %r: %s", entry, exc)
            continue
        valid += 1
        # re-insert so the surviving entry takes the position of its last occurrence
        by_address.pop(device.address, None)
        by_address[device.address] = device

    if len(by_address) != valid:
        logger.warning(
            "Device store held %d duplicate entries; kept the last of each",
            valid - len(by_address),
        )
    return list(by_address.values())


class Database:
    """Files kept in the data directory."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._devices_path = data_dir / DEVICES_FILE
        self._preferences_path = data_dir / PREFERENCES_FILE

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def devices_path(self) -> Path:
        return self._devices_path

    @property
    def preferences_path(self) -> Path:
        return self._preferences_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def load_devices(self) -> list[Device]:
        """Read the device store; a missing or corrupt store reads as empty."""
        if not self._devices_path.exists():
            return []

        try:
            return parse_devices(_read_json(self._devices_path))
        except PersistenceError as exc:
            logger.warning("Ignoring unreadable device store: %s", exc)
            return []

    def save_devices(self, devices: list[Device]) -> None:
        payload = [device.model_dump(mode="json") for device in devices]
        _write_json_atomic(self._devices_path, payload)
        logger.debug("Saved %d device(s) to %s", len(devices), self._devices_path)

    def load_preferences(self) -> Preferences:
        if not self._preferences_path.exists():
            return Preferences()

        try:
            return Preferences.model_validate(_read_json(self._preferences_path))
        except (PersistenceError, ValidationError) as exc:
            logger.warning("Ignoring unreadable preferences: %s", exc)
            return Preferences()

    def save_preferences(self, preferences: Preferences) -> None:
        _write_json_atomic(self._preferences_path, preferences.model_dump(mode="json"))

    def init(self) -> None:
        self.ensure_dirs()
        if not self._devices_path.exists():
            self.save_devices([])

    def reset(self) -> None:
        """Delete every record kept in the data directory."""
        for path in (self._devices_path, self._preferences_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise PersistenceError(f"Could not remove {path}: {exc}") from exc
