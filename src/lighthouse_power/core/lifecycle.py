"""SteamVR integration.

SteamVR keeps the list of application manifests it knows about in
``config/appconfig.json`` under the Steam installation. Registering adds our
``.vrmanifest`` to that list so SteamVR launches the ``lifecycle started``
hook when it starts.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import tempfile
import threading
from pathlib import Path
from typing import Any

from lighthouse_power.config import SteamVRConfig, expand_path
from lighthouse_power.errors import RegistrationError
from lighthouse_power.models import (
    DeviceOutcome,
    DeviceStatus,
    PowerCommand,
    PowerResult,
    StatusEvent,
)

from .orchestrator import PowerOrchestrator

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "lighthouse-power.vrmanifest"
MANIFEST_PATHS_KEY = "manifest_paths"
# extra time allowed for abandoned sessions to disconnect
HOOK_GRACE = 5.0


def default_appconfig_path() -> Path:
    if sys.platform == "win32":
        program_files = os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")
        return Path(program_files) / "Steam" / "config" / "appconfig.json"
    return Path.home() / ".steam" / "steam" / "config" / "appconfig.json"


def _same_path(left: str, right: str) -> bool:
    return os.path.normcase(os.path.abspath(left)) == os.path.normcase(os.path.abspath(right))


class RegistrationStore:
    """Cached view of SteamVR's appconfig.json.

    Loaded on first use; every mutation re-reads the file, applies the change
    and writes it back while holding the store lock.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._data: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _read(self, create: bool) -> dict[str, Any]:
        if not self._path.exists():
            if create:
                return {}
            raise RegistrationError(f"SteamVR registration record not found: {self._path}")
        try:
            with self._path.open("r") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise RegistrationError(f"Could not read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise RegistrationError(f"Unexpected content in {self._path}")
        return data

    def _flush(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".appconfig.", dir=self._path.parent)
            with os.fdopen(fd, "w") as handle:
                json.dump(data, handle, indent=3)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            raise RegistrationError(f"Could not write {self._path}: {exc}") from exc
        self._data = data

    def manifest_paths(self) -> list[str]:
        with self._lock:
            if self._data is None:
                self._data = self._read(create=False)
            return list(self._data.get(MANIFEST_PATHS_KEY, []))

    def contains(self, manifest: Path) -> bool:
        return any(_same_path(entry, str(manifest)) for entry in self.manifest_paths())

    def add(self, manifest: Path) -> bool:
        with self._lock:
            data = self._read(create=True)
            paths = list(data.get(MANIFEST_PATHS_KEY, []))
            if any(_same_path(entry, str(manifest)) for entry in paths):
                self._data = data
                return False
            paths.append(str(manifest))
            data[MANIFEST_PATHS_KEY] = paths
            self._flush(data)
            return True

    def remove(self, manifest: Path) -> bool:
        with self._lock:
            if not self._path.exists():
                return False
            data = self._read(create=False)
            paths = list(data.get(MANIFEST_PATHS_KEY, []))
            kept = [entry for entry in paths if not _same_path(entry, str(manifest))]
            if len(kept) == len(paths):
                self._data = data
                return False
            data[MANIFEST_PATHS_KEY] = kept
            self._flush(data)
            return True


_stores: dict[Path, RegistrationStore] = {}
_stores_lock = threading.Lock()


def registration_store(path: Path) -> RegistrationStore:
    """Process-wide store for ``path``, created on first use."""
    key = path.resolve()
    with _stores_lock:
        store = _stores.get(key)
        if store is None:
            store = _stores[key] = RegistrationStore(key)
        return store


def build_manifest(app_key: str, binary: str, arguments: str) -> dict[str, Any]:
    return {
        "source": "builtin",
        "applications": [
            {
                "app_key": app_key,
                "launch_type": "binary",
                "binary_path_windows": binary,
                "binary_path_linux": binary,
                "arguments": arguments,
                "is_dashboard_overlay": True,
                "auto_launch": True,
                "strings": {
                    "en_us": {
                        "name": "Lighthouse Power",
                        "description": "Powers base stations on when SteamVR starts",
                    }
                },
            }
        ],
    }


class LifecycleBridge:
    def __init__(
        self,
        orchestrator: PowerOrchestrator,
        config: SteamVRConfig,
        manifest_path: Path,
        store: RegistrationStore | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._config = config
        self._manifest_path = (
            expand_path(config.manifest_path) if config.manifest_path else manifest_path
        )
        appconfig = (
            expand_path(config.appconfig_path)
            if config.appconfig_path
            else default_appconfig_path()
        )
        self._store = store or registration_store(appconfig)

    @property
    def manifest_path(self) -> Path:
        return self._manifest_path

    @property
    def store(self) -> RegistrationStore:
        return self._store

    def _write_manifest(self) -> None:
        manifest = build_manifest(
            self._config.app_key,
            binary=sys.executable,
            arguments="-m lighthouse_power lifecycle started",
        )
        try:
            self._manifest_path.parent.mkdir(parents=True, exist_ok=True)
            self._manifest_path.write_text(json.dumps(manifest, indent=2))
        except OSError as exc:
            raise RegistrationError(f"Could not write {self._manifest_path}: {exc}") from exc
        logger.debug("Wrote SteamVR manifest to %s", self._manifest_path)

    def register(self) -> bool:
        """Register with SteamVR; returns False when already registered."""
        self._write_manifest()
        added = self._store.add(self._manifest_path)
        if added:
            logger.info("Registered %s with SteamVR", self._manifest_path)
        else:
            logger.info("Already registered with SteamVR")
        return added

    def unregister(self) -> bool:
        removed = self._store.remove(self._manifest_path)
        if removed:
            logger.info("Unregistered %s from SteamVR", self._manifest_path)
        else:
            logger.info("Not registered with SteamVR; nothing to remove")
        return removed

    def status(self) -> bool:
        return self._store.contains(self._manifest_path)

    def set_registration(self, enabled: bool) -> None:
        if enabled:
            self.register()
        else:
            self.unregister()

    async def on_runtime_started(self) -> PowerResult:
        logger.info("SteamVR started; powering on base stations")
        return await self._dispatch(PowerCommand.POWER_ON)

    async def on_runtime_stopped(self) -> PowerResult:
        logger.info("SteamVR stopped; putting base stations in standby")
        return await self._dispatch(PowerCommand.STANDBY)

    async def _dispatch(self, command: PowerCommand) -> PowerResult:
        timeout = self._config.hook_timeout
        # statuses reached during this hook only; earlier calls may have left terminal ones
        reached: dict[str, DeviceStatus] = {}

        def _record(event: StatusEvent) -> None:
            reached[event.address] = event.status

        unsubscribe = self._orchestrator.subscribe(_record)
        try:
            return await asyncio.wait_for(
                self._orchestrator.run(command, budget=timeout),
                timeout=timeout + HOOK_GRACE,
            )
        except asyncio.TimeoutError:
            logger.warning("%s hook exceeded %.1fs; reporting partial result", command.label, timeout)
            return self._partial_result(command, reached)
        finally:
            unsubscribe()

    def _partial_result(
        self, command: PowerCommand, statuses: dict[str, DeviceStatus]
    ) -> PowerResult:
        outcomes = []
        for device in self._orchestrator.registry.snapshot():
            status = statuses.get(device.address)
            if status is not command.target_status:
                outcomes.append(
                    DeviceOutcome(
                        device=device,
                        status=DeviceStatus.UNREACHABLE,
                        error="hook timeout",
                    )
                )
            else:
                outcomes.append(DeviceOutcome(device=device, status=status))
        return PowerResult(command=command, devices=outcomes, timed_out=True)
