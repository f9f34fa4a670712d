"""Command surface shared by the CLI and other front ends."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from lighthouse_power.config import Settings, data_dir_from_settings
from lighthouse_power.core import (
    BleakTransport,
    LifecycleBridge,
    PowerOrchestrator,
    RegistrationStore,
    Transport,
)
from lighthouse_power.core.lifecycle import MANIFEST_FILENAME
from lighthouse_power.models import Device, DeviceStatus, PowerResult, Preferences, StatusEvent
from lighthouse_power.storage import Database, DeviceRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LighthouseService:
    """Synchronous entry points over the asynchronous core.

    Calls are executed on one background event loop, so concurrent callers
    (a GUI button and a SteamVR hook, for instance) share a single
    orchestrator and coalesce on in-flight transitions.

    Usage:
        with LighthouseService(get_settings()) as service:
            result = service.power_on_all()
            print(result.summary())
    """

    def __init__(
        self,
        settings: Settings,
        transport: Transport | None = None,
        database: Database | None = None,
        registration: RegistrationStore | None = None,
    ) -> None:
        self._settings = settings
        self._database = database or Database(data_dir_from_settings(settings))
        self._registry = DeviceRegistry(self._database)
        self._orchestrator = PowerOrchestrator(
            transport or BleakTransport(settings.scanning),
            self._registry,
            settings.scanning,
            settings.power,
        )
        self._bridge = LifecycleBridge(
            self._orchestrator,
            settings.steamvr,
            manifest_path=self._database.path / MANIFEST_FILENAME,
            store=registration,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._loop_lock = threading.Lock()

    def __enter__(self) -> LighthouseService:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def database(self) -> Database:
        return self._database

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def orchestrator(self) -> PowerOrchestrator:
        return self._orchestrator

    @property
    def bridge(self) -> LifecycleBridge:
        return self._bridge

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._loop_lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever, name="lighthouse-power-loop", daemon=True
                )
                thread.start()
                self._loop, self._thread = loop, thread
            return self._loop

    def _call(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())
        return future.result()

    def close(self) -> None:
        with self._loop_lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None or thread is None:
            return

        async def _cancel_pending() -> None:
            current = asyncio.current_task()
            tasks = [task for task in asyncio.all_tasks() if task is not current]
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        asyncio.run_coroutine_threadsafe(_cancel_pending(), loop).result()
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()

    # Devices
    def scan_for_devices(self) -> list[Device]:
        return list(self._call(self._orchestrator.scan_only()))

    def get_devices(self) -> list[Device]:
        return list(self._registry.snapshot())

    def clear_saved_devices(self) -> None:
        self._registry.clear()

    def device_statuses(self) -> dict[str, DeviceStatus]:
        return self._orchestrator.statuses()

    def subscribe(self, listener: Callable[[StatusEvent], None]) -> Callable[[], None]:
        """Receive status changes; the listener runs on the service loop thread."""
        return self._orchestrator.subscribe(listener)

    # Power
    def power_on_all(self) -> PowerResult:
        return self._call(self._orchestrator.power_on_all())

    def standby_all(self) -> PowerResult:
        return self._call(self._orchestrator.standby_all())

    # SteamVR
    def get_registration_status(self) -> bool:
        return self._bridge.status()

    def set_registration(self, enabled: bool) -> None:
        self._bridge.set_registration(enabled)

    def on_runtime_started(self) -> PowerResult:
        return self._call(self._bridge.on_runtime_started())

    def on_runtime_stopped(self) -> PowerResult:
        return self._call(self._bridge.on_runtime_stopped())

    # Preferences
    def load_preferences(self) -> Preferences:
        return self._database.load_preferences()

    def save_preferences(self, preferences: Preferences) -> None:
        self._database.save_preferences(preferences)

    def reset_data(self) -> None:
        """Forget saved devices and preferences."""
        self._database.reset()
        self._registry.load()
        logger.info("Removed saved data from %s", self._database.path)
