"""Persisted set of known base stations.

All mutations go through one lock and are flushed to disk before the lock
is released. Readers receive tuples of frozen models, so a snapshot taken
while another call is merging never shows a half-applied update.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from lighthouse_power.errors import PersistenceError
from lighthouse_power.models import Advertisement, Device, ScanResult

from .database import Database

logger = logging.getLogger(__name__)


class DeviceRegistry:
    def __init__(self, database: Database) -> None:
        self._database = database
        self._lock = threading.Lock()
        self._devices: dict[str, Device] | None = None

    @property
    def database(self) -> Database:
        return self._database

    def _ensure_loaded(self) -> dict[str, Device]:
        if self._devices is None:
            self._devices = {
                device.address: device for device in self._database.load_devices()
            }
        return self._devices

    def load(self) -> tuple[Device, ...]:
        """Re-read the store from disk, dropping the in-memory copy."""
        with self._lock:
            self._devices = None
            return tuple(self._ensure_loaded().values())

    def save(self) -> None:
        with self._lock:
            self._database.save_devices(list(self._ensure_loaded().values()))

    def snapshot(self) -> tuple[Device, ...]:
        with self._lock:
            return tuple(self._ensure_loaded().values())

    def get(self, address: str) -> Device | None:
        with self._lock:
            return self._ensure_loaded().get(address)

    def merge(self, discovered: ScanResult | Iterable[Advertisement]) -> tuple[Device, ...]:
        """Insert unseen addresses and refresh known ones; never evicts.

        The display name follows whichever observation is most recent.
        """
        adverts = discovered.devices if isinstance(discovered, ScanResult) else discovered

        with self._lock:
            devices = dict(self._ensure_loaded())
            changed = False
            for advert in adverts:
                current = devices.get(advert.address)
                if current is None:
                    devices[advert.address] = Device(
                        address=advert.address,
                        name=advert.name,
                        last_seen=advert.seen_at,
                    )
                    logger.info("New base station %s (%s)", advert.name, advert.address)
                    changed = True
                    continue

                if current.last_seen is not None and current.last_seen > advert.seen_at:
                    continue
                updated = current.model_copy(
                    update={"name": advert.name or current.name, "last_seen": advert.seen_at}
                )
                if updated != current:
                    devices[advert.address] = updated
                    changed = True

            self._devices = devices
            if changed:
                try:
                    self._database.save_devices(list(devices.values()))
                except PersistenceError as exc:
                    logger.warning("Keeping merged devices in memory only: %s", exc)
            return tuple(devices.values())

    def clear(self) -> None:
        with self._lock:
            self._database.save_devices([])
            self._devices = {}
        logger.info("Cleared saved devices")
