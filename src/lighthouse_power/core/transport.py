"""Bluetooth LE access for the power orchestrator.

`Transport` is the capability surface the orchestrator consumes; `BleakTransport`
implements it on top of bleak. Library exceptions never leave this module:
they are translated into the errors defined in `lighthouse_power.errors`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakDeviceNotFoundError, BleakError

from lighthouse_power.config import ScanningConfig
from lighthouse_power.errors import (
    AdapterUnavailableError,
    ConnectionFailure,
    DeviceConnectionError,
    DeviceWriteError,
    WriteFailure,
)
from lighthouse_power.models import POWER_SERVICE_UUID, Advertisement, normalize_address

logger = logging.getLogger(__name__)

# messages bleak backends use when the adapter itself is gone or switched off
_ADAPTER_FAILURE = re.compile(
    r"no bluetooth adapters"
    r"|adapter\b.*\bnot (found|powered|ready)"
    r"|(adapter|bluetooth|device) is (turned|powered) off"
    r"|bluez\.error\.notready",
    re.IGNORECASE,
)


def _looks_like_adapter_failure(exc: BaseException) -> bool:
    return _ADAPTER_FAILURE.search(str(exc)) is not None


def matches_base_station(
    name: str | None, manufacturer_ids: tuple[int, ...], config: ScanningConfig
) -> bool:
    """Base stations advertise an ``LHB-`` name and Valve's manufacturer id."""
    if not name or not name.startswith(config.name_prefix):
        return False
    return config.manufacturer_id in manufacturer_ids


@dataclass
class Session:
    address: str
    handle: Any = field(repr=False, default=None)


class Transport(ABC):
    """Scan, connect, write and close; see `BleakTransport`."""

    @abstractmethod
    def scan(self, duration: float) -> AsyncIterator[Advertisement]:
        """Yield matching advertisements until ``duration`` elapses."""

    @abstractmethod
    async def connect(self, address: str, timeout: float) -> Session: ...

    @abstractmethod
    async def write_characteristic(
        self, session: Session, characteristic: UUID, payload: bytes
    ) -> None: ...

    @abstractmethod
    async def close(self, session: Session) -> None: ...

    @asynccontextmanager
    async def session(self, address: str, timeout: float) -> AsyncIterator[Session]:
        """Connect, and release the session on every way out."""
        session = await self.connect(address, timeout)
        try:
            yield session
        finally:
            await self.close(session)


class BleakTransport(Transport):
    def __init__(self, config: ScanningConfig) -> None:
        self._config = config
        self._seen: dict[str, BLEDevice] = {}

    async def scan(self, duration: float) -> AsyncIterator[Advertisement]:
        queue: asyncio.Queue[Advertisement] = asyncio.Queue()
        reported: set[str] = set()

        def _on_detection(device: BLEDevice, adv: AdvertisementData) -> None:
            name = adv.local_name or device.name
            manufacturer_ids = tuple(adv.manufacturer_data)
            if not matches_base_station(name, manufacturer_ids, self._config):
                return
            address = normalize_address(device.address)
            self._seen[address] = device
            if address in reported:
                return
            reported.add(address)
            queue.put_nowait(
                Advertisement(
                    address=address,
                    name=name or "Unknown",
                    manufacturer_ids=manufacturer_ids,
                    service_uuids=tuple(adv.service_uuids),
                    rssi=adv.rssi,
                )
            )

        scanner = BleakScanner(detection_callback=_on_detection)
        try:
            await scanner.start()
        except (BleakError, OSError) as exc:
            logger.error("Could not start Bluetooth scan: %s", exc)
            raise AdapterUnavailableError(str(exc)) from exc

        logger.debug("Scanning for base stations (window=%.1fs)", duration)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    advert = await asyncio.wait_for(queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
                logger.debug("Found base station %s (%s)", advert.name, advert.address)
                yield advert
        finally:
            try:
                await scanner.stop()
            except (BleakError, OSError) as exc:
                logger.warning("Failed to stop Bluetooth scan: %s", exc)

    async def connect(self, address: str, timeout: float) -> Session:
        target: BLEDevice | str = self._seen.get(address, address)
        client = BleakClient(target, timeout=timeout)
        logger.debug("Connecting to %s", address)
        try:
            await client.connect()
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise DeviceConnectionError(address, ConnectionFailure.TIMEOUT) from exc
        except BleakDeviceNotFoundError as exc:
            raise DeviceConnectionError(
                address, ConnectionFailure.UNREACHABLE, "not in range"
            ) from exc
        except (BleakError, OSError) as exc:
            reason = (
                ConnectionFailure.ADAPTER_UNAVAILABLE
                if _looks_like_adapter_failure(exc)
                else ConnectionFailure.UNREACHABLE
            )
            raise DeviceConnectionError(address, reason, str(exc)) from exc
        return Session(address=address, handle=client)

    async def write_characteristic(
        self, session: Session, characteristic: UUID, payload: bytes
    ) -> None:
        client: BleakClient = session.handle
        target = client.services.get_characteristic(str(characteristic))
        if target is None:
            # older firmware exposes the power switch under another uuid
            service = client.services.get_service(str(POWER_SERVICE_UUID))
            if service is not None:
                target = next(
                    (
                        char
                        for char in service.characteristics
                        if {"write", "write-without-response"} & set(char.properties)
                    ),
                    None,
                )
        if target is None:
            raise DeviceWriteError(session.address, WriteFailure.CHARACTERISTIC_NOT_FOUND)

        response = "write-without-response" not in target.properties
        try:
            await client.write_gatt_char(target, payload, response=response)
        except (BleakError, OSError, asyncio.TimeoutError) as exc:
            raise DeviceWriteError(session.address, WriteFailure.REJECTED, str(exc)) from exc
        logger.debug("Wrote %s to %s on %s", payload.hex(), target.uuid, session.address)

    async def close(self, session: Session) -> None:
        client: BleakClient = session.handle
        try:
            await client.disconnect()
        except (BleakError, OSError) as exc:
            logger.warning("Failed to disconnect from %s: %s", session.address, exc)
        else:
            logger.debug("Disconnected from %s", session.address)
