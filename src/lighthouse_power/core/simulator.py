"""In-process stand-in for a Bluetooth adapter and a room of base stations.

Used by ``lighthouse-power --simulate`` to exercise the front ends without
hardware, and by the test suite to script failures.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from uuid import UUID

from lighthouse_power.errors import (
    AdapterUnavailableError,
    ConnectionFailure,
    DeviceConnectionError,
    DeviceWriteError,
    WriteFailure,
)
from lighthouse_power.models import POWER_CHARACTERISTIC_UUID, Advertisement

from .transport import Session, Transport

logger = logging.getLogger(__name__)

VALVE_MANUFACTURER_ID = 1373


@dataclass
class SimulatedStation:
    address: str
    name: str
    in_range: bool = True
    powered: bool = False
    failed_connects: int = 0
    connect_failure: ConnectionFailure = ConnectionFailure.TIMEOUT
    write_failure: WriteFailure | None = None
    connect_delay: float = 0.0
    writes: list[bytes] = field(default_factory=list)


class SimulatedTransport(Transport):
    def __init__(
        self,
        stations: list[SimulatedStation] | None = None,
        adapter_available: bool = True,
    ) -> None:
        self.stations = {station.address: station for station in stations or []}
        self.adapter_available = adapter_available
        self.connect_attempts: Counter[str] = Counter()
        self.open_sessions: Counter[str] = Counter()
        self.max_sessions_per_address: Counter[str] = Counter()
        self.scans = 0

    @classmethod
    def demo(cls) -> SimulatedTransport:
        return cls(
            [
                SimulatedStation("C1:4A:B2:00:11:01", "LHB-1A2B3C4D"),
                SimulatedStation("C1:4A:B2:00:11:02", "LHB-5E6F7A8B"),
            ]
        )

    def add(self, station: SimulatedStation) -> SimulatedStation:
        self.stations[station.address] = station
        return station

    async def scan(self, duration: float) -> AsyncIterator[Advertisement]:
        if not self.adapter_available:
            raise AdapterUnavailableError("simulated adapter is turned off")
        self.scans += 1
        for station in list(self.stations.values()):
            if not station.in_range:
                continue
            await asyncio.sleep(0)
            yield Advertisement(
                address=station.address,
                name=station.name,
                manufacturer_ids=(VALVE_MANUFACTURER_ID,),
            )

    async def connect(self, address: str, timeout: float) -> Session:
        self.connect_attempts[address] += 1
        if not self.adapter_available:
            raise DeviceConnectionError(address, ConnectionFailure.ADAPTER_UNAVAILABLE)

        station = self.stations.get(address)
        if station is None or not station.in_range:
            raise DeviceConnectionError(address, ConnectionFailure.UNREACHABLE)
        if station.connect_delay:
            await asyncio.sleep(station.connect_delay)
        if station.failed_connects > 0:
            station.failed_connects -= 1
            raise DeviceConnectionError(address, station.connect_failure)

        self.open_sessions[address] += 1
        self.max_sessions_per_address[address] = max(
            self.max_sessions_per_address[address], self.open_sessions[address]
        )
        return Session(address=address, handle=station)

    async def write_characteristic(
        self, session: Session, characteristic: UUID, payload: bytes
    ) -> None:
        station: SimulatedStation = session.handle
        if station.write_failure is not None:
            raise DeviceWriteError(session.address, station.write_failure)
        if characteristic != POWER_CHARACTERISTIC_UUID:
            raise DeviceWriteError(session.address, WriteFailure.CHARACTERISTIC_NOT_FOUND)
        station.writes.append(payload)
        station.powered = payload != b"\x00"

    async def close(self, session: Session) -> None:
        self.open_sessions[session.address] -= 1
