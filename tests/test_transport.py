from __future__ import annotations

import asyncio
from contextlib import aclosing
from types import SimpleNamespace
from uuid import UUID

import pytest
from bleak.exc import BleakDeviceNotFoundError, BleakError

from lighthouse_power.config import ScanningConfig
from lighthouse_power.core import BleakTransport, Session, Transport, matches_base_station
from lighthouse_power.core import transport as transport_module
from lighthouse_power.errors import (
    AdapterUnavailableError,
    ConnectionFailure,
    DeviceConnectionError,
    DeviceWriteError,
    WriteFailure,
)
from lighthouse_power.models import POWER_CHARACTERISTIC_UUID, POWER_SERVICE_UUID

ADDRESS = "C1:4A:B2:00:00:0A"


class FakeServices:
    def __init__(self, characteristics):
        self._characteristics = {char.uuid: char for char in characteristics}

    def get_characteristic(self, uuid: str):
        return self._characteristics.get(uuid)

    def get_service(self, uuid: str):
        if uuid != str(POWER_SERVICE_UUID):
            return None
        return SimpleNamespace(characteristics=list(self._characteristics.values()))


class FakeClient:
    def __init__(self, characteristics=(), write_error: Exception | None = None):
        self.services = FakeServices(characteristics)
        self.write_error = write_error
        self.writes = []
        self.disconnected = False

    async def write_gatt_char(self, char, data, response=True):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((char.uuid, data, response))

    async def disconnect(self):
        self.disconnected = True


def _char(uuid: str, *properties: str):
    return SimpleNamespace(uuid=uuid, properties=list(properties))


def _write(client: FakeClient, payload: bytes = b"\x01") -> None:
    transport = BleakTransport(ScanningConfig())
    session = Session(address=ADDRESS, handle=client)
    asyncio.run(transport.write_characteristic(session, POWER_CHARACTERISTIC_UUID, payload))


@pytest.mark.parametrize(
    ("name", "manufacturer_ids", "expected"),
    [
        ("LHB-1A2B3C4D", (1373,), True),
        ("LHB-1A2B3C4D", (76, 1373), True),
        ("LHB-1A2B3C4D", (), False),
        ("HTC BS 1234", (1373,), False),
        (None, (1373,), False),
    ],
)
def test_matches_base_station(name, manufacturer_ids, expected):
    assert matches_base_station(name, manufacturer_ids, ScanningConfig()) is expected


def test_write_uses_power_characteristic():
    client = FakeClient([_char(str(POWER_CHARACTERISTIC_UUID), "read", "write")])

    _write(client, b"\x00")

    assert client.writes == [(str(POWER_CHARACTERISTIC_UUID), b"\x00", True)]


def test_write_falls_back_to_writable_characteristic():
    other = "00001524-1212-efde-1523-785feabcd124"
    client = FakeClient([_char(other, "write-without-response")])

    _write(client)

    assert client.writes == [(other, b"\x01", False)]


def test_write_without_characteristic_fails():
    client = FakeClient([_char("00001524-1212-efde-1523-785feabcd124", "read")])

    with pytest.raises(DeviceWriteError) as excinfo:
        _write(client)

    assert excinfo.value.reason is WriteFailure.CHARACTERISTIC_NOT_FOUND


def test_write_rejection_is_translated():
    client = FakeClient(
        [_char(str(POWER_CHARACTERISTIC_UUID), "write")], write_error=BleakError("GATT error")
    )

    with pytest.raises(DeviceWriteError) as excinfo:
        _write(client)

    assert excinfo.value.reason is WriteFailure.REJECTED
    assert "GATT error" in str(excinfo.value)


@pytest.mark.parametrize(
    ("error", "reason"),
    [
        (asyncio.TimeoutError(), ConnectionFailure.TIMEOUT),
        (BleakDeviceNotFoundError(ADDRESS), ConnectionFailure.UNREACHABLE),
        (BleakError("Bluetooth adapter is turned off"), ConnectionFailure.ADAPTER_UNAVAILABLE),
        (BleakError("Connection refused by peer"), ConnectionFailure.UNREACHABLE),
        (BleakError("adapter reported: device disconnected"), ConnectionFailure.UNREACHABLE),
        (BleakError("Bluetooth adapter 'hci0' not found"), ConnectionFailure.ADAPTER_UNAVAILABLE),
    ],
)
def test_connect_errors_are_translated(monkeypatch: pytest.MonkeyPatch, error, reason):
    class FailingClient:
        def __init__(self, target, timeout):
            self.target = target

        async def connect(self):
            raise error

    monkeypatch.setattr(transport_module, "BleakClient", FailingClient)
    transport = BleakTransport(ScanningConfig())

    with pytest.raises(DeviceConnectionError) as excinfo:
        asyncio.run(transport.connect(ADDRESS, timeout=1.0))

    assert excinfo.value.reason is reason
    assert excinfo.value.retryable is (reason is not ConnectionFailure.ADAPTER_UNAVAILABLE)


def test_session_closes_client():
    client = FakeClient()

    class ConnectingTransport(BleakTransport):
        async def connect(self, address, timeout):
            return Session(address=address, handle=client)

    async def _use() -> None:
        async with ConnectingTransport(ScanningConfig()).session(ADDRESS, 1.0) as session:
            assert session.handle is client

    asyncio.run(_use())

    assert client.disconnected


def test_characteristic_uuid_constant():
    assert POWER_CHARACTERISTIC_UUID == UUID("00001525-1212-efde-1523-785feabcd124")


class FakeScanner:
    """Stands in for BleakScanner; replays advertisements when started."""

    instances: list[FakeScanner] = []

    def __init__(self, detection_callback, adverts=(), start_error=None, stop_error=None):
        self.detection_callback = detection_callback
        self.adverts = adverts
        self.start_error = start_error
        self.stop_error = stop_error
        self.started = False
        self.stopped = False
        FakeScanner.instances.append(self)

    async def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        for device, advertisement in self.adverts:
            self.detection_callback(device, advertisement)

    async def stop(self):
        self.stopped = True
        if self.stop_error is not None:
            raise self.stop_error


def _seen(address: str, name: str | None, *manufacturer_ids: int, local_name: str | None = None):
    device = SimpleNamespace(address=address, name=name)
    advertisement = SimpleNamespace(
        local_name=local_name,
        manufacturer_data={manufacturer_id: b"" for manufacturer_id in manufacturer_ids},
        service_uuids=[str(POWER_SERVICE_UUID)],
        rssi=-60,
    )
    return device, advertisement


@pytest.fixture
def fake_scanner(monkeypatch: pytest.MonkeyPatch):
    FakeScanner.instances = []
    options = {}

    def _factory(detection_callback):
        return FakeScanner(detection_callback, **options)

    monkeypatch.setattr(transport_module, "BleakScanner", _factory)
    return options


def _scan(duration: float = 0.05, stop_after: int | None = None) -> list:
    async def _collect():
        found = []
        async with aclosing(BleakTransport(ScanningConfig()).scan(duration)) as stream:
            async for advert in stream:
                found.append(advert)
                if stop_after is not None and len(found) >= stop_after:
                    break
        return found

    return asyncio.run(_collect())


def test_scan_reports_each_base_station_once(fake_scanner):
    fake_scanner["adverts"] = [
        _seen("c1:4a:b2:00:00:0a", "LHB-0A", 1373),
        _seen("c1:4a:b2:00:00:0a", "LHB-0A", 1373),
        _seen("C1:4A:B2:00:00:0B", None, 1373, local_name="LHB-0B"),
        _seen("C1:4A:B2:00:00:0C", "LHB-0C"),
        _seen("C1:4A:B2:00:00:0D", "Headphones", 1373),
    ]

    found = _scan()

    assert [(advert.address, advert.name) for advert in found] == [
        ("C1:4A:B2:00:00:0A", "LHB-0A"),
        ("C1:4A:B2:00:00:0B", "LHB-0B"),
    ]
    assert found[0].manufacturer_ids == (1373,)
    (scanner,) = FakeScanner.instances
    assert scanner.stopped


def test_scan_ends_when_window_elapses(fake_scanner):
    loop_time = []

    async def _timed():
        loop = asyncio.get_running_loop()
        start = loop.time()
        found = [advert async for advert in BleakTransport(ScanningConfig()).scan(0.1)]
        loop_time.append(loop.time() - start)
        return found

    assert asyncio.run(_timed()) == []
    assert 0.05 < loop_time[0] < 1.0
    assert FakeScanner.instances[0].stopped


def test_scan_start_failure_is_adapter_unavailable(fake_scanner):
    fake_scanner["start_error"] = BleakError("No Bluetooth adapters found.")

    with pytest.raises(AdapterUnavailableError, match="No Bluetooth adapters"):
        _scan()


def test_scan_stops_scanner_when_consumer_leaves_early(fake_scanner):
    fake_scanner["adverts"] = [
        _seen("C1:4A:B2:00:00:0A", "LHB-0A", 1373),
        _seen("C1:4A:B2:00:00:0B", "LHB-0B", 1373),
    ]

    found = _scan(duration=5.0, stop_after=1)

    assert len(found) == 1
    assert FakeScanner.instances[0].stopped


def test_scan_stop_failure_is_not_raised(fake_scanner):
    fake_scanner["adverts"] = [_seen("C1:4A:B2:00:00:0A", "LHB-0A", 1373)]
    fake_scanner["stop_error"] = BleakError("already stopped")

    assert len(_scan()) == 1


def test_transport_requires_every_capability():
    class ScanOnly(Transport):
        async def scan(self, duration):
            yield

    with pytest.raises(TypeError, match="abstract"):
        ScanOnly()
