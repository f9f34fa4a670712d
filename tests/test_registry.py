from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from lighthouse_power.errors import PersistenceError
from lighthouse_power.models import Advertisement, Device, ScanResult
from lighthouse_power.storage import Database, DeviceRegistry

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def advert(address: str, name: str, seen_at: datetime = T0) -> Advertisement:
    return Advertisement(address=address, name=name, manufacturer_ids=(1373,), seen_at=seen_at)


def test_merge_inserts_and_keeps_unseen(registry):
    registry.merge([advert("AA:00:00:00:00:01", "LHB-1"), advert("AA:00:00:00:00:02", "LHB-2")])
    devices = registry.merge([advert("AA:00:00:00:00:03", "LHB-3")])

    assert [device.address for device in devices] == [
        "AA:00:00:00:00:01",
        "AA:00:00:00:00:02",
        "AA:00:00:00:00:03",
    ]


def test_addresses_stay_unique_across_merges(registry):
    scans = [
        [advert("aa:00:00:00:00:01", "LHB-1"), advert("AA:00:00:00:00:02", "LHB-2")],
        [advert("AA-00-00-00-00-01", "LHB-1b", T0 + timedelta(seconds=5))],
        [
            advert("AA:00:00:00:00:02", "LHB-2", T0 + timedelta(seconds=9)),
            advert("AA:00:00:00:00:02", "LHB-2c", T0 + timedelta(seconds=10)),
        ],
    ]
    for scan in scans:
        devices = registry.merge(scan)
        addresses = [device.address for device in devices]
        assert len(addresses) == len(set(addresses))

    assert len(registry.snapshot()) == 2


def test_most_recent_observation_names_the_device(registry):
    registry.merge([advert("AA:00:00:00:00:01", "Old name", T0)])

    registry.merge([advert("AA:00:00:00:00:01", "Stale name", T0 - timedelta(minutes=1))])
    assert registry.get("AA:00:00:00:00:01").name == "Old name"

    registry.merge([advert("AA:00:00:00:00:01", "New name", T0 + timedelta(minutes=1))])
    device = registry.get("AA:00:00:00:00:01")
    assert device.name == "New name"
    assert device.last_seen == T0 + timedelta(minutes=1)


def test_merge_accepts_scan_result_and_persists(database, registry):
    registry.merge(ScanResult(devices=[advert("AA:00:00:00:00:01", "LHB-1")]))

    reloaded = DeviceRegistry(database).snapshot()
    assert [device.name for device in reloaded] == ["LHB-1"]


def test_clear_persists_immediately(database, registry):
    registry.merge([advert("AA:00:00:00:00:01", "LHB-1")])
    registry.clear()

    assert registry.snapshot() == ()
    assert json.loads(database.devices_path.read_text()) == []


def test_corrupt_store_reads_as_empty(database):
    database.ensure_dirs()
    database.devices_path.write_text("{not json")

    assert DeviceRegistry(database).snapshot() == ()


def test_wrong_shape_store_reads_as_empty(database):
    database.ensure_dirs()
    database.devices_path.write_text(json.dumps({"address": "AA:00:00:00:00:01"}))

    assert database.load_devices() == []


def test_duplicate_entries_keep_last_occurrence(database):
    database.ensure_dirs()
    database.devices_path.write_text(
        json.dumps(
            [
                {"name": "first", "address": "AA:00:00:00:00:01"},
                {"name": "other", "address": "AA:00:00:00:00:02"},
                {"name": "second", "address": "aa:00:00:00:00:01"},
            ]
        )
    )

    devices = database.load_devices()
    assert [(device.address, device.name) for device in devices] == [
        ("AA:00:00:00:00:02", "other"),
        ("AA:00:00:00:00:01", "second"),
    ]


def test_legacy_entries_without_last_seen(database):
    database.ensure_dirs()
    database.devices_path.write_text(json.dumps([{"name": "LHB-1", "address": "AA:00:00:00:00:01"}]))

    (device,) = database.load_devices()
    assert device.last_seen is None


def test_snapshot_is_immutable(registry):
    registry.merge([advert("AA:00:00:00:00:01", "LHB-1")])
    snapshot = registry.snapshot()

    registry.merge([advert("AA:00:00:00:00:02", "LHB-2")])

    assert isinstance(snapshot, tuple)
    assert len(snapshot) == 1


def test_merge_survives_write_failure(tmp_path, monkeypatch):
    database = Database(tmp_path / "data")
    registry = DeviceRegistry(database)

    def _fail(_devices: list[Device]) -> None:
        raise PersistenceError("disk full")

    monkeypatch.setattr(database, "save_devices", _fail)

    devices = registry.merge([advert("AA:00:00:00:00:01", "LHB-1")])
    assert [device.address for device in devices] == ["AA:00:00:00:00:01"]


def test_preferences_roundtrip_and_reset(database):
    prefs = database.load_preferences()
    assert prefs.theme == "dark"

    database.save_preferences(prefs.model_copy(update={"theme": "light"}))
    assert database.load_preferences().theme == "light"

    database.reset()
    assert database.load_preferences().theme == "dark"
    assert database.load_devices() == []


def test_invalid_entries_are_skipped_not_fatal(database):
    database.ensure_dirs()
    database.devices_path.write_text(
        json.dumps(
            [
                {"name": "LHB-1", "address": "AA:00:00:00:00:01"},
                {"name": "no address"},
                "garbage",
                {"name": "LHB-2", "address": "AA:00:00:00:00:02"},
            ]
        )
    )

    registry = DeviceRegistry(database)
    registry.merge([advert("AA:00:00:00:00:03", "LHB-3")])

    stored = json.loads(database.devices_path.read_text())
    assert [entry["address"] for entry in stored] == [
        "AA:00:00:00:00:01",
        "AA:00:00:00:00:02",
        "AA:00:00:00:00:03",
    ]
