"""Device models."""

from __future__ import annotations

import string
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


def normalize_address(value: str) -> str:
    """Return a BLE address in upper-case colon form.

    Platform identifiers that are not MAC-shaped (CoreBluetooth UUIDs) are
    only upper-cased.
    """
    cleaned = value.strip().replace("-", ":").upper()
    compact = cleaned.replace(":", "")
    if len(compact) == 12 and all(ch in string.hexdigits for ch in compact):
        return ":".join(compact[i : i + 2] for i in range(0, 12, 2))
    return value.strip().upper()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Device(BaseModel):
    """A known base station."""

    model_config = {"frozen": True, "extra": "ignore"}

    address: str
    name: str = "Unknown"
    last_seen: datetime | None = None

    @field_validator("address")
    @classmethod
    def _normalize(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("address must not be empty")
        return normalize_address(value)


class Advertisement(BaseModel):
    """One base station observed during a scan window."""

    model_config = {"frozen": True}

    address: str
    name: str
    manufacturer_ids: tuple[int, ...] = ()
    service_uuids: tuple[str, ...] = ()
    rssi: int | None = None
    seen_at: datetime = Field(default_factory=utcnow)

    @field_validator("address")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_address(value)


class ScanResult(BaseModel):
    """Complete scan result."""

    scan_timestamp: datetime = Field(default_factory=utcnow)
    devices: list[Advertisement] = Field(default_factory=list)

    def addresses(self) -> set[str]:
        return {advert.address for advert in self.devices}
