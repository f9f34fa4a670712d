from __future__ import annotations

from .database import DEVICES_FILE, PREFERENCES_FILE, Database, parse_devices
from .registry import DeviceRegistry

__all__ = [
    "DEVICES_FILE",
    "PREFERENCES_FILE",
    "Database",
    "DeviceRegistry",
    "parse_devices",
]
