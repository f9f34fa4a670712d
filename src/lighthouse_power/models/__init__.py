"""Data models for lighthouse-power."""

from lighthouse_power.models.device import (
    Advertisement,
    Device,
    ScanResult,
    normalize_address,
)
from lighthouse_power.models.power import (
    POWER_CHARACTERISTIC_UUID,
    POWER_SERVICE_UUID,
    DeviceOutcome,
    DeviceStatus,
    PowerCommand,
    PowerResult,
    StatusEvent,
)
from lighthouse_power.models.preferences import Preferences

__all__ = [
    "POWER_CHARACTERISTIC_UUID",
    "POWER_SERVICE_UUID",
    "Advertisement",
    "Device",
    "DeviceOutcome",
    "DeviceStatus",
    "PowerCommand",
    "PowerResult",
    "Preferences",
    "ScanResult",
    "StatusEvent",
    "normalize_address",
]
