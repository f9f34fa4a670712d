"""lighthouse-power - automatic power control for VR base stations over Bluetooth LE."""

from __future__ import annotations

from importlib.metadata import version

from .config import PowerConfig, ScanningConfig, Settings, SteamVRConfig, get_settings
from .errors import (
    AdapterUnavailableError,
    DeviceConnectionError,
    DeviceWriteError,
    LighthousePowerError,
    PersistenceError,
    RegistrationError,
)
from .models import Device, DeviceStatus, PowerCommand, PowerResult
from .services import LighthouseService

__all__ = [
    "AdapterUnavailableError",
    "Device",
    "DeviceConnectionError",
    "DeviceStatus",
    "DeviceWriteError",
    "LighthousePowerError",
    "LighthouseService",
    "PersistenceError",
    "PowerCommand",
    "PowerConfig",
    "PowerResult",
    "RegistrationError",
    "ScanningConfig",
    "Settings",
    "SteamVRConfig",
    "__version__",
    "get_settings",
]

__version__ = version("lighthouse-power")
