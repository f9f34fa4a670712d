from __future__ import annotations

from enum import Enum


class LighthousePowerError(Exception):
    """Base class for errors raised by lighthouse-power."""


class AdapterUnavailableError(LighthousePowerError):
    """No usable Bluetooth adapter: missing, disabled or unreachable."""


class ConnectionFailure(str, Enum):
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    ADAPTER_UNAVAILABLE = "adapter_unavailable"


class WriteFailure(str, Enum):
    CHARACTERISTIC_NOT_FOUND = "characteristic_not_found"
    REJECTED = "rejected"


class DeviceConnectionError(LighthousePowerError):
    def __init__(self, address: str, reason: ConnectionFailure, detail: str = "") -> None:
        self.address = address
        self.reason = reason
        self.detail = detail
        message = f"{address}: connection failed ({reason.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.reason is not ConnectionFailure.ADAPTER_UNAVAILABLE


class DeviceWriteError(LighthousePowerError):
    def __init__(self, address: str, reason: WriteFailure, detail: str = "") -> None:
        self.address = address
        self.reason = reason
        self.detail = detail
        message = f"{address}: write failed ({reason.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PersistenceError(LighthousePowerError):
    """A persisted record could not be read or written."""


class RegistrationError(LighthousePowerError):
    """The SteamVR registration record is inaccessible."""
