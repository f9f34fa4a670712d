from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from .device import Device, utcnow

POWER_SERVICE_UUID = UUID("00001523-1212-efde-1523-785feabcd124")
POWER_CHARACTERISTIC_UUID = UUID("00001525-1212-efde-1523-785feabcd124")


class DeviceStatus(str, Enum):
    ONLINE = "online"
    STANDBY = "standby"
    TRANSITIONING = "transitioning"
    UNREACHABLE = "unreachable"


class PowerCommand(str, Enum):
    POWER_ON = "power_on"
    STANDBY = "standby"

    @property
    def characteristic_uuid(self) -> UUID:
        return POWER_CHARACTERISTIC_UUID

    @property
    def payload(self) -> bytes:
        return b"\x01" if self is PowerCommand.POWER_ON else b"\x00"

    @property
    def target_status(self) -> DeviceStatus:
        if self is PowerCommand.POWER_ON:
            return DeviceStatus.ONLINE
        return DeviceStatus.STANDBY

    @property
    def label(self) -> str:
        return "power on" if self is PowerCommand.POWER_ON else "standby"


class StatusEvent(BaseModel):
    model_config = {"frozen": True}

    address: str
    status: DeviceStatus
    timestamp: datetime = Field(default_factory=utcnow)


class DeviceOutcome(BaseModel):
    """Terminal state of one device after a power call."""

    model_config = {"frozen": True}

    device: Device
    status: DeviceStatus
    attempts: int = 0
    error: str | None = None
    adapter_lost: bool = Field(default=False, exclude=True)

    @property
    def ok(self) -> bool:
        return self.status in (DeviceStatus.ONLINE, DeviceStatus.STANDBY)


class PowerResult(BaseModel):
    """Aggregated result of a power-on or standby call."""

    model_config = {"frozen": True}

    command: PowerCommand
    devices: list[DeviceOutcome] = Field(default_factory=list)
    timed_out: bool = False

    @property
    def succeeded(self) -> list[DeviceOutcome]:
        return [outcome for outcome in self.devices if outcome.ok]

    @property
    def failed(self) -> list[DeviceOutcome]:
        return [outcome for outcome in self.devices if not outcome.ok]

    @property
    def empty(self) -> bool:
        return not self.devices

    def summary(self) -> str:
        if self.empty:
            return "No devices found"
        return f"{len(self.succeeded)} of {len(self.devices)} devices updated"
