"""Per-device power transition state machine.

    IDLE -> CONNECTING -> WRITING -> ONLINE | STANDBY
                |  ^          |
                +--+          +-> UNREACHABLE
          (bounded retry)
    CONNECTING -> UNREACHABLE once attempts are exhausted

The machine holds no I/O; the orchestrator feeds it connection and write
outcomes and sleeps for the delays it hands back.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lighthouse_power.config import PowerConfig
from lighthouse_power.errors import DeviceConnectionError, DeviceWriteError
from lighthouse_power.models import DeviceStatus, PowerCommand


class TransitionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    WRITING = "writing"
    ONLINE = "online"
    STANDBY = "standby"
    UNREACHABLE = "unreachable"


TERMINAL_STATES = frozenset(
    {TransitionState.ONLINE, TransitionState.STANDBY, TransitionState.UNREACHABLE}
)


class InvalidTransition(RuntimeError):
    pass


@dataclass(frozen=True)
class BackoffPolicy:
    initial: float = 0.5
    factor: float = 2.0
    maximum: float = 4.0

    @classmethod
    def from_config(cls, config: PowerConfig) -> BackoffPolicy:
        return cls(
            initial=config.backoff_initial,
            factor=config.backoff_factor,
            maximum=config.backoff_max,
        )

    def delay(self, failed_attempts: int) -> float:
        """Delay to wait after the given number of failed attempts."""
        if failed_attempts < 1:
            return 0.0
        return min(self.initial * self.factor ** (failed_attempts - 1), self.maximum)


class DeviceTransition:
    def __init__(
        self,
        address: str,
        command: PowerCommand,
        max_attempts: int = 3,
        backoff: BackoffPolicy | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.address = address
        self.command = command
        self.max_attempts = max_attempts
        self.backoff = backoff or BackoffPolicy()
        self.state = TransitionState.IDLE
        self.attempts = 0
        self.error: str | None = None
        self.adapter_lost = False

    def __repr__(self) -> str:
        return (
            f"DeviceTransition({self.address!r}, {self.command.value}, "
            f"state={self.state.value}, attempts={self.attempts})"
        )

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def status(self) -> DeviceStatus | None:
        """Status reported to observers; None until the machine is started."""
        if self.state is TransitionState.IDLE:
            return None
        if self.state in (TransitionState.CONNECTING, TransitionState.WRITING):
            return DeviceStatus.TRANSITIONING
        return DeviceStatus(self.state.value)

    def _expect(self, *states: TransitionState) -> None:
        if self.state not in states:
            expected = ", ".join(state.value for state in states)
            raise InvalidTransition(
                f"{self.address}: expected {expected}, machine is {self.state.value}"
            )

    def start(self) -> None:
        self._expect(TransitionState.IDLE)
        self.state = TransitionState.CONNECTING
        self.attempts = 1

    def connected(self) -> None:
        self._expect(TransitionState.CONNECTING)
        self.state = TransitionState.WRITING

    def connect_failed(self, error: DeviceConnectionError) -> float | None:
        """Record a failed attempt; returns the backoff delay when retrying."""
        self._expect(TransitionState.CONNECTING)
        self.error = str(error)
        if not error.retryable:
            self.adapter_lost = True
            self.state = TransitionState.UNREACHABLE
            return None
        if self.attempts >= self.max_attempts:
            self.state = TransitionState.UNREACHABLE
            return None
        delay = self.backoff.delay(self.attempts)
        self.attempts += 1
        return delay

    def write_succeeded(self) -> None:
        self._expect(TransitionState.WRITING)
        self.error = None
        self.state = TransitionState(self.command.target_status.value)

    def write_failed(self, error: DeviceWriteError) -> None:
        # not transient: no retry within the same call
        self._expect(TransitionState.WRITING)
        self.error = str(error)
        self.state = TransitionState.UNREACHABLE

    def abandon(self, reason: str) -> None:
        if self.terminal:
            return
        self.error = reason
        self.state = TransitionState.UNREACHABLE
