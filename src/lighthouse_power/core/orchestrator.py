"""Scan, merge and drive power transitions for every known base station."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import aclosing
from dataclasses import dataclass

from lighthouse_power.config import PowerConfig, ScanningConfig
from lighthouse_power.errors import (
    AdapterUnavailableError,
    DeviceConnectionError,
    DeviceWriteError,
)
from lighthouse_power.models import (
    Advertisement,
    Device,
    DeviceOutcome,
    DeviceStatus,
    PowerCommand,
    PowerResult,
    ScanResult,
    StatusEvent,
)
from lighthouse_power.storage import DeviceRegistry

from .transition import BackoffPolicy, DeviceTransition, TransitionState
from .transport import Transport

logger = logging.getLogger(__name__)

StatusListener = Callable[[StatusEvent], None]


@dataclass
class _InFlight:
    command: PowerCommand
    task: asyncio.Task[DeviceOutcome]
    waiters: int = 1
    previous: _InFlight | None = None


class PowerOrchestrator:
    """Coordinates the transport and the device registry.

    Transitions for distinct addresses run concurrently. A call that targets
    an address whose transition for the same command is already running joins
    that transition instead of opening a second connection; a different
    command waits for the running one to finish first.

    Status listeners are invoked synchronously on the event loop thread.
    """

    def __init__(
        self,
        transport: Transport,
        registry: DeviceRegistry,
        scanning: ScanningConfig | None = None,
        power: PowerConfig | None = None,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._scanning = scanning or ScanningConfig()
        self._power = power or PowerConfig()
        self._backoff = BackoffPolicy.from_config(self._power)
        self._statuses: dict[str, DeviceStatus] = {}
        self._in_flight: dict[str, _InFlight] = {}
        self._listeners: list[StatusListener] = []

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def transport(self) -> Transport:
        return self._transport

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def statuses(self) -> dict[str, DeviceStatus]:
        return dict(self._statuses)

    def status_of(self, address: str) -> DeviceStatus | None:
        return self._statuses.get(address)

    def in_flight(self) -> dict[str, PowerCommand]:
        return {
            address: entry.command
            for address, entry in self._in_flight.items()
            if not entry.task.done()
        }

    def _set_status(self, address: str, status: DeviceStatus) -> None:
        if self._statuses.get(address) is status:
            return
        self._statuses[address] = status
        event = StatusEvent(address=address, status=status)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Status listener failed for %s", address)

    async def list_known(self) -> tuple[Device, ...]:
        return self._registry.snapshot()

    async def scan_only(self) -> tuple[Device, ...]:
        scan = await self._scan(self._scanning.scan_window)
        return self._registry.merge(scan)

    async def power_on_all(self, budget: float | None = None) -> PowerResult:
        return await self.run(PowerCommand.POWER_ON, budget)

    async def standby_all(self, budget: float | None = None) -> PowerResult:
        return await self.run(PowerCommand.STANDBY, budget)

    async def _scan(self, window: float) -> ScanResult:
        adverts: dict[str, Advertisement] = {}
        async with aclosing(self._transport.scan(window)) as stream:
            async for advert in stream:
                adverts[advert.address] = advert
        logger.info("Scan complete: %d base station(s) in range", len(adverts))
        return ScanResult(devices=list(adverts.values()))

    async def run(self, command: PowerCommand, budget: float | None = None) -> PowerResult:
        """Send ``command`` to every known or discovered base station.

        Only an unusable adapter raises; per-device failures are reported as
        ``UNREACHABLE`` outcomes. Devices still in flight when ``budget``
        runs out are abandoned and reported ``UNREACHABLE`` as well.
        """
        budget = self._power.call_budget if budget is None else budget
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        known = self._registry.snapshot()
        logger.info("Sending %s: %d known base station(s)", command.label, len(known))

        scan = await self._scan(min(self._scanning.scan_window, budget))
        targets = self._registry.merge(scan)
        if not targets:
            logger.info("No base stations known or in range")
            return PowerResult(command=command)

        for device in targets:
            self._set_status(device.address, DeviceStatus.TRANSITIONING)

        semaphore = asyncio.Semaphore(self._power.max_concurrency)
        joined = {device.address: self._join(device, command, semaphore) for device in targets}
        tasks = {entry.task for entry in joined.values()}

        abandoned: list[asyncio.Task[DeviceOutcome]] = []
        try:
            remaining = deadline - loop.time()
            if remaining > 0:
                await asyncio.wait(tasks, timeout=remaining)
        finally:
            for entry in joined.values():
                entry.waiters -= 1
                if not entry.task.done() and entry.waiters <= 0:
                    entry.task.cancel()
                    abandoned.append(entry.task)

        if abandoned:
            logger.warning(
                "%s budget of %.1fs exhausted; abandoning %d device(s)",
                command.label,
                budget,
                len(abandoned),
            )
            await asyncio.gather(*abandoned, return_exceptions=True)

        result = self._collect(command, targets, joined)
        self._raise_if_adapter_lost(result)
        logger.info("%s: %s", command.label.capitalize(), result.summary())
        return result

    def _collect(
        self,
        command: PowerCommand,
        targets: tuple[Device, ...],
        joined: dict[str, _InFlight],
    ) -> PowerResult:
        outcomes: list[DeviceOutcome] = []
        timed_out = False
        for device in targets:
            task = joined[device.address].task
            if task.done() and not task.cancelled():
                outcome = task.result().model_copy(update={"device": device})
            else:
                timed_out = True
                outcome = DeviceOutcome(
                    device=device,
                    status=DeviceStatus.UNREACHABLE,
                    error="call budget exhausted",
                )
            outcomes.append(outcome)
        return PowerResult(command=command, devices=outcomes, timed_out=timed_out)

    def _raise_if_adapter_lost(self, result: PowerResult) -> None:
        lost = [outcome for outcome in result.devices if outcome.adapter_lost]
        if lost:
            raise AdapterUnavailableError(lost[0].error or "Bluetooth adapter unavailable")

    def _join(
        self, device: Device, command: PowerCommand, semaphore: asyncio.Semaphore
    ) -> _InFlight:
        address = device.address
        current = self._in_flight.get(address)
        if current is not None and current.task.done():
            current = None
        if current is not None and current.command is command:
            current.waiters += 1
            logger.debug("Joining in-flight %s for %s", command.label, address)
            return current

        task = asyncio.create_task(
            self._drive(device, command, semaphore, current.task if current else None),
            name=f"{command.value}:{address}",
        )
        entry = _InFlight(command=command, task=task, previous=current)
        self._in_flight[address] = entry
        task.add_done_callback(lambda _task: self._release(address, entry))
        return entry

    def _release(self, address: str, entry: _InFlight) -> None:
        if self._in_flight.get(address) is not entry:
            return
        # hand the slot back to an earlier transition that is still running
        previous = entry.previous
        if previous is not None and not previous.task.done():
            self._in_flight[address] = previous
        else:
            del self._in_flight[address]

    async def _drive(
        self,
        device: Device,
        command: PowerCommand,
        semaphore: asyncio.Semaphore,
        previous: asyncio.Task[DeviceOutcome] | None = None,
    ) -> DeviceOutcome:
        address = device.address
        transition = DeviceTransition(
            address, command, self._power.max_attempts, self._backoff
        )
        try:
            if previous is not None:
                logger.debug("Waiting for earlier transition of %s", address)
                await asyncio.wait([previous])
            self._set_status(address, DeviceStatus.TRANSITIONING)
            transition.start()
            while transition.state is TransitionState.CONNECTING:
                try:
                    async with semaphore:
                        await self._attempt(transition)
                except DeviceConnectionError as exc:
                    delay = transition.connect_failed(exc)
                    if delay is None:
                        break
                    logger.debug(
                        "Attempt %d/%d for %s failed (%s); retrying in %.2fs",
                        transition.attempts - 1,
                        transition.max_attempts,
                        address,
                        exc.reason.value,
                        delay,
                    )
                    await asyncio.sleep(delay)
        except asyncio.CancelledError:
            # still queued behind an earlier transition: that one owns the status
            if transition.state is not TransitionState.IDLE:
                transition.abandon("call budget exhausted")
                self._set_status(address, DeviceStatus.UNREACHABLE)
            raise
        except Exception as exc:
            logger.exception("Unexpected failure while driving %s", address)
            transition.abandon(f"{type(exc).__name__}: {exc}")

        status = transition.status or DeviceStatus.UNREACHABLE
        self._set_status(address, status)
        if status is DeviceStatus.UNREACHABLE:
            logger.warning("%s (%s) unreachable: %s", device.name, address, transition.error)
        else:
            logger.info("%s (%s) is now %s", device.name, address, status.value)
        return DeviceOutcome(
            device=device,
            status=status,
            attempts=transition.attempts,
            error=transition.error,
            adapter_lost=transition.adapter_lost,
        )

    async def _attempt(self, transition: DeviceTransition) -> None:
        command = transition.command
        async with self._transport.session(
            transition.address, self._power.connect_timeout
        ) as session:
            transition.connected()
            try:
                await self._transport.write_characteristic(
                    session, command.characteristic_uuid, command.payload
                )
            except DeviceWriteError as exc:
                transition.write_failed(exc)
            else:
                transition.write_succeeded()
