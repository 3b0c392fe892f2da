"""Wi-Fi provisioning handshake over an established connection.

A session walks START, SSID, PASSWORD and DONE. Each step writes one framed
command and then suspends until the device reports a terminal status, the
step deadline passes, or the connection goes away. REBOOT is written last and
is not acknowledged by the device.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from netcfgctl.core.connection import ConnectionManager
from netcfgctl.core.errors import (
    InvalidArgumentError,
    NetcfgError,
    NotConnectedError,
    SessionInProgressError,
)
from netcfgctl.core.events import EventSink, log_event
from netcfgctl.core.framing import encode_command, encode_text
from netcfgctl.core.model import (
    Command,
    DeviceProfile,
    OutcomeKind,
    ProvisioningOutcome,
    ProvisioningStep,
    StatusClass,
    StatusRecord,
)
from netcfgctl.core.status import classify

LOGGER = logging.getLogger(__name__)

_ACKNOWLEDGED_STEPS: tuple[tuple[ProvisioningStep, Command], ...] = (
    (ProvisioningStep.START, Command.START),
    (ProvisioningStep.SEND_SSID, Command.SSID),
    (ProvisioningStep.SEND_PASSWORD, Command.PASSWORD),
    (ProvisioningStep.DONE, Command.DONE),
)


class _Wake(Enum):
    ABORTED = "aborted"
    TIMED_OUT = "timed_out"


class ProvisioningSession:
    def __init__(self, connection: ConnectionManager, profile: DeviceProfile, sink: EventSink) -> None:
        self._connection = connection
        self._profile = profile
        self._sink = sink
        self._inbox: asyncio.Queue[StatusRecord | _Wake] = asyncio.Queue()
        self._aborted = False
        self._started = False
        self.step = ProvisioningStep.START
        self.last_record: StatusRecord | None = None
        self.deadline: float | None = None
        self.outcome: ProvisioningOutcome | None = None

    def deliver(self, record: StatusRecord) -> None:
        if self.step.terminal:
            LOGGER.debug("Ignoring %s after session ended", record.describe())
            return
        self._inbox.put_nowait(record)

    def abort(self) -> None:
        if self.step.terminal or self._aborted:
            return
        self._aborted = True
        self._inbox.put_nowait(_Wake.ABORTED)

    async def configure_wifi(self, ssid: str, password: str) -> ProvisioningOutcome:
        if not ssid:
            raise InvalidArgumentError("SSID must not be empty")
        if self._started:
            raise SessionInProgressError("A provisioning session can only run once")

        limits = self._profile.limits
        payloads = {
            Command.SSID: encode_text(ssid, field="SSID", max_bytes=limits.ssid_max_bytes),
            Command.PASSWORD: encode_text(password or "", field="Password", max_bytes=limits.password_max_bytes),
        }

        self._connection.attach_session(self)
        self._started = True
        try:
            return await self._run(payloads)
        finally:
            self._connection.detach_session(self)

    async def _run(self, payloads: dict[Command, bytes]) -> ProvisioningOutcome:
        self._sink.publish(log_event(f"Provisioning started at step {self.step.value}"))
        for step, command in _ACKNOWLEDGED_STEPS:
            if step is not self.step:
                self._transition(step)
            aborted = await self._send(command, payloads.get(command, b""))
            if aborted is not None:
                return aborted

            result = await self._await_status()
            if result is _Wake.ABORTED:
                return self._finish(ProvisioningStep.ABORTED, OutcomeKind.ABORTED)
            if result is _Wake.TIMED_OUT:
                return self._finish(ProvisioningStep.FAILED, OutcomeKind.TIMEOUT)
            if classify(result.code) is StatusClass.FAILURE:
                return self._finish(ProvisioningStep.FAILED, OutcomeKind.FAILURE, result)

        self._transition(ProvisioningStep.REBOOT)
        aborted = await self._send(Command.REBOOT)
        if aborted is not None:
            return aborted
        return self._finish(ProvisioningStep.COMPLETED, OutcomeKind.SUCCESS, self.last_record)

    async def _send(self, command: Command, data: bytes = b"") -> ProvisioningOutcome | None:
        self._discard_stale()
        if self._aborted:
            return self._finish(ProvisioningStep.ABORTED, OutcomeKind.ABORTED)

        packets = encode_command(self._profile, command, data)
        try:
            await self._connection.write_command(packets, owner=self)
        except NotConnectedError:
            return self._finish(ProvisioningStep.ABORTED, OutcomeKind.ABORTED)
        except NetcfgError as exc:
            failed_step = self.step
            self._transition(ProvisioningStep.FAILED)
            self._sink.publish(
                log_event(f"Provisioning failed at step {failed_step.value}: {exc}")
            )
            raise
        return None

    def _discard_stale(self) -> None:
        while not self._inbox.empty():
            item = self._inbox.get_nowait()
            if isinstance(item, StatusRecord):
                LOGGER.debug("Discarding late %s before step %s", item.describe(), self.step.value)

    async def _await_status(self) -> StatusRecord | _Wake:
        loop = asyncio.get_running_loop()
        self.deadline = loop.time() + self._profile.timeouts.step_s
        while True:
            if self._aborted:
                return _Wake.ABORTED
            remaining = self.deadline - loop.time()
            if remaining <= 0:
                return _Wake.TIMED_OUT
            try:
                item = await asyncio.wait_for(self._inbox.get(), remaining)
            except asyncio.TimeoutError:
                return _Wake.TIMED_OUT
            if item is _Wake.ABORTED:
                return item

            self.last_record = item
            if classify(item.code) is not StatusClass.INFORMATIONAL:
                return item
            LOGGER.debug("Step %s saw informational %s", self.step.value, item.describe())

    def _transition(self, step: ProvisioningStep) -> None:
        previous, self.step = self.step, step
        LOGGER.debug("Provisioning step %s -> %s", previous.value, step.value)
        self._sink.publish(log_event(f"Provisioning step {previous.value} -> {step.value}"))

    def _finish(
        self,
        terminal: ProvisioningStep,
        kind: OutcomeKind,
        record: StatusRecord | None = None,
    ) -> ProvisioningOutcome:
        outcome = ProvisioningOutcome(kind=kind, step=self.step, record=record)
        self._transition(terminal)
        self.deadline = None
        self.outcome = outcome
        LOGGER.info(outcome.describe())
        self._sink.publish(log_event(outcome.describe()))
        return outcome
