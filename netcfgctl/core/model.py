"""Core data models used across scanner, connection, session, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Command(str, Enum):
    START = "start"
    SSID = "ssid"
    PASSWORD = "password"
    DONE = "done"
    REBOOT = "reboot"


class StatusClass(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INFORMATIONAL = "informational"


class ProvisioningStep(str, Enum):
    START = "Start"
    SEND_SSID = "SendSsid"
    SEND_PASSWORD = "SendPassword"
    DONE = "Done"
    REBOOT = "Reboot"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ABORTED = "Aborted"

    @property
    def terminal(self) -> bool:
        return self in (ProvisioningStep.COMPLETED, ProvisioningStep.FAILED, ProvisioningStep.ABORTED)


class OutcomeKind(str, Enum):
    SUCCESS = "Success"
    FAILURE = "Failure"
    TIMEOUT = "Timeout"
    ABORTED = "Aborted"


class EventKind(str, Enum):
    LOG = "log"
    STATUS_CHANGE = "status_change"


@dataclass(frozen=True)
class MatchRules:
    name_contains: tuple[str, ...]
    data_markers: tuple[bytes, ...] = ()


@dataclass(frozen=True)
class GattSpec:
    service_uuid: str
    write_char_uuid: str
    status_char_uuid: str


@dataclass(frozen=True)
class CommandSet:
    start: int = 0xA001
    ssid: int = 0xA002
    password: int = 0xA003
    done: int = 0xA010
    reboot: int = 0xA011

    def opcode(self, command: Command) -> int:
        return getattr(self, command.value)


@dataclass(frozen=True)
class FramingSpec:
    prefix_id: int = 0x03E4
    first_packet_data_max: int = 11
    next_packet_data_max: int = 17
    packet_interval_s: float = 0.1


@dataclass(frozen=True)
class Limits:
    ssid_max_bytes: int = 36
    password_max_bytes: int = 64


@dataclass(frozen=True)
class Timeouts:
    scan_s: float = 3.0
    connect_s: float = 10.0
    step_s: float = 10.0


@dataclass(frozen=True)
class DeviceProfile:
    id: str
    name: str
    match: MatchRules
    gatt: GattSpec
    commands: CommandSet = field(default_factory=CommandSet)
    framing: FramingSpec = field(default_factory=FramingSpec)
    limits: Limits = field(default_factory=Limits)
    timeouts: Timeouts = field(default_factory=Timeouts)


@dataclass(frozen=True)
class AdvertisementReport:
    address: str
    name: str | None = None
    rssi: int | None = None
    manufacturer_data: dict[int, bytes] = field(default_factory=dict)
    service_data: dict[str, bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class DeviceCandidate:
    id: str
    name: str
    rssi: int | None
    matched: bool


@dataclass(frozen=True)
class CharacteristicInfo:
    uuid: str
    service_uuid: str
    properties: frozenset[str]


@dataclass(frozen=True)
class StatusRecord:
    code: int
    symbolic_name: str
    raw_hex: str | None = None

    @property
    def code_hex(self) -> str:
        return f"0x{self.code:04X}"

    def describe(self) -> str:
        if self.raw_hex:
            return f"{self.symbolic_name} ({self.code_hex}) RAW[{self.raw_hex}]"
        return f"{self.symbolic_name} ({self.code_hex})"


@dataclass(frozen=True)
class Event:
    timestamp: float
    kind: EventKind
    payload: Any


@dataclass(frozen=True)
class ProvisioningOutcome:
    kind: OutcomeKind
    step: ProvisioningStep
    record: StatusRecord | None = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def describe(self) -> str:
        if self.kind is OutcomeKind.SUCCESS:
            return "Provisioning succeeded"
        if self.kind is OutcomeKind.FAILURE:
            detail = self.record.describe() if self.record else "no status"
            return f"Provisioning failed at step {self.step.value}: {detail}"
        if self.kind is OutcomeKind.TIMEOUT:
            return f"Provisioning timed out waiting for status at step {self.step.value}"
        return f"Provisioning aborted at step {self.step.value}: connection closed"

    def raise_for_outcome(self) -> None:
        """Raise the matching provisioning error unless the outcome is a success."""
        from netcfgctl.core.errors import SessionAbortedError, StepFailureError, StepTimeoutError

        if self.kind is OutcomeKind.FAILURE:
            raise StepFailureError(self.describe(), self.record)
        if self.kind is OutcomeKind.TIMEOUT:
            raise StepTimeoutError(self.describe())
        if self.kind is OutcomeKind.ABORTED:
            raise SessionAbortedError(self.describe())
