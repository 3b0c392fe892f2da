"""Stable public API for building tooling on top of netcfgctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from netcfgctl.core.connection import ConnectionHandle
from netcfgctl.core.errors import (
    AdapterUnavailableError,
    AlreadyConnectedError,
    CharacteristicMissingError,
    ConnectFailedError,
    ConnectTimeoutError,
    DeviceNotFoundError,
    InvalidArgumentError,
    MalformedNotificationError,
    NetcfgError,
    NotConnectedError,
    ProfileLoadError,
    ProfileValidationError,
    ProvisioningError,
    ScanInProgressError,
    SessionAbortedError,
    SessionInProgressError,
    StepFailureError,
    StepTimeoutError,
    TransportError,
    TransportWriteError,
)
from netcfgctl.core.events import EventSink, FanoutEventSink, LoggingEventSink, QueueEventSink
from netcfgctl.core.model import (
    Command,
    DeviceCandidate,
    DeviceProfile,
    Event,
    EventKind,
    OutcomeKind,
    ProvisioningOutcome,
    ProvisioningStep,
    StatusRecord,
)
from netcfgctl.core.service import NetcfgService
from netcfgctl.core.status import decode
from netcfgctl.transports.base import BLEAdapter
from netcfgctl.transports.bleak_gatt import BleakAdapter

__all__ = [
    "NetcfgError",
    "InvalidArgumentError",
    "AdapterUnavailableError",
    "ScanInProgressError",
    "DeviceNotFoundError",
    "AlreadyConnectedError",
    "ConnectFailedError",
    "ConnectTimeoutError",
    "CharacteristicMissingError",
    "NotConnectedError",
    "MalformedNotificationError",
    "ProvisioningError",
    "StepTimeoutError",
    "StepFailureError",
    "SessionAbortedError",
    "SessionInProgressError",
    "TransportError",
    "TransportWriteError",
    "ProfileLoadError",
    "ProfileValidationError",
    "Command",
    "ConnectionHandle",
    "DeviceCandidate",
    "DeviceProfile",
    "Event",
    "EventKind",
    "OutcomeKind",
    "ProvisioningOutcome",
    "ProvisioningStep",
    "StatusRecord",
    "EventSink",
    "FanoutEventSink",
    "LoggingEventSink",
    "QueueEventSink",
    "BLEAdapter",
    "BleakAdapter",
    "decode",
    "Client",
]


class Client:
    """Public client for provisioning Wi-Fi credentials over BLE.

    A `Client` wraps profile loading, scanning, the single managed connection,
    and provisioning sessions behind a stable async API intended for
    third-party tools (GUI/TUI/services/scripts). Events are published to the
    given sink; pass a `QueueEventSink` to consume them from a front end.
    """

    def __init__(
        self,
        *,
        adapter: BLEAdapter | None = None,
        sink: EventSink | None = None,
        profile_id: str | None = None,
    ) -> None:
        self._service = NetcfgService(adapter=adapter, sink=sink, profile_id=profile_id)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def profile(self) -> DeviceProfile:
        return self._service.profile

    @property
    def connected(self) -> bool:
        return self._service.connections.connected

    def list_profiles(self) -> list[DeviceProfile]:
        return self._service.list_profiles()

    async def scan(self, timeout_s: float | None = None) -> list[DeviceCandidate]:
        return await self._service.scan(timeout_s)

    async def connect(self, address: str) -> ConnectionHandle:
        return await self._service.connect(address)

    async def disconnect(self) -> None:
        await self._service.disconnect()

    async def configure_wifi(self, ssid: str, password: str) -> ProvisioningOutcome:
        return await self._service.configure_wifi(ssid, password)

    async def send_command(self, command: Command, payload: bytes = b"") -> None:
        await self._service.send_command(command, payload)

    async def provision(
        self,
        address: str,
        ssid: str,
        password: str,
        *,
        scan_timeout_s: float | None = None,
    ) -> ProvisioningOutcome:
        return await self._service.provision(address, ssid, password, scan_timeout_s=scan_timeout_s)
