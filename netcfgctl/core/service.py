"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import logging

from netcfgctl.core.connection import ConnectionHandle, ConnectionManager
from netcfgctl.core.errors import InvalidArgumentError, ProfileLoadError
from netcfgctl.core.events import EventSink, LoggingEventSink
from netcfgctl.core.framing import encode_command
from netcfgctl.core.model import Command, DeviceCandidate, DeviceProfile, ProvisioningOutcome
from netcfgctl.core.profile_loader import DEFAULT_PROFILE_ID, load_profiles
from netcfgctl.core.scanner import Scanner
from netcfgctl.core.session import ProvisioningSession
from netcfgctl.transports.base import BLEAdapter
from netcfgctl.transports.bleak_gatt import BleakAdapter

LOGGER = logging.getLogger(__name__)


class NetcfgService:
    def __init__(
        self,
        *,
        adapter: BLEAdapter | None = None,
        sink: EventSink | None = None,
        profile_id: str | None = None,
    ) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self.profile = self._select_profile(profile_id or DEFAULT_PROFILE_ID)
        self.adapter = adapter or BleakAdapter()
        self.sink = sink or LoggingEventSink()
        self.scanner = Scanner(self.adapter, self.profile.match)
        self.connections = ConnectionManager(self.adapter, self.scanner, self.profile, self.sink)

    def _select_profile(self, profile_id: str) -> DeviceProfile:
        profile = self.profiles.get(profile_id)
        if profile is None:
            available = ", ".join(sorted(self.profiles)) or "<none>"
            raise ProfileLoadError(f"Unknown profile '{profile_id}'. Available: {available}")
        return profile

    def list_profiles(self) -> list[DeviceProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    async def scan(self, timeout_s: float | None = None) -> list[DeviceCandidate]:
        return await self.scanner.scan(timeout_s if timeout_s is not None else self.profile.timeouts.scan_s)

    async def connect(self, address: str) -> ConnectionHandle:
        return await self.connections.connect(address)

    async def disconnect(self) -> None:
        await self.connections.disconnect()

    async def configure_wifi(self, ssid: str, password: str) -> ProvisioningOutcome:
        session = ProvisioningSession(self.connections, self.profile, self.sink)
        return await session.configure_wifi(ssid, password)

    async def send_command(self, command: Command, payload: bytes = b"") -> None:
        """Write a single framed command without waiting for any status."""
        limit = {
            Command.SSID: self.profile.limits.ssid_max_bytes,
            Command.PASSWORD: self.profile.limits.password_max_bytes,
        }.get(command)
        if limit is not None and len(payload) > limit:
            raise InvalidArgumentError(f"{command.value} payload exceeds {limit} bytes")
        await self.connections.write_command(encode_command(self.profile, command, payload))

    async def provision(
        self,
        address: str,
        ssid: str,
        password: str,
        *,
        scan_timeout_s: float | None = None,
    ) -> ProvisioningOutcome:
        if not self.scanner.seen(address):
            await self.scan(scan_timeout_s)
        await self.connect(address)
        try:
            return await self.configure_wifi(ssid, password)
        finally:
            await self.disconnect()
