"""Ownership of the single active GATT connection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from netcfgctl.core.errors import (
    AlreadyConnectedError,
    CharacteristicMissingError,
    ConnectFailedError,
    ConnectTimeoutError,
    DeviceNotFoundError,
    MalformedNotificationError,
    NetcfgError,
    NotConnectedError,
    SessionInProgressError,
    TransportError,
)
from netcfgctl.core.events import EventSink, log_event, status_event
from netcfgctl.core.model import CharacteristicInfo, DeviceProfile, StatusRecord
from netcfgctl.core.scanner import Scanner, normalize_address
from netcfgctl.core.status import decode
from netcfgctl.transports.base import BLEAdapter

_WRITE_PROPERTIES = frozenset({"write", "write-without-response"})
_NOTIFY_PROPERTIES = frozenset({"notify", "indicate"})
LOGGER = logging.getLogger(__name__)


class SessionListener(Protocol):
    def deliver(self, record: StatusRecord) -> None:
        ...

    def abort(self) -> None:
        ...


class ConnectionHandle:
    """One GATT link. Once invalidated it never becomes active again."""

    def __init__(self, address: str) -> None:
        self.address = address
        self.link: Any = None
        self.write_char: CharacteristicInfo | None = None
        self.status_char: CharacteristicInfo | None = None
        self.active = False
        # Set when the peripheral drops the link before setup completes.
        self.lost = False

    def invalidate(self) -> bool:
        was_active = self.active
        self.active = False
        return was_active

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<ConnectionHandle {self.address} {state}>"


def _find_characteristic(
    characteristics: Iterable[CharacteristicInfo],
    uuid: str,
    properties: frozenset[str],
) -> CharacteristicInfo | None:
    for characteristic in characteristics:
        if characteristic.uuid == uuid and characteristic.properties & properties:
            return characteristic
    return None


class ConnectionManager:
    def __init__(
        self,
        adapter: BLEAdapter,
        scanner: Scanner,
        profile: DeviceProfile,
        sink: EventSink,
    ) -> None:
        self._adapter = adapter
        self._scanner = scanner
        self._profile = profile
        self._sink = sink
        self._lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._handle: ConnectionHandle | None = None
        self._session: SessionListener | None = None

    @property
    def handle(self) -> ConnectionHandle | None:
        if self._handle is not None and self._handle.active:
            return self._handle
        return None

    @property
    def connected(self) -> bool:
        return self.handle is not None

    async def connect(self, address: str) -> ConnectionHandle:
        address = normalize_address(address)
        async with self._lock:
            if self.handle is not None:
                raise AlreadyConnectedError(
                    f"Already connected to {self._handle.address}; disconnect first"
                )
            if not self._scanner.seen(address):
                raise DeviceNotFoundError(f"Device {address} was not seen by the last scan")

            handle = ConnectionHandle(address)
            self._sink.publish(log_event(f"Connecting to {address}"))
            timeout_s = self._profile.timeouts.connect_s
            try:
                await asyncio.wait_for(self._open(handle), timeout_s)
            except asyncio.TimeoutError as exc:
                await self._close_quietly(handle)
                raise ConnectTimeoutError(
                    f"Connecting to {address} took longer than {timeout_s:.1f}s"
                ) from exc

            self._handle = handle
            LOGGER.info("Connected to %s", address)
            self._sink.publish(log_event(f"Connected to {address}"))
            return handle

    async def _open(self, handle: ConnectionHandle) -> None:
        handle.link = await self._adapter.connect(
            handle.address,
            on_disconnect=lambda: self._on_link_lost(handle),
        )
        try:
            characteristics = await self._adapter.discover_characteristics(handle.link)
            handle.write_char, handle.status_char = self._resolve_characteristics(characteristics)
            await self._adapter.subscribe_notify(
                handle.link,
                handle.status_char.uuid,
                lambda data: self._on_notification(handle, data),
            )
            if handle.lost:
                raise ConnectFailedError(f"Device {handle.address} disconnected during connection setup")
        except BaseException:
            await self._close_quietly(handle)
            raise
        handle.active = True

    def _resolve_characteristics(
        self, characteristics: set[CharacteristicInfo]
    ) -> tuple[CharacteristicInfo, CharacteristicInfo]:
        gatt = self._profile.gatt
        if not any(c.service_uuid == gatt.service_uuid for c in characteristics):
            raise CharacteristicMissingError(f"Provisioning service {gatt.service_uuid} not found")

        write_char = _find_characteristic(characteristics, gatt.write_char_uuid, _WRITE_PROPERTIES)
        if write_char is None:
            raise CharacteristicMissingError(f"Write characteristic {gatt.write_char_uuid} not found")

        status_char = _find_characteristic(characteristics, gatt.status_char_uuid, _NOTIFY_PROPERTIES)
        if status_char is None:
            raise CharacteristicMissingError(
                f"Status characteristic {gatt.status_char_uuid} not found or not notifiable"
            )
        return write_char, status_char

    async def _close_quietly(self, handle: ConnectionHandle) -> None:
        link, handle.link = handle.link, None
        handle.invalidate()
        if link is None:
            return
        try:
            await self._adapter.disconnect(link)
        except NetcfgError as exc:
            LOGGER.warning("Closing partial link to %s failed: %s", handle.address, exc)

    async def disconnect(self) -> None:
        async with self._lock:
            handle, self._handle = self._handle, None
            if handle is None or not handle.active:
                return

            if self._session is not None:
                self._session.abort()
            handle.invalidate()
            link, handle.link = handle.link, None
            try:
                await self._adapter.disconnect(link)
            finally:
                LOGGER.info("Disconnected from %s", handle.address)
                self._sink.publish(log_event(f"Disconnected from {handle.address}"))

    def _on_link_lost(self, handle: ConnectionHandle) -> None:
        if not handle.invalidate():
            handle.lost = True
            return
        if self._handle is handle:
            self._handle = None
        LOGGER.warning("Device %s disconnected unexpectedly", handle.address)
        self._sink.publish(log_event(f"Device {handle.address} disconnected unexpectedly"))
        if self._session is not None:
            self._session.abort()

    def _on_notification(self, handle: ConnectionHandle, data: bytes) -> None:
        if not handle.active:
            return
        try:
            record = decode(data)
        except MalformedNotificationError as exc:
            LOGGER.warning("Discarding status notification [%s]: %s", data.hex(), exc)
            self._sink.publish(log_event(f"Discarded malformed status notification [{data.hex()}]"))
            return

        self._sink.publish(status_event(record))
        if self._session is not None:
            self._session.deliver(record)

    def attach_session(self, session: SessionListener) -> None:
        if self.handle is None:
            raise NotConnectedError("No device connected")
        if self._session is not None:
            raise SessionInProgressError("A provisioning session is already running on this connection")
        self._session = session

    def detach_session(self, session: SessionListener) -> None:
        if self._session is session:
            self._session = None

    async def write_command(
        self,
        packets: Sequence[bytes],
        *,
        owner: SessionListener | None = None,
    ) -> None:
        """Write the packets of one framed command back to back.

        While a session is attached only that session may write. Packets of
        concurrent commands never interleave.
        """
        if self._session is not None and owner is not self._session:
            raise SessionInProgressError("A provisioning session owns this connection")
        handle = self.handle
        if handle is None or handle.write_char is None:
            raise NotConnectedError("No device connected")

        write_char = handle.write_char
        response = "write-without-response" not in write_char.properties
        interval_s = self._profile.framing.packet_interval_s
        async with self._write_lock:
            for index, packet in enumerate(packets):
                if index and interval_s:
                    await asyncio.sleep(interval_s)
                if not handle.active:
                    raise NotConnectedError(f"Connection to {handle.address} was lost")
                try:
                    await self._adapter.write_characteristic(
                        handle.link, write_char.uuid, packet, response=response
                    )
                except TransportError as exc:
                    if not handle.active:
                        raise NotConnectedError(f"Connection to {handle.address} was lost") from exc
                    raise
                LOGGER.debug("Wrote packet %s to %s", packet.hex(), write_char.uuid)
