from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from fake_adapter import (
    ADDRESS,
    SERVICE_UUID,
    STATUS_UUID,
    WRITE_UUID,
    FakeAdapter,
    RecordingSink,
    fast_profile,
)

from netcfgctl.core.connection import ConnectionManager
from netcfgctl.core.errors import (
    AlreadyConnectedError,
    CharacteristicMissingError,
    ConnectFailedError,
    ConnectTimeoutError,
    DeviceNotFoundError,
    NotConnectedError,
)
from netcfgctl.core.framing import build_packets
from netcfgctl.core.model import CharacteristicInfo, EventKind
from netcfgctl.core.scanner import Scanner


def _manager(adapter: FakeAdapter, sink: RecordingSink | None = None, profile=None) -> ConnectionManager:
    profile = profile or fast_profile()
    scanner = Scanner(adapter, profile.match)
    return ConnectionManager(adapter, scanner, profile, sink or RecordingSink())


async def _scan_and_connect(manager: ConnectionManager):
    await manager._scanner.scan(0.5)
    return await manager.connect(ADDRESS)


def test_connect_resolves_characteristics() -> None:
    adapter = FakeAdapter()
    sink = RecordingSink()
    manager = _manager(adapter, sink)

    handle = asyncio.run(_scan_and_connect(manager))

    assert handle.active
    assert handle.write_char.uuid == WRITE_UUID
    assert handle.status_char.uuid == STATUS_UUID
    assert manager.connected
    assert f"Connected to {ADDRESS}" in sink.messages()


def test_connect_unseen_address_fails() -> None:
    manager = _manager(FakeAdapter())
    with pytest.raises(DeviceNotFoundError):
        asyncio.run(manager.connect(ADDRESS))


def test_second_connect_fails_with_already_connected() -> None:
    adapter = FakeAdapter()
    manager = _manager(adapter)

    async def _run() -> None:
        first = await _scan_and_connect(manager)
        with pytest.raises(AlreadyConnectedError):
            await manager.connect(ADDRESS)
        assert manager.handle is first

    asyncio.run(_run())
    assert adapter.connect_calls == [ADDRESS]


def test_transport_failure_surfaces_as_connect_failed() -> None:
    manager = _manager(FakeAdapter(connect_error=ConnectFailedError("radio said no")))
    with pytest.raises(ConnectFailedError):
        asyncio.run(_scan_and_connect(manager))
    assert not manager.connected


def test_slow_connect_times_out() -> None:
    profile = fast_profile()
    profile = replace(profile, timeouts=replace(profile.timeouts, connect_s=0.1))
    manager = _manager(FakeAdapter(connect_delay_s=5.0), profile=profile)

    with pytest.raises(ConnectTimeoutError):
        asyncio.run(_scan_and_connect(manager))
    assert not manager.connected


def test_missing_status_characteristic_tears_down_link() -> None:
    adapter = FakeAdapter(
        characteristics={
            CharacteristicInfo(uuid=WRITE_UUID, service_uuid=SERVICE_UUID, properties=frozenset({"write"})),
            CharacteristicInfo(uuid=STATUS_UUID, service_uuid=SERVICE_UUID, properties=frozenset({"read"})),
        }
    )
    manager = _manager(adapter)

    with pytest.raises(CharacteristicMissingError):
        asyncio.run(_scan_and_connect(manager))
    assert adapter.disconnect_calls == 1
    assert not manager.connected


def test_missing_service_is_reported() -> None:
    adapter = FakeAdapter(
        characteristics={
            CharacteristicInfo(uuid=WRITE_UUID, service_uuid="0000180f-0000-1000-8000-00805f9b34fb", properties=frozenset({"write"})),
        }
    )
    with pytest.raises(CharacteristicMissingError, match="service"):
        asyncio.run(_scan_and_connect(_manager(adapter)))


def test_disconnect_without_connection_is_noop() -> None:
    adapter = FakeAdapter()
    asyncio.run(_manager(adapter).disconnect())
    assert adapter.disconnect_calls == 0


def test_disconnect_is_idempotent() -> None:
    adapter = FakeAdapter()
    manager = _manager(adapter)

    async def _run() -> None:
        await _scan_and_connect(manager)
        await manager.disconnect()
        await manager.disconnect()

    asyncio.run(_run())
    assert adapter.disconnect_calls == 1
    assert not manager.connected


def test_peripheral_disconnect_invalidates_handle() -> None:
    adapter = FakeAdapter()
    sink = RecordingSink()
    manager = _manager(adapter, sink)

    async def _run() -> None:
        handle = await _scan_and_connect(manager)
        adapter.drop_link()
        assert not handle.active
        with pytest.raises(NotConnectedError):
            await manager.write_command([b"\x01"])

    asyncio.run(_run())
    assert f"Device {ADDRESS} disconnected unexpectedly" in sink.messages()


def test_reconnect_after_disconnect() -> None:
    adapter = FakeAdapter()
    manager = _manager(adapter)

    async def _run() -> None:
        await _scan_and_connect(manager)
        await manager.disconnect()
        await manager.connect(ADDRESS)

    asyncio.run(_run())
    assert manager.connected
    assert adapter.connect_calls == [ADDRESS, ADDRESS]


def test_notifications_are_published_and_malformed_ones_dropped() -> None:
    adapter = FakeAdapter()
    sink = RecordingSink()
    manager = _manager(adapter, sink)

    async def _run() -> None:
        await _scan_and_connect(manager)
        adapter.notify(b"\x01")
        adapter.notify(b"\x01\x00")

    asyncio.run(_run())
    statuses = [e.payload for e in sink.events if e.kind is EventKind.STATUS_CHANGE]
    assert [s.symbolic_name for s in statuses] == ["READY"]
    assert "Discarded malformed status notification [01]" in sink.messages()


def test_write_uses_without_response_when_supported() -> None:
    adapter = FakeAdapter(
        characteristics={
            CharacteristicInfo(
                uuid=WRITE_UUID,
                service_uuid=SERVICE_UUID,
                properties=frozenset({"write", "write-without-response"}),
            ),
            CharacteristicInfo(uuid=STATUS_UUID, service_uuid=SERVICE_UUID, properties=frozenset({"indicate"})),
        }
    )
    manager = _manager(adapter)

    async def _run() -> None:
        await _scan_and_connect(manager)
        await manager.write_command([b"\x01\x02", b"\x02\x02"])

    asyncio.run(_run())
    assert adapter.writes == [
        (WRITE_UUID, b"\x01\x02", False),
        (WRITE_UUID, b"\x02\x02", False),
    ]


def test_drop_during_setup_fails_connect() -> None:
    class FlakyAdapter(FakeAdapter):
        drops = 1

        async def discover_characteristics(self, link):
            if self.drops:
                self.drops -= 1
                self.drop_link()
            return await super().discover_characteristics(link)

    adapter = FlakyAdapter()
    manager = _manager(adapter)

    async def _run():
        with pytest.raises(ConnectFailedError, match="during connection setup"):
            await _scan_and_connect(manager)
        assert not manager.connected
        with pytest.raises(NotConnectedError):
            await manager.write_command([b"\x01"])
        return await manager.connect(ADDRESS)

    handle = asyncio.run(_run())
    assert handle.active
    assert adapter.disconnect_calls == 1
    assert adapter.connect_calls == [ADDRESS, ADDRESS]


def test_concurrent_commands_do_not_interleave_packets() -> None:
    adapter = FakeAdapter()
    profile = fast_profile()
    profile = replace(profile, framing=replace(profile.framing, packet_interval_s=0.01))
    manager = _manager(adapter, profile=profile)
    first = build_packets(0xA002, b"a" * 36, profile.framing)
    second = build_packets(0xA003, b"b" * 36, profile.framing)

    async def _run() -> None:
        await _scan_and_connect(manager)
        await asyncio.gather(manager.write_command(first), manager.write_command(second))

    asyncio.run(_run())
    assert len(first) == 3
    assert [data for _, data, _ in adapter.writes] == first + second


def test_connect_accepts_lower_case_address() -> None:
    adapter = FakeAdapter()
    manager = _manager(adapter)

    async def _run():
        await manager._scanner.scan(0.5)
        return await manager.connect(ADDRESS.lower())

    handle = asyncio.run(_run())
    assert handle.address == ADDRESS
    assert adapter.connect_calls == [ADDRESS]
