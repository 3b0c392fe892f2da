from __future__ import annotations

import asyncio
import time

import pytest
from fake_adapter import FakeAdapter

from netcfgctl.core.errors import AdapterUnavailableError, InvalidArgumentError, ScanInProgressError
from netcfgctl.core.model import AdvertisementReport, MatchRules
from netcfgctl.core.scanner import Scanner, ScanState

RULES = MatchRules(name_contains=("netcfg",), data_markers=(bytes.fromhex("ab0a"),))


def test_duplicate_address_keeps_latest_rssi() -> None:
    adapter = FakeAdapter(
        reports=[
            AdvertisementReport(address="AA:AA:AA:AA:AA:01", name="NETCFG-1", rssi=-80),
            AdvertisementReport(address="AA:AA:AA:AA:AA:01", name="NETCFG-1", rssi=-60),
        ]
    )
    scanner = Scanner(adapter, RULES)

    devices = asyncio.run(scanner.scan(3.0))

    assert len(devices) == 1
    assert devices[0].id == "AA:AA:AA:AA:AA:01"
    assert devices[0].rssi == -60
    assert devices[0].matched


def test_unmatched_devices_are_tagged_not_filtered() -> None:
    adapter = FakeAdapter(
        reports=[
            AdvertisementReport(address="01", name="Speaker", rssi=-40),
            AdvertisementReport(address="02", name="netcfg-plug", rssi=-70),
            AdvertisementReport(address="03", rssi=None),
        ]
    )
    devices = asyncio.run(Scanner(adapter, RULES).scan(1.0))

    assert [d.id for d in devices] == ["01", "02", "03"]
    assert [d.matched for d in devices] == [False, True, False]
    assert devices[2].name == "Unknown"


def test_later_report_without_name_keeps_name() -> None:
    adapter = FakeAdapter(
        reports=[
            AdvertisementReport(address="01", name="NETCFG-1", rssi=-70),
            AdvertisementReport(address="01", name=None, rssi=-65),
        ]
    )
    devices = asyncio.run(Scanner(adapter, RULES).scan(1.0))
    assert devices[0].name == "NETCFG-1"
    assert devices[0].rssi == -65


def test_zero_devices_is_not_an_error() -> None:
    scanner = Scanner(FakeAdapter(reports=[]), RULES)
    assert asyncio.run(scanner.scan(0.5)) == []
    assert scanner.state is ScanState.IDLE


@pytest.mark.parametrize("timeout_s", [0, -1.0])
def test_non_positive_timeout_rejected(timeout_s: float) -> None:
    with pytest.raises(InvalidArgumentError):
        asyncio.run(Scanner(FakeAdapter(), RULES).scan(timeout_s))


def test_adapter_unavailable_propagates_and_resets_state() -> None:
    scanner = Scanner(FakeAdapter(available=False), RULES)
    with pytest.raises(AdapterUnavailableError):
        asyncio.run(scanner.scan(1.0))
    assert scanner.state is ScanState.IDLE


def test_overlapping_scan_is_rejected() -> None:
    class SlowAdapter(FakeAdapter):
        async def start_scan(self, timeout_s: float):
            await asyncio.sleep(timeout_s)
            for report in self.reports:
                yield report

    scanner = Scanner(SlowAdapter(), RULES)

    async def _run() -> list:
        first = asyncio.create_task(scanner.scan(0.2))
        await asyncio.sleep(0.01)
        with pytest.raises(ScanInProgressError):
            await scanner.scan(0.2)
        return await first

    devices = asyncio.run(_run())
    assert len(devices) == 1


def test_misbehaving_stream_is_bounded_and_closed() -> None:
    stopped: list[bool] = []

    class EndlessAdapter(FakeAdapter):
        async def start_scan(self, timeout_s: float):
            try:
                yield AdvertisementReport(address="01", name="NETCFG", rssi=-50)
                await asyncio.sleep(3600)
            finally:
                stopped.append(True)

    scanner = Scanner(EndlessAdapter(), RULES)
    started = time.monotonic()
    devices = asyncio.run(scanner.scan(0.2))

    assert time.monotonic() - started < 2.0
    assert [d.id for d in devices] == ["01"]
    assert scanner.seen("01")
    assert stopped == [True]


def test_addresses_are_normalized_on_ingest() -> None:
    adapter = FakeAdapter(
        reports=[
            AdvertisementReport(address="aa:bb:cc:11:22:33", name="NETCFG-1", rssi=-70),
            AdvertisementReport(address="AA:BB:CC:11:22:33", rssi=-60),
        ]
    )
    scanner = Scanner(adapter, RULES)

    devices = asyncio.run(scanner.scan(1.0))

    assert [d.id for d in devices] == ["AA:BB:CC:11:22:33"]
    assert devices[0].name == "NETCFG-1"
    assert devices[0].rssi == -60
    assert scanner.seen("aa:bb:cc:11:22:33")
