"""Time-bounded BLE discovery with per-address deduplication."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum

from netcfgctl.core.device_match import report_matches
from netcfgctl.core.errors import InvalidArgumentError, ScanInProgressError
from netcfgctl.core.model import AdvertisementReport, DeviceCandidate, MatchRules
from netcfgctl.transports.base import BLEAdapter

UNKNOWN_DEVICE_NAME = "Unknown"
# Extra time allowed for an adapter stream to wind down after the deadline.
_SCAN_GRACE_S = 1.0
LOGGER = logging.getLogger(__name__)


class ScanState(Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"


class _Sighting:
    __slots__ = ("address", "name", "rssi", "matched")

    def __init__(self, address: str) -> None:
        self.address = address
        self.name: str | None = None
        self.rssi: int | None = None
        self.matched = False

    def update(self, report: AdvertisementReport, rules: MatchRules) -> None:
        if report.name:
            self.name = report.name
        if report.rssi is not None:
            self.rssi = report.rssi
        self.matched = self.matched or report_matches(report, rules)

    def candidate(self) -> DeviceCandidate:
        return DeviceCandidate(
            id=self.address,
            name=self.name or UNKNOWN_DEVICE_NAME,
            rssi=self.rssi,
            matched=self.matched,
        )


def normalize_address(address: str) -> str:
    """Canonical form used to key devices across scans and connects."""
    return address.strip().upper()


def _sort_key(candidate: DeviceCandidate) -> tuple[bool, int]:
    return (candidate.rssi is None, -(candidate.rssi or 0))


class Scanner:
    def __init__(self, adapter: BLEAdapter, rules: MatchRules) -> None:
        self._adapter = adapter
        self._rules = rules
        self.state = ScanState.IDLE
        self.last_results: tuple[DeviceCandidate, ...] = ()

    def seen(self, address: str) -> bool:
        wanted = normalize_address(address)
        return any(candidate.id == wanted for candidate in self.last_results)

    async def scan(self, timeout_s: float) -> list[DeviceCandidate]:
        if timeout_s <= 0:
            raise InvalidArgumentError(f"Scan timeout must be positive, got {timeout_s}")
        if self.state is ScanState.IN_PROGRESS:
            raise ScanInProgressError("A scan is already running")

        self.state = ScanState.IN_PROGRESS
        sightings: dict[str, _Sighting] = {}
        try:
            try:
                await asyncio.wait_for(self._collect(timeout_s, sightings), timeout_s + _SCAN_GRACE_S)
            except asyncio.TimeoutError:
                LOGGER.warning("BLE scan stream overran its %.1fs window; using partial results", timeout_s)
        finally:
            self.state = ScanState.IDLE

        results = sorted((s.candidate() for s in sightings.values()), key=_sort_key)
        self.last_results = tuple(results)
        LOGGER.debug("Scan finished with %d device(s)", len(results))
        return results

    async def _collect(self, timeout_s: float, sightings: dict[str, _Sighting]) -> None:
        async with contextlib.aclosing(self._adapter.start_scan(timeout_s)) as reports:
            async for report in reports:
                address = normalize_address(report.address)
                sighting = sightings.get(address)
                if sighting is None:
                    sighting = sightings[address] = _Sighting(address)
                sighting.update(report, self._rules)
