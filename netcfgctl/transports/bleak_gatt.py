"""BLE adapter implementation backed by bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from typing import Any

from netcfgctl.core.errors import (
    AdapterUnavailableError,
    ConnectFailedError,
    TransportError,
    TransportWriteError,
)
from netcfgctl.core.model import AdvertisementReport, CharacteristicInfo
from netcfgctl.core.scanner import normalize_address

LOGGER = logging.getLogger(__name__)


def _import_bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise AdapterUnavailableError(
            "BLE transport requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


class BleakAdapter:
    def __init__(self) -> None:
        # bleak connects faster from a scanned BLEDevice than from a bare address.
        self._devices: dict[str, Any] = {}

    async def start_scan(self, timeout_s: float) -> AsyncGenerator[AdvertisementReport, None]:
        bleak = _import_bleak()
        reports: asyncio.Queue[AdvertisementReport] = asyncio.Queue()

        def _on_detection(device: Any, advertisement: Any) -> None:
            address = normalize_address(device.address)
            self._devices[address] = device
            reports.put_nowait(
                AdvertisementReport(
                    address=address,
                    name=advertisement.local_name or device.name,
                    rssi=advertisement.rssi,
                    manufacturer_data={k: bytes(v) for k, v in advertisement.manufacturer_data.items()},
                    service_data={k.lower(): bytes(v) for k, v in advertisement.service_data.items()},
                )
            )

        scanner = bleak.BleakScanner(detection_callback=_on_detection)
        try:
            await scanner.start()
        except (bleak.exc.BleakError, OSError) as exc:
            raise AdapterUnavailableError(f"Could not start BLE scan: {exc}") from exc

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    report = await asyncio.wait_for(reports.get(), remaining)
                except asyncio.TimeoutError:
                    break
                yield report
        finally:
            try:
                await scanner.stop()
            except (bleak.exc.BleakError, OSError) as exc:
                LOGGER.warning("Stopping BLE scan failed: %s", exc)

    async def connect(self, address: str, *, on_disconnect: Callable[[], None]) -> Any:
        bleak = _import_bleak()
        target = self._devices.get(normalize_address(address), address)
        client = bleak.BleakClient(target, disconnected_callback=lambda _client: on_disconnect())
        try:
            await client.connect()
        except (bleak.exc.BleakError, OSError) as exc:
            raise ConnectFailedError(f"BLE connect failed for {address}: {exc}") from exc
        if not client.is_connected:
            raise ConnectFailedError(f"BLE connect failed for {address}")
        return client

    async def disconnect(self, link: Any) -> None:
        bleak = _import_bleak()
        try:
            await link.disconnect()
        except (bleak.exc.BleakError, OSError) as exc:
            raise TransportError(f"BLE disconnect failed: {exc}") from exc

    async def discover_characteristics(self, link: Any) -> set[CharacteristicInfo]:
        found: set[CharacteristicInfo] = set()
        for service in link.services:
            for characteristic in service.characteristics:
                found.add(
                    CharacteristicInfo(
                        uuid=characteristic.uuid.lower(),
                        service_uuid=service.uuid.lower(),
                        properties=frozenset(characteristic.properties),
                    )
                )
        return found

    async def write_characteristic(self, link: Any, uuid: str, data: bytes, *, response: bool) -> None:
        bleak = _import_bleak()
        try:
            await link.write_gatt_char(uuid, data, response=response)
        except (bleak.exc.BleakError, OSError) as exc:
            raise TransportWriteError(f"BLE GATT write to {uuid} failed: {exc}") from exc

    async def subscribe_notify(self, link: Any, uuid: str, handler: Callable[[bytes], None]) -> None:
        bleak = _import_bleak()

        def _notify_handler(_: Any, data: bytearray) -> None:
            handler(bytes(data))

        try:
            await link.start_notify(uuid, _notify_handler)
        except (bleak.exc.BleakError, OSError) as exc:
            raise ConnectFailedError(f"Could not subscribe to {uuid}: {exc}") from exc
