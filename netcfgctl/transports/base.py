"""Transport interfaces."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any, Protocol

from netcfgctl.core.model import AdvertisementReport, CharacteristicInfo


class BLEAdapter(Protocol):
    def start_scan(self, timeout_s: float) -> AsyncGenerator[AdvertisementReport, None]:
        """Yield advertisement reports until `timeout_s` elapses.

        Raises AdapterUnavailableError when no radio can be used.
        """

    async def connect(self, address: str, *, on_disconnect: Callable[[], None]) -> Any:
        """Open a GATT link; `on_disconnect` fires when the link drops."""

    async def disconnect(self, link: Any) -> None:
        ...

    async def discover_characteristics(self, link: Any) -> set[CharacteristicInfo]:
        ...

    async def write_characteristic(self, link: Any, uuid: str, data: bytes, *, response: bool) -> None:
        ...

    async def subscribe_notify(self, link: Any, uuid: str, handler: Callable[[bytes], None]) -> None:
        """Deliver every notification on `uuid` to `handler` on the event loop."""
