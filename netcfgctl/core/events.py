"""Event sinks carrying log lines and status changes to front ends."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Protocol

from netcfgctl.core.model import Event, EventKind, StatusRecord

LOGGER = logging.getLogger(__name__)


class EventSink(Protocol):
    def publish(self, event: Event) -> None:
        """Deliver one event; must not block the caller."""


def log_event(message: str) -> Event:
    return Event(timestamp=time.time(), kind=EventKind.LOG, payload=message)


def status_event(record: StatusRecord) -> Event:
    return Event(timestamp=time.time(), kind=EventKind.STATUS_CHANGE, payload=record)


def format_event(event: Event) -> str:
    if event.kind is EventKind.STATUS_CHANGE:
        return f"Status notification: {event.payload.describe()}"
    return str(event.payload)


class LoggingEventSink:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER

    def publish(self, event: Event) -> None:
        self._logger.info(format_event(event))


class QueueEventSink:
    """Buffers events on an asyncio queue for a consumer on the same loop."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)

    def publish(self, event: Event) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            LOGGER.warning("Event queue full, dropping %s event", event.kind.value)


class FanoutEventSink:
    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self._sinks = tuple(sinks)

    def publish(self, event: Event) -> None:
        for sink in self._sinks:
            sink.publish(event)
