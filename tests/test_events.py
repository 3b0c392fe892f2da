from __future__ import annotations

import asyncio
import logging

import pytest

from netcfgctl.core.events import (
    FanoutEventSink,
    LoggingEventSink,
    QueueEventSink,
    format_event,
    log_event,
    status_event,
)
from netcfgctl.core.model import EventKind
from netcfgctl.core.status import decode


def test_status_event_carries_record() -> None:
    record = decode(b"\x01\x04")
    event = status_event(record)
    assert event.kind is EventKind.STATUS_CHANGE
    assert event.payload is record
    assert format_event(event) == "Status notification: PROVISION_SUCCESS (0x0104)"


def test_logging_sink_writes_log_lines(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="netcfgctl.core.events"):
        LoggingEventSink().publish(log_event("Connected to AA"))
    assert "Connected to AA" in caplog.text


def test_queue_sink_and_fanout() -> None:
    async def _run():
        first, second = QueueEventSink(), QueueEventSink(maxsize=1)
        fanout = FanoutEventSink([first, second])
        fanout.publish(log_event("one"))
        fanout.publish(log_event("two"))
        return first.queue, second.queue

    first, second = asyncio.run(_run())
    assert [first.get_nowait().payload, first.get_nowait().payload] == ["one", "two"]
    assert second.qsize() == 1
