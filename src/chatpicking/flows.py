"""End-to-end flows: one-shot history fetch and live collection.

Each flow owns its own connection and closes it on every exit path.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable, Iterator
from datetime import UTC, datetime

from .client import BusClient
from .collector import CollectionSession, Formatter, SessionState
from .config import BusConfig
from .errors import Interrupted
from .formatting import extract_history_items, format_message
from .report import CollectReport, FetchReport, iso_utc
from .transport import BaseTransport

logger = logging.getLogger(__name__)


async def fetch_history(
    config: BusConfig,
    group_id: int,
    count: int,
    formatter: Formatter = format_message,
    transport: BaseTransport | None = None,
) -> FetchReport:
    """Fetch a group's recent history with a single request.

    Args:
        config: Connection settings
        group_id: Target group
        count: Number of messages to ask for
        formatter: Raw item -> record, None to drop the item
        transport: Transport override (tests); WebSocket if None

    Raises:
        ChatPickingError: On connect, request or remote failure
    """
    start = datetime.now(UTC)
    async with BusClient(config, transport=transport) as client:
        data = await client.get_group_msg_history(group_id, count)

    items = extract_history_items(data)
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        record = formatter(item)
        if record is not None:
            records.append(record)
    logger.info(f"Fetched {len(items)} item(s), kept {len(records)} text message(s)")

    end = datetime.now(UTC)
    return FetchReport(
        group_id=group_id,
        fetched_count=len(records),
        requested_count=count,
        fetch_time=iso_utc(end),
        start_time=iso_utc(start),
        end_time=iso_utc(end),
        messages=tuple(records),
    )


@contextlib.contextmanager
def _on_signals(callback: Callable[[], None]) -> Iterator[None]:
    """Route SIGINT/SIGTERM to callback while the block runs."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not supported on Windows event loops
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, callback)
            installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def collect_messages(
    config: BusConfig,
    group_id: int,
    duration_minutes: float,
    formatter: Formatter = format_message,
    transport: BaseTransport | None = None,
    install_signal_handlers: bool = True,
) -> CollectReport:
    """Collect a group's live messages for a fixed window.

    SIGINT/SIGTERM end the window early; the report then holds whatever
    was collected so far. A signal that arrives while still connecting
    aborts the attempt instead.

    Raises:
        Interrupted: If stopped before the connection opened
        ChatPickingError: If the connection cannot be opened
    """
    session = CollectionSession(group_id, formatter=formatter)
    task = asyncio.current_task()
    assert task is not None
    interrupted = False

    def interrupt() -> None:
        nonlocal interrupted
        if session.state != SessionState.IDLE:
            session.cancel()
        elif not interrupted:
            interrupted = True
            task.cancel()

    signals = _on_signals(interrupt) if install_signal_handlers else contextlib.nullcontext()
    with signals:
        try:
            async with BusClient(config, transport=transport) as client:
                return await session.run(client, duration_minutes * 60)
        except asyncio.CancelledError:
            if not interrupted:
                raise
            task.uncancel()
            raise Interrupted("Interrupted before collection started") from None
