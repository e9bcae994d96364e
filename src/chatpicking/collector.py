"""Time-bounded collection of live group messages.

State machine:
    IDLE --start()--> COLLECTING --deadline | cancel() | connection lost--> FINALIZED

The first of deadline, cancellation and connection loss wins. FINALIZED
is terminal: the buffer is sealed and the report is built exactly once.
Partial results after a cancel are a normal outcome, not a failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .formatting import format_message
from .protocol import PushEvent
from .report import CollectReport, MessageRecord, iso_utc

logger = logging.getLogger(__name__)

Formatter = Callable[[dict[str, Any]], MessageRecord | None]


class SessionState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    FINALIZED = "finalized"


class FinishReason(str, Enum):
    DEADLINE = "deadline"
    CANCELLED = "cancelled"
    CONNECTION_LOST = "connection_lost"


def _minutes(seconds: float) -> int | float:
    minutes = seconds / 60
    return int(minutes) if minutes.is_integer() else minutes


class CollectionSession:
    """Accumulates one group's messages for a fixed window.

    Events are kept in arrival order, never re-sorted by timestamp.
    Events from other groups, non-message events and messages without
    text are ignored.
    """

    def __init__(self, group_id: int, formatter: Formatter = format_message) -> None:
        self.group_id = group_id
        self._formatter = formatter
        self._state = SessionState.IDLE
        self._records: list[MessageRecord] = []
        self._duration: float = 0.0
        self._start_time: datetime | None = None
        self._end_time: datetime | None = None
        self._finish_reason: FinishReason | None = None
        self._report: CollectReport | None = None
        self._done = asyncio.Event()
        self._deadline: asyncio.TimerHandle | None = None
        self._detach: list[Callable[[], None]] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def records(self) -> tuple[MessageRecord, ...]:
        """Snapshot of the buffer."""
        return tuple(self._records)

    @property
    def finish_reason(self) -> FinishReason | None:
        return self._finish_reason

    @property
    def report(self) -> CollectReport | None:
        """The final report, once finalized."""
        return self._report

    def start(self, client: Any, duration: float) -> None:
        """Begin collecting from a connected BusClient.

        The deadline is armed here, so the window closes on time whether
        or not anyone is awaiting wait().

        Args:
            client: Anything with subscribe() and on_close() (a BusClient)
            duration: Window length in seconds

        Raises:
            RuntimeError: If the session was already started
        """
        if self._state != SessionState.IDLE:
            raise RuntimeError(f"Session already {self._state.value}")

        loop = asyncio.get_running_loop()
        self._state = SessionState.COLLECTING
        self._duration = duration
        self._start_time = datetime.now(UTC)
        self._detach = [
            client.subscribe(self.accept),
            client.on_close(self._on_connection_closed),
        ]
        logger.info(
            f"Collecting messages from group {self.group_id} for {duration / 60:g} minute(s)"
        )

        if duration <= 0:
            self.finalize(FinishReason.DEADLINE)
        else:
            self._deadline = loop.call_later(duration, self.finalize, FinishReason.DEADLINE)

    def accept(self, event: PushEvent) -> bool:
        """Offer one push event to the session.

        Returns:
            True if the event was appended to the buffer
        """
        if self._state != SessionState.COLLECTING:
            return False
        if not event.is_group_message or event.group_id != self.group_id:
            return False

        record = self._formatter(event.payload)
        if record is None:
            return False

        self._records.append(record)
        logger.info(
            f"Collected message #{len(self._records)}: {record.sender}: {record.content[:50]}"
        )
        return True

    def cancel(self) -> None:
        """Stop early; wait() returns the partial report."""
        self.finalize(FinishReason.CANCELLED)

    async def wait(self) -> CollectReport:
        """Suspend until the window closes and return the report."""
        if self._state == SessionState.IDLE:
            raise RuntimeError("Session not started")

        await self._done.wait()
        assert self._report is not None
        return self._report

    async def run(self, client: Any, duration: float) -> CollectReport:
        """start() then wait()."""
        self.start(client, duration)
        return await self.wait()

    def finalize(self, reason: FinishReason) -> CollectReport | None:
        """Seal the buffer and build the report. Only the first call counts."""
        if self._state != SessionState.COLLECTING:
            return self._report

        self._state = SessionState.FINALIZED
        self._finish_reason = reason
        self._end_time = datetime.now(UTC)
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
        for detach in self._detach:
            detach()
        self._detach = []

        assert self._start_time is not None
        self._report = CollectReport(
            group_id=self.group_id,
            collected_count=len(self._records),
            duration_minutes=_minutes(self._duration),
            start_time=iso_utc(self._start_time),
            end_time=iso_utc(self._end_time),
            finish_reason=reason.value,
            messages=tuple(self._records),
        )
        self._done.set()
        logger.info(
            f"Collection finished ({reason.value}): {len(self._records)} message(s)"
        )
        return self._report

    def _on_connection_closed(self, reason: str) -> None:
        logger.warning(f"Connection closed during collection: {reason}")
        self.finalize(FinishReason.CONNECTION_LOST)
