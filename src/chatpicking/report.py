"""Report models written to stdout (success) or stderr (failure)."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def iso_utc(dt: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a `Z` suffix."""
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_json(self) -> str:
        """Render as indented JSON, keeping non-ASCII text readable."""
        return self.model_dump_json(indent=2)


class MessageRecord(_Report):
    """One accepted chat message, normalized."""

    sender: str
    user_id: int | None = None
    time: str | None = None  # ISO-8601
    timestamp: int | None = None  # epoch seconds
    content: str


class CollectReport(_Report):
    """Result of a live collection window."""

    success: bool = True
    group_id: int
    collected_count: int
    duration_minutes: int | float
    start_time: str
    end_time: str
    finish_reason: str
    messages: tuple[MessageRecord, ...] = Field(default_factory=tuple)


class FetchReport(_Report):
    """Result of a one-shot history fetch."""

    success: bool = True
    group_id: int
    fetched_count: int
    requested_count: int
    fetch_time: str
    start_time: str
    end_time: str
    messages: tuple[MessageRecord, ...] = Field(default_factory=tuple)


class ErrorReport(_Report):
    """Failure object; no partial results are ever attached."""

    success: bool = False
    error: str

    def to_json(self) -> str:
        return self.model_dump_json()
