"""Message body helpers shared by the fetch and collect flows."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from .report import MessageRecord, iso_utc

logger = logging.getLogger(__name__)


def extract_text(message: Any) -> str:
    """Concatenate the text segments of a message body.

    Non-text segments (images, faces, replies, ...) are skipped.

    Args:
        message: OneBot segment list, e.g. [{"type": "text", "data": {"text": "hi"}}]

    Returns:
        Trimmed text, or "" if there is none
    """
    if not isinstance(message, list):
        return ""
    parts = []
    for seg in message:
        if not isinstance(seg, dict) or seg.get("type") != "text":
            continue
        data = seg.get("data")
        text = data.get("text") if isinstance(data, dict) else None
        parts.append(text if isinstance(text, str) else "")
    return "".join(parts).strip()


def format_message(raw: dict[str, Any]) -> MessageRecord | None:
    """Normalize a raw message event or history item.

    Returns None for messages without text, so pictures and stickers
    never reach a report.
    """
    text = extract_text(raw.get("message"))
    if not text:
        return None

    sender = raw.get("sender")
    if not isinstance(sender, dict):
        sender = {}
    user_id = sender.get("user_id") or None
    if isinstance(user_id, str) and user_id.isdigit():
        user_id = int(user_id)
    name = sender.get("nickname") or sender.get("card") or f"User {user_id or 'unknown'}"

    ts = raw.get("time") or None
    time_str = None
    if isinstance(ts, int | float):
        try:
            time_str = iso_utc(datetime.fromtimestamp(ts, UTC))
        except (ValueError, OverflowError, OSError):
            # Out of range, e.g. epoch milliseconds
            logger.debug(f"Unrepresentable message time {ts!r}")
            if not isinstance(ts, int):
                ts = None
    else:
        ts = None

    return MessageRecord(
        sender=str(name),
        user_id=user_id if isinstance(user_id, int) else None,
        time=time_str,
        timestamp=int(ts) if ts is not None else None,
        content=text,
    )


def extract_history_items(data: Any) -> list[Any]:
    """Pull the item list out of a history response.

    Both shapes are valid: a bare list, or an object whose `messages`
    field holds the list.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        items = data.get("messages")
        if isinstance(items, list):
            return items
    return []
