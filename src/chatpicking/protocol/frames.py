"""OneBot v11 wire frames and the inbound frame classifier.

One websocket carries two kinds of inbound frames, interleaved:
- Responses: replies to our requests, tagged with the `echo` we sent
- Push events: unsolicited notifications carrying `post_type`

Outgoing requests:
    {"action": "get_group_msg_history", "params": {...}, "echo": "req_1_1700000000000"}

Responses:
    {"status": "ok", "retcode": 0, "data": {...}, "echo": "req_1_1700000000000"}

Push events:
    {"post_type": "message", "message_type": "group", "group_id": 123, ...}
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import MalformedFrame

logger = logging.getLogger(__name__)


class ActionRequest(BaseModel):
    """An outgoing API call."""

    action: str
    params: dict[str, Any] = Field(default_factory=dict)
    echo: str

    def to_wire(self) -> str:
        """Serialize to a single text frame."""
        return self.model_dump_json()


class ActionResponse(BaseModel):
    """A reply to an ActionRequest, matched by `echo`."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    echo: str
    retcode: int | None = None
    status: str | None = None
    data: Any = None
    msg: str | None = None
    message: str | None = None
    wording: str | None = None

    @property
    def ok(self) -> bool:
        """True if the bus reports success."""
        return self.retcode == 0

    @property
    def error_message(self) -> str:
        """Best available failure description."""
        return self.msg or self.message or self.wording or "unknown"


class PushEvent(BaseModel):
    """An unsolicited notification from the bus.

    `detail_type` is the subtype named after the post type, e.g.
    `message_type` for messages or `notice_type` for notices.
    `group_id` is the scope the event belongs to, if any.
    """

    post_type: str
    detail_type: str | None = None
    group_id: int | None = None
    time: int | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_group_message(self) -> bool:
        return self.post_type == "message" and self.detail_type == "group"

    @classmethod
    def from_wire(cls, obj: dict[str, Any]) -> PushEvent:
        post_type = str(obj["post_type"])
        detail = obj.get(f"{post_type}_type")
        return cls(
            post_type=post_type,
            detail_type=str(detail) if detail is not None else None,
            group_id=_as_int(obj.get("group_id")),
            time=_as_int(obj.get("time")),
            payload=obj,
        )


InboundFrame = ActionResponse | PushEvent


def _as_int(value: Any) -> int | None:
    """Lenient integer coercion; group ids sometimes arrive as strings."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    """Decode one raw frame into a JSON object.

    Raises:
        MalformedFrame: If the frame is not UTF-8 JSON or not an object
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes | bytearray) else raw
        obj = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedFrame(f"Undecodable frame: {e}") from e
    if not isinstance(obj, dict):
        raise MalformedFrame(f"Expected JSON object, got {type(obj).__name__}")
    return obj


def classify_frame(raw: str | bytes) -> InboundFrame | None:
    """Tag one inbound frame as a response, a push event, or neither.

    Frames that cannot be decoded, or match neither shape, return None.
    The bus emits frames this client does not understand; they are
    dropped here rather than raised.
    """
    try:
        obj = decode_frame(raw)
    except MalformedFrame as e:
        logger.debug(f"Discarding frame: {e}")
        return None

    try:
        if obj.get("echo") is not None:
            return ActionResponse.model_validate(obj)
        if obj.get("post_type") is not None:
            return PushEvent.from_wire(obj)
    except ValidationError as e:
        logger.debug(f"Discarding invalid frame: {e.error_count()} validation error(s)")
        return None

    logger.debug(f"Discarding unrecognized frame with keys {sorted(obj)[:5]}")
    return None
