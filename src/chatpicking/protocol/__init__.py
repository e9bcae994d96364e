"""OneBot v11 wire protocol.

Key concepts:
- ActionRequest: client -> bus call, tagged with an `echo` token
- ActionResponse: bus -> client reply carrying the same `echo`
- PushEvent: bus -> client notification with no `echo`

classify_frame() routes every inbound frame to one of these by
discriminant field.
"""

from .frames import (
    ActionRequest,
    ActionResponse,
    InboundFrame,
    PushEvent,
    classify_frame,
    decode_frame,
)

__all__ = [
    "ActionRequest",
    "ActionResponse",
    "InboundFrame",
    "PushEvent",
    "classify_frame",
    "decode_frame",
]
