"""chatpicking - QQ group chat reader for NapCat / OneBot v11.

One WebSocket carries both replies to our requests and unsolicited push
events. BusClient demultiplexes them:
- RequestCorrelator matches replies to requests by `echo` token
- CollectionSession accumulates push events for a bounded window

Flows:
- fetch_history(): one request for recent history
- collect_messages(): live collection until deadline or cancel
"""

from .client import BusClient
from .collector import CollectionSession, FinishReason, SessionState
from .config import BusConfig
from .correlator import PendingRequest, RequestCorrelator
from .errors import (
    ChatPickingError,
    ConnectFailed,
    ConnectionLost,
    ConnectTimeout,
    Interrupted,
    MalformedFrame,
    NotConnected,
    RemoteError,
    RequestTimeout,
)
from .flows import collect_messages, fetch_history
from .formatting import extract_history_items, extract_text, format_message
from .report import CollectReport, ErrorReport, FetchReport, MessageRecord

__all__ = [
    # Client
    "BusClient",
    "BusConfig",
    "RequestCorrelator",
    "PendingRequest",
    "CollectionSession",
    "SessionState",
    "FinishReason",
    # Flows
    "fetch_history",
    "collect_messages",
    # Formatting
    "extract_text",
    "format_message",
    "extract_history_items",
    # Reports
    "MessageRecord",
    "CollectReport",
    "FetchReport",
    "ErrorReport",
    # Errors
    "ChatPickingError",
    "ConnectTimeout",
    "ConnectFailed",
    "NotConnected",
    "ConnectionLost",
    "RequestTimeout",
    "RemoteError",
    "Interrupted",
    "MalformedFrame",
]
