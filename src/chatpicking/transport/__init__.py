"""Transports for the bus connection.

- BaseTransport: state machine, reader task, closure notification
- WebSocketTransport: network connection via `websockets`
- MemoryTransport: in-memory bus for tests
"""

from .base import BaseTransport, ConnectionState, RawFrame
from .memory import MemoryTransport
from .websocket import WebSocketTransport

__all__ = [
    "BaseTransport",
    "ConnectionState",
    "MemoryTransport",
    "RawFrame",
    "WebSocketTransport",
]
