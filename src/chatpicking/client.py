"""Bus client: one connection, demultiplexed.

Inbound frames are classified and routed by discriminant:
- Responses (carry `echo`) go to the RequestCorrelator
- Push events (carry `post_type`) go to every subscriber
- Everything else is dropped

Usage:
    async with BusClient(BusConfig(url="ws://127.0.0.1:3001")) as client:
        history = await client.get_group_msg_history(123456, count=50)

        unsubscribe = client.subscribe(lambda event: print(event.group_id))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .config import BusConfig
from .correlator import RequestCorrelator
from .errors import ConnectionLost
from .protocol import ActionResponse, PushEvent, classify_frame
from .transport import BaseTransport, RawFrame, WebSocketTransport

logger = logging.getLogger(__name__)

PushHandler = Callable[[PushEvent], Any]
CloseHandler = Callable[[str], Any]


class BusClient:
    """Request/response and push-event access over a single transport.

    The client owns its transport: close() (or leaving the async context)
    always releases the connection.
    """

    def __init__(
        self,
        config: BusConfig | None = None,
        transport: BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings (defaults apply if omitted)
            transport: Pre-built transport; a WebSocketTransport is created if None
        """
        self.config = config or (transport.config if transport else BusConfig())
        self._transport = transport or WebSocketTransport(self.config)
        self._correlator = RequestCorrelator(
            self._transport.send, timeout=self.config.request_timeout
        )
        self._subscribers: list[PushHandler] = []
        self._close_handlers: list[CloseHandler] = []

        self._transport.on_frame(self._route)
        self._transport.on_close(self._handle_close)

    @property
    def transport(self) -> BaseTransport:
        """Access the underlying transport."""
        return self._transport

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    @property
    def is_connected(self) -> bool:
        return self._transport.is_open

    async def connect(self) -> None:
        """Open the connection."""
        await self._transport.connect()

    async def close(self) -> None:
        """Close the connection; outstanding requests fail with ConnectionLost."""
        await self._transport.disconnect()

    async def request(self, action: str, params: dict[str, Any] | None = None) -> Any:
        """Call an API action and return its `data` payload."""
        return await self._correlator.request(action, params)

    async def get_group_msg_history(self, group_id: int, count: int) -> Any:
        """Fetch the latest `count` messages of a group (raw payload)."""
        return await self.request(
            "get_group_msg_history",
            {"group_id": group_id, "count": count},
        )

    def subscribe(self, handler: PushHandler) -> Callable[[], None]:
        """Register a push-event handler.

        Returns:
            Function that removes the handler again
        """
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def on_close(self, handler: CloseHandler) -> Callable[[], None]:
        """Register a callback for connection closure (receives the reason)."""
        self._close_handlers.append(handler)

        def remove() -> None:
            if handler in self._close_handlers:
                self._close_handlers.remove(handler)

        return remove

    def _route(self, raw: RawFrame) -> None:
        """Classify one inbound frame and hand it to its consumer."""
        frame = classify_frame(raw)
        if frame is None:
            return

        if isinstance(frame, ActionResponse):
            self._correlator.resolve(frame)
            return

        # Copy: handlers may unsubscribe while being called
        for handler in list(self._subscribers):
            try:
                handler(frame)
            except Exception:
                logger.exception(f"Push handler failed for {frame.post_type} event")

    def _handle_close(self, reason: str) -> None:
        self._correlator.fail_all(ConnectionLost(reason))
        for handler in list(self._close_handlers):
            try:
                handler(reason)
            except Exception:
                logger.exception("Close handler failed")

    async def __aenter__(self) -> BusClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
