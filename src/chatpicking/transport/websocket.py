"""WebSocket transport to a OneBot v11 endpoint (e.g. NapCat)."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from ..config import BusConfig
from ..errors import ConnectionLost, NotConnected
from .base import BaseTransport, RawFrame

logger = logging.getLogger(__name__)


def _describe_close(exc: ConnectionClosed) -> str:
    """Human-readable close reason from a websockets exception."""
    rcvd = exc.rcvd
    if rcvd is None:
        return "connection dropped without close frame"
    if rcvd.reason:
        return f"code {rcvd.code}: {rcvd.reason}"
    return f"code {rcvd.code}"


class WebSocketTransport(BaseTransport):
    """Transport over one websocket.

    Wire format: one JSON object per text frame, both directions.
    The access token, when configured, travels as a query parameter.
    """

    def __init__(self, config: BusConfig | None = None):
        super().__init__(config or BusConfig())
        self._ws: Any = None  # websockets ClientConnection

    async def _do_connect(self) -> None:
        self._ws = await websockets.connect(
            self.config.endpoint_url,
            ping_interval=self.config.ping_interval,
            # Bounded by BaseTransport.connect instead
            open_timeout=None,
            # History batches can be large
            max_size=None,
        )

    async def _do_disconnect(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def _do_send(self, text: str) -> None:
        if self._ws is None:
            raise NotConnected("WebSocket not connected")
        try:
            await self._ws.send(text)
        except ConnectionClosed as e:
            raise ConnectionLost(_describe_close(e)) from e

    async def _receive_frames(self) -> AsyncIterator[RawFrame]:
        if self._ws is None:
            raise NotConnected("WebSocket not connected")
        try:
            async for data in self._ws:
                yield data
        except ConnectionClosed as e:
            raise ConnectionLost(_describe_close(e)) from e
