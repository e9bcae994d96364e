"""In-memory transport for tests and offline runs.

Usage:
    transport = MemoryTransport()
    transport.feed({"post_type": "message", "message_type": "group", ...})

    transport = MemoryTransport(responder=lambda req: {
        "echo": req["echo"], "retcode": 0, "data": {"messages": []},
    })
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from ..config import BusConfig
from ..errors import ConnectionLost
from .base import BaseTransport, RawFrame

# Receives the decoded request; returns a reply frame or None for no reply
Responder = Callable[[dict[str, Any]], dict[str, Any] | RawFrame | None]


@dataclass
class _Drop:
    reason: str


class MemoryTransport(BaseTransport):
    """Transport with no I/O.

    - feed(): inject an inbound frame (dicts are JSON-encoded)
    - drop(): simulate the remote end closing
    - sent / sent_requests: everything the client sent
    - responder: optional callback answering each sent request
    - connect_error / connect_delay: simulate dial failures and slow opens
    """

    def __init__(
        self,
        config: BusConfig | None = None,
        responder: Responder | None = None,
    ) -> None:
        super().__init__(config or BusConfig(url="memory://bus"))
        self.responder = responder
        self.connect_error: Exception | None = None
        self.connect_delay: float = 0.0
        self.sent: list[str] = []
        self._inbound: asyncio.Queue[RawFrame | _Drop] = asyncio.Queue()

    @property
    def sent_requests(self) -> list[dict[str, Any]]:
        """Sent frames, decoded."""
        return [json.loads(text) for text in self.sent]

    def feed(self, frame: dict[str, Any] | RawFrame) -> None:
        """Queue one inbound frame."""
        if isinstance(frame, dict):
            frame = json.dumps(frame, ensure_ascii=False)
        self._inbound.put_nowait(frame)

    def drop(self, reason: str = "closed by remote") -> None:
        """Close from the remote side once queued frames are delivered."""
        self._inbound.put_nowait(_Drop(reason))

    async def flush(self) -> None:
        """Wait until every queued frame has been delivered."""
        await self._inbound.join()

    async def _do_connect(self) -> None:
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error

    async def _do_disconnect(self) -> None:
        pass

    async def _do_send(self, text: str) -> None:
        self.sent.append(text)
        if self.responder is None:
            return
        reply = self.responder(json.loads(text))
        if reply is not None:
            self.feed(reply)

    async def _receive_frames(self) -> AsyncIterator[RawFrame]:
        while True:
            item = await self._inbound.get()
            if isinstance(item, _Drop):
                self._inbound.task_done()
                raise ConnectionLost(item.reason)
            yield item
            self._inbound.task_done()
