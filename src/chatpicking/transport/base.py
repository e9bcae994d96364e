"""Transport abstraction for the bus connection.

A transport owns exactly one duplex stream. It knows nothing about frame
contents: raw inbound frames go to a single registered consumer in
arrival order, and outgoing text frames are sent fire-and-forget.

Implementations provide the wire specifics:
- WebSocketTransport: real network connection
- MemoryTransport: in-process bus for tests
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from enum import Enum
from typing import Any

from ..config import BusConfig
from ..errors import (
    ChatPickingError,
    ConnectFailed,
    ConnectionLost,
    ConnectTimeout,
    NotConnected,
)

logger = logging.getLogger(__name__)

RawFrame = str | bytes
FrameCallback = Callable[[RawFrame], None]
CloseCallback = Callable[[str], None]


class ConnectionState(str, Enum):
    """Connection lifecycle."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


class BaseTransport(ABC):
    """Base class for transports.

    Provides:
    - State management with a bounded connect
    - Background reader task delivering frames to one consumer
    - A closure notification fired at most once per opened connection

    A closed transport never reconnects on its own; callers must call
    connect() again.
    """

    def __init__(self, config: BusConfig):
        self.config = config
        self._state = ConnectionState.IDLE
        self._frame_callback: FrameCallback | None = None
        self._close_callback: CloseCallback | None = None
        self._close_notified = False
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    def on_frame(self, callback: FrameCallback) -> None:
        """Register the consumer of inbound frames (replaces any previous one)."""
        self._frame_callback = callback

    def on_close(self, callback: CloseCallback) -> None:
        """Register the closure callback; it receives a reason string."""
        self._close_callback = callback

    async def connect(self) -> None:
        """Open the connection within config.connect_timeout.

        Raises:
            ConnectTimeout: If the connection does not open in time
            ConnectFailed: If the connection attempt errors
        """
        async with self._lock:
            if self._state == ConnectionState.OPEN:
                return

            self._state = ConnectionState.CONNECTING
            url = self.config.redacted_url
            timeout = self.config.connect_timeout
            try:
                await asyncio.wait_for(self._do_connect(), timeout=timeout)
            except TimeoutError as e:
                self._state = ConnectionState.FAILED
                raise ConnectTimeout(url, timeout) from e
            except asyncio.CancelledError:
                self._state = ConnectionState.CLOSED
                raise
            except ChatPickingError:
                self._state = ConnectionState.FAILED
                raise
            except Exception as e:
                self._state = ConnectionState.FAILED
                raise ConnectFailed(url, str(e) or type(e).__name__) from e

            self._state = ConnectionState.OPEN
            self._close_notified = False
            self._reader_task = asyncio.create_task(
                self._read_loop(), name=f"{self.__class__.__name__}-reader"
            )
            logger.info(f"Connected to {url}")

    async def disconnect(self) -> None:
        """Close the connection. Safe to call in any state."""
        async with self._lock:
            if self._state != ConnectionState.OPEN:
                return

            self._state = ConnectionState.CLOSED

            if self._reader_task:
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
                self._reader_task = None

            await self._do_disconnect()
            logger.info(f"Disconnected from {self.config.redacted_url}")
            self._notify_closed("closed by client")

    async def send(self, text: str) -> None:
        """Send one text frame.

        Raises:
            NotConnected: If the connection is not open
        """
        if self._state != ConnectionState.OPEN:
            raise NotConnected(f"Cannot send while {self._state.value}")
        await self._do_send(text)

    async def _read_loop(self) -> None:
        """Background task delivering inbound frames in arrival order."""
        reason = "closed by remote"
        try:
            async for raw in self._receive_frames():
                self._dispatch(raw)
        except ConnectionLost as e:
            reason = e.reason
        except Exception as e:
            logger.error(f"Read loop error: {e}")
            reason = f"receive error: {e}"

        # Stream ended without a local disconnect
        if self._state == ConnectionState.OPEN:
            self._state = ConnectionState.CLOSED
            self._reader_task = None
            logger.warning(f"Connection closed: {reason}")
            try:
                await self._do_disconnect()
            except Exception as e:
                logger.debug(f"Cleanup after remote close failed: {e}")
            self._notify_closed(reason)

    def _dispatch(self, raw: RawFrame) -> None:
        if self._frame_callback is None:
            logger.debug("No frame consumer registered, dropping frame")
            return
        try:
            self._frame_callback(raw)
        except Exception:
            logger.exception("Frame consumer failed")

    def _notify_closed(self, reason: str) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        if self._close_callback is not None:
            try:
                self._close_callback(reason)
            except Exception:
                logger.exception("Close callback failed")

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    async def _do_send(self, text: str) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def _receive_frames(self) -> AsyncIterator[RawFrame]:
        """Yield raw inbound frames. Must be an async generator.

        Ends normally on a clean close; raises ConnectionLost otherwise.
        """
        ...

    async def __aenter__(self) -> BaseTransport:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()
