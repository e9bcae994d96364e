"""Request/response correlation over a shared connection.

Every outgoing request carries a fresh `echo` token. Inbound responses
are matched to their waiter by that token, so any number of requests can
be outstanding at once and resolve in whatever order the bus answers.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .errors import ChatPickingError, ConnectionLost, RemoteError, RequestTimeout
from .protocol import ActionRequest, ActionResponse

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 15.0


@dataclass
class PendingRequest:
    """A request waiting for its response."""

    token: str
    action: str
    future: asyncio.Future[Any]
    deadline: float  # loop time


class RequestCorrelator:
    """Matches responses to outstanding requests by echo token.

    Each waiter is a single-assignment future. Whichever of response,
    timeout or connection loss comes first settles it; anything arriving
    afterwards is dropped.
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[None]],
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """Initialize the correlator.

        Args:
            send: Async function writing one text frame to the connection
            timeout: Default per-request deadline in seconds
        """
        self._send = send
        self._timeout = timeout
        self._counter = itertools.count(1)
        self._pending: dict[str, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting."""
        return len(self._pending)

    def is_pending(self, token: str) -> bool:
        return token in self._pending

    def next_token(self) -> str:
        """Mint a token unique for this correlator's lifetime."""
        return f"req_{next(self._counter)}_{int(time.time() * 1000)}"

    async def request(
        self,
        action: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for its response payload.

        Args:
            action: API action name (e.g. "get_group_msg_history")
            params: Action parameters
            timeout: Override for the default deadline

        Returns:
            The response's `data` field

        Raises:
            RemoteError: If the bus answers with a non-zero retcode
            RequestTimeout: If no response arrives before the deadline
            ConnectionLost: If the connection closes first
            NotConnected: If the connection is not open
        """
        timeout = self._timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        token = self.next_token()

        pending = PendingRequest(
            token=token,
            action=action,
            future=loop.create_future(),
            deadline=loop.time() + timeout,
        )
        self._pending[token] = pending

        try:
            frame = ActionRequest(action=action, params=params or {}, echo=token)
            await self._send(frame.to_wire())
            logger.debug(f"Sent {action} ({token})")

            return await asyncio.wait_for(pending.future, timeout=timeout)
        except TimeoutError:
            logger.warning(f"Request {action} ({token}) timed out after {timeout:g}s")
            raise RequestTimeout(action) from None
        finally:
            self._pending.pop(token, None)

    def resolve(self, response: ActionResponse) -> bool:
        """Deliver a response to its waiter.

        Returns:
            True if a live waiter took the response, False if it was
            unknown, already settled or timed out
        """
        pending = self._pending.pop(response.echo, None)
        if pending is None:
            logger.debug(f"No pending request for echo {response.echo}, dropping")
            return False
        if pending.future.done():
            return False

        if response.ok:
            pending.future.set_result(response.data)
        else:
            pending.future.set_exception(
                RemoteError(pending.action, response.retcode, response.error_message)
            )
        return True

    def fail_all(self, exc: ChatPickingError | None = None) -> int:
        """Reject every outstanding request.

        Returns:
            Number of requests rejected
        """
        exc = exc or ConnectionLost()
        failed = 0
        for pending in list(self._pending.values()):
            if not pending.future.done():
                pending.future.set_exception(exc)
                failed += 1
        self._pending.clear()
        if failed:
            logger.warning(f"Failed {failed} pending request(s): {exc}")
        return failed
