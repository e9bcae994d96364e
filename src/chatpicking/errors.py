"""Error taxonomy for connection, request and frame failures.

Transport- and request-level errors abort the enclosing flow and surface
once at the CLI boundary. MalformedFrame never leaves the classifier.
"""

from __future__ import annotations


class ChatPickingError(Exception):
    """Base class for every failure the client reports."""


class ConnectTimeout(ChatPickingError):
    """The connection did not open within the configured bound."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Timed out connecting to {url} after {timeout:g}s")
        self.url = url
        self.timeout = timeout


class ConnectFailed(ChatPickingError):
    """The connection attempt was rejected or errored."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(
            f"Failed to connect to {url}: {reason}. "
            "Check that NapCat is running with the OneBot v11 WebSocket server enabled."
        )
        self.url = url
        self.reason = reason


class NotConnected(ChatPickingError):
    """A frame was sent before the connection opened or after it closed."""

    def __init__(self, message: str = "Transport not connected") -> None:
        super().__init__(message)


class ConnectionLost(ChatPickingError):
    """The connection closed while a request was still outstanding."""

    def __init__(self, reason: str = "connection closed") -> None:
        super().__init__(f"Connection lost: {reason}")
        self.reason = reason


class RequestTimeout(ChatPickingError):
    """No matching response arrived before the request deadline."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Request timed out: {action}")
        self.action = action


class RemoteError(ChatPickingError):
    """The bus answered a request with a non-zero retcode."""

    def __init__(self, action: str, code: int | None, message: str) -> None:
        super().__init__(f"API error [{action}]: retcode={code}, msg={message}")
        self.action = action
        self.code = code
        self.message = message


class MalformedFrame(ChatPickingError):
    """An inbound frame could not be decoded."""


class Interrupted(ChatPickingError):
    """A stop signal arrived before there was anything to report."""
