"""Connection settings for the message-bus client."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

DEFAULT_URL = "ws://127.0.0.1:3001"


@dataclass
class BusConfig:
    """Configuration for one bus connection.

    The CLI fills this from options and environment variables
    (NAPCAT_WS, NAPCAT_TOKEN). Library callers build it directly.
    """

    url: str = DEFAULT_URL
    access_token: str | None = None

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    request_timeout: float = 15.0

    # Websocket keepalive; None disables pings
    ping_interval: float | None = 30.0

    @property
    def endpoint_url(self) -> str:
        """URL actually dialled, with the access token appended when set."""
        if not self.access_token:
            return self.url
        sep = "&" if urlsplit(self.url).query else "?"
        return f"{self.url}{sep}access_token={self.access_token}"

    @property
    def redacted_url(self) -> str:
        """Endpoint URL safe for log lines."""
        if not self.access_token:
            return self.url
        sep = "&" if urlsplit(self.url).query else "?"
        return f"{self.url}{sep}access_token=***"
