"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from chatpicking.config import BusConfig
from chatpicking.transport import MemoryTransport


def _group_message(
    text: str | None = "hello",
    group_id: int = 123456,
    user_id: int | None = 42,
    nickname: str | None = "alice",
    time: int | None = 1700000000,
    segments: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if segments is None:
        segments = [{"type": "text", "data": {"text": text}}] if text is not None else []
    sender: dict[str, Any] = {}
    if nickname is not None:
        sender["nickname"] = nickname
    if user_id is not None:
        sender["user_id"] = user_id
    return {
        "post_type": "message",
        "message_type": "group",
        "group_id": group_id,
        "sender": sender,
        "time": time,
        "message": segments,
    }


@pytest.fixture
def group_message() -> Callable[..., dict[str, Any]]:
    """Factory for raw group message events."""
    return _group_message


@pytest.fixture
def config() -> BusConfig:
    """Config with short timeouts for tests."""
    return BusConfig(url="memory://bus", connect_timeout=1.0, request_timeout=1.0)


@pytest.fixture
def transport(config: BusConfig) -> MemoryTransport:
    """Unconnected in-memory transport."""
    return MemoryTransport(config)
