"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from chatmemory.config.schema import ChatMemoryConfig
from chatmemory.memory.schema import Message, MessageRole
from chatmemory.utils.tokens import HeuristicTokenCounter

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _make_message(
    content: str,
    role: MessageRole = MessageRole.USER,
    index: int = 0,
    message_id: str | None = None,
) -> Message:
    kwargs = {}
    if message_id is not None:
        kwargs["id"] = message_id
    return Message(
        role=role,
        content=content,
        timestamp=BASE_TIME + timedelta(seconds=index),
        **kwargs,
    )


@pytest.fixture
def make_message():
    """Factory for messages with deterministic timestamps."""
    return _make_message


@pytest.fixture
def default_config() -> ChatMemoryConfig:
    """Provide a default configuration for tests."""
    return ChatMemoryConfig()


@pytest.fixture
def counter() -> HeuristicTokenCounter:
    """Token counter with one token per character, for easy arithmetic."""
    return HeuristicTokenCounter(chars_per_token=1.0)


@pytest.fixture
def conversation() -> list[Message]:
    """Ten alternating user/assistant messages of 10 characters each."""
    return [
        _make_message(
            f"message {i:02d}",
            role=MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT,
            index=i,
            message_id=f"m{i:02d}",
        )
        for i in range(10)
    ]
