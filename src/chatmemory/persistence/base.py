"""Message persistence interface."""

from collections.abc import Sequence
from typing import Protocol

from chatmemory.memory.schema import Message


class MessagePersistence(Protocol):
    """Protocol for durable message stores.

    Implementations raise :class:`~chatmemory.errors.PersistenceError` on
    backend failures.
    """

    async def save_messages(self, messages: Sequence[Message]) -> None:
        """Append or upsert messages."""
        ...

    async def load_messages(self) -> list[Message]:
        """Load all messages ordered oldest to newest."""
        ...

    async def delete_messages(self, message_ids: Sequence[str]) -> None:
        """Delete messages by ID (unknown IDs are ignored)."""
        ...

    async def clear(self) -> None:
        """Delete every stored message."""
        ...
