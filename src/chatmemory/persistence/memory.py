"""In-memory message persistence."""

from collections.abc import Sequence

from chatmemory.memory.schema import Message


class InMemoryMessageStore:
    """Keeps messages in a dict ordered by first insertion.

    Saving a message whose ID already exists replaces it in place.
    """

    def __init__(self) -> None:
        self._messages: dict[str, Message] = {}

    async def save_messages(self, messages: Sequence[Message]) -> None:
        for message in messages:
            self._messages[message.id] = message

    async def load_messages(self) -> list[Message]:
        return list(self._messages.values())

    async def delete_messages(self, message_ids: Sequence[str]) -> None:
        for message_id in message_ids:
            self._messages.pop(message_id, None)

    async def clear(self) -> None:
        self._messages.clear()
