"""In-process message log for the active session."""

from collections.abc import Iterable, Iterator

from chatmemory.memory.schema import Message


class MessageLog:
    """Ordered, append-only sequence of messages with lookup by ID.

    Messages are kept in insertion order. Removal happens only through
    :meth:`remove` or :meth:`clear`.
    """

    def __init__(self, messages: Iterable[Message] | None = None):
        self._messages: list[Message] = []
        self._by_id: dict[str, Message] = {}
        if messages:
            self.extend(messages)

    def append(self, message: Message) -> None:
        """Append a message.

        Raises:
            ValueError: If a message with the same ID is already present
        """
        if message.id in self._by_id:
            msg = f"Message {message.id} is already in the log"
            raise ValueError(msg)
        self._messages.append(message)
        self._by_id[message.id] = message

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.append(message)

    def get(self, message_id: str) -> Message | None:
        return self._by_id.get(message_id)

    def remove(self, message_ids: Iterable[str]) -> list[Message]:
        """Remove messages by ID.

        Args:
            message_ids: IDs to remove (unknown IDs are ignored)

        Returns:
            The removed messages, in log order
        """
        ids = set(message_ids)
        removed = [m for m in self._messages if m.id in ids]
        if removed:
            self._messages = [m for m in self._messages if m.id not in ids]
            for message in removed:
                del self._by_id[message.id]
        return removed

    def clear(self) -> None:
        self._messages.clear()
        self._by_id.clear()

    def snapshot(self) -> list[Message]:
        """Return a copy of the messages in chronological order."""
        return list(self._messages)

    def last(self, role: str | None = None) -> Message | None:
        """Return the newest message, optionally restricted to a role."""
        for message in reversed(self._messages):
            if role is None or message.role == role:
                return message
        return None

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._by_id

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)
