"""Durable message stores used behind the conversation log."""

from chatmemory.persistence.base import MessagePersistence
from chatmemory.persistence.memory import InMemoryMessageStore
from chatmemory.persistence.sqlite import SQLiteMessageStore

__all__ = ["InMemoryMessageStore", "MessagePersistence", "SQLiteMessageStore"]
