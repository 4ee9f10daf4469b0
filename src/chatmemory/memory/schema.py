"""Data models for conversation memory."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    """Generate a fresh, never-reused message ID."""
    return uuid.uuid4().hex


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    SUMMARY = "summary"  # Generated summary of earlier messages


class Message(BaseModel):
    """An immutable conversation message."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] | None = None

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        # Naive datetimes are taken to be UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def copy_with(
        self,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "Message":
        """Return a copy with new content and/or metadata.

        The ``id``, ``role`` and ``timestamp`` are preserved.
        """
        update: dict[str, Any] = {}
        if content is not None:
            update["content"] = content
        if metadata is not None:
            update["metadata"] = metadata
        return self.model_copy(update=update)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls.model_validate(data)


@dataclass(frozen=True)
class SummaryInfo:
    """Summary of a run of excluded messages."""

    chunk_id: str
    summary: str
    token_estimate_before: int
    token_estimate_after: int


@dataclass
class StrategyResult:
    """Partition of a message sequence produced by a context strategy."""

    included: list[Message]
    excluded: list[Message]
    summaries: list[SummaryInfo]
    name: str


@dataclass
class RecalledItem:
    """Older content recalled from the vector index."""

    entry_id: str
    message_id: str | None
    role: str | None
    content: str
    similarity: float
    estimated_tokens: int
    timestamp: datetime | None = None
    chunk_index: int = 0


@dataclass
class InclusionTrace:
    """Record of the decisions that produced a prompt."""

    strategy_used: str
    token_budget: int
    selected_message_ids: list[str] = field(default_factory=list)
    excluded_message_ids: list[str] = field(default_factory=list)
    recalled_entry_ids: list[str] = field(default_factory=list)
    summary_ids: list[str] = field(default_factory=list)
    recall_query: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class PromptPayload:
    """Final prompt ready for a generation client."""

    prompt_text: str
    included_messages: list[Message]
    estimated_tokens: int
    summary: str | None = None
    recalled: list[RecalledItem] = field(default_factory=list)
    trace: InclusionTrace | None = None
