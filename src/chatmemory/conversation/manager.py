"""Conversation façade: message log, indexing and prompt building."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

from chatmemory.config.schema import ChunkingConfig, ConversationConfig, MemoryConfig
from chatmemory.conversation.follow_up import FollowUpGenerator
from chatmemory.embeddings.pipeline import EmbeddingPipeline
from chatmemory.errors import (
    ChatMemoryError,
    CollaboratorTimeoutError,
    PersistenceError,
    VectorStoreError,
)
from chatmemory.memory.log import MessageLog
from chatmemory.memory.manager import MemoryContext, MemoryManager
from chatmemory.memory.schema import InclusionTrace, Message, MessageRole, PromptPayload
from chatmemory.memory.strategies import ContextStrategy, SlidingWindowStrategy
from chatmemory.processing.chunker import MessageChunker
from chatmemory.utils.tokens import HeuristicTokenCounter, TokenCounter

if TYPE_CHECKING:
    from chatmemory.embeddings.client import EmbeddingService
    from chatmemory.persistence.base import MessagePersistence
    from chatmemory.vector.store import VectorEntry, VectorStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUMMARY_HEADER = "[Summary of earlier conversation]"
RECALL_HEADER = "[Recalled context]"
CONVERSATION_HEADER = "[Conversation]"


@dataclass
class ConversationStats:
    """Aggregate counts for a conversation."""

    total_messages: int
    user_messages: int
    assistant_messages: int
    system_messages: int
    total_tokens: int
    vector_count: int | None = None
    last_build_tokens: int | None = None
    index_failures: int = 0
    oldest_message: datetime | None = None
    newest_message: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_messages": self.total_messages,
            "user_messages": self.user_messages,
            "assistant_messages": self.assistant_messages,
            "system_messages": self.system_messages,
            "total_tokens": self.total_tokens,
            "vector_count": self.vector_count,
            "last_build_tokens": self.last_build_tokens,
            "index_failures": self.index_failures,
            "oldest_message": self.oldest_message.isoformat() if self.oldest_message else None,
            "newest_message": self.newest_message.isoformat() if self.newest_message else None,
        }


class ConversationManager:
    """Top-level API for one conversation session.

    Appending a message stores it durably first (persistence, then the
    in-process log) and indexes it for recall afterwards. Indexing is best
    effort: a failure never removes the message from the log, but is
    re-raised when ``strict_indexing`` is set. Prompt building delegates to
    :class:`MemoryManager` and renders the result as labelled sections.

    Not safe for concurrent use; one owner per instance.
    """

    def __init__(
        self,
        token_counter: TokenCounter | None = None,
        strategy: ContextStrategy | None = None,
        persistence: "MessagePersistence | None" = None,
        vector_store: "VectorStore | None" = None,
        embedding_service: "EmbeddingService | None" = None,
        embedding_pipeline: EmbeddingPipeline | None = None,
        follow_up_generator: FollowUpGenerator | None = None,
        memory_config: MemoryConfig | None = None,
        chunking_config: ChunkingConfig | None = None,
        conversation_config: ConversationConfig | None = None,
        on_message_stored: Callable[[Message], None] | None = None,
        on_summary_created: Callable[[Message], None] | None = None,
    ):
        """Initialize conversation manager.

        Args:
            token_counter: Token estimator (heuristic default)
            strategy: Context strategy (sliding window default)
            persistence: Optional durable message store
            vector_store: Optional vector store for recall
            embedding_service: Optional embedding service (wrapped in a pipeline)
            embedding_pipeline: Pre-built pipeline, overrides embedding_service
            follow_up_generator: Optional follow-up question generator
            memory_config: Recall and window settings
            chunking_config: Chunking settings for indexing
            conversation_config: Indexing and timeout behaviour
            on_message_stored: Called after each successful append
            on_summary_created: Called when a prompt build produced summaries
        """
        self.token_counter = token_counter or HeuristicTokenCounter()
        self.memory_config = memory_config or MemoryConfig()
        self.chunking_config = chunking_config or ChunkingConfig()
        self.config = conversation_config or ConversationConfig()

        if embedding_pipeline is None and embedding_service is not None:
            embedding_pipeline = EmbeddingPipeline(embedding_service)

        self.persistence = persistence
        self.vector_store = vector_store
        self.embedding_pipeline = embedding_pipeline
        self.follow_up_generator = follow_up_generator
        self.on_message_stored = on_message_stored
        self.on_summary_created = on_summary_created

        self.chunker = MessageChunker(self.token_counter)
        self.memory = MemoryManager(
            strategy=strategy
            or SlidingWindowStrategy(lookback_messages=self.memory_config.lookback_messages),
            token_counter=self.token_counter,
            config=self.memory_config,
            vector_store=vector_store,
            embedding_pipeline=embedding_pipeline,
        )

        self.indexing_enabled = vector_store is not None and embedding_pipeline is not None

        self.log = MessageLog()
        self._last_build_tokens: int | None = None
        self._index_failures = 0

    @property
    def messages(self) -> list[Message]:
        """Conversation messages, oldest first."""
        return self.log.snapshot()

    def get_message(self, message_id: str) -> Message | None:
        return self.log.get(message_id)

    # Write path

    async def append_message(self, message: Message) -> Message:
        """Append a message to the conversation.

        Args:
            message: Message to append

        Returns:
            The appended message

        Raises:
            ValueError: If a message with the same ID was already appended
            PersistenceError: If persistence fails (the log is left unchanged)
            EmbeddingError: If embedding fails and ``strict_indexing`` is set
                (the message stays in the log)
            VectorStoreError: If the vector store fails and ``strict_indexing``
                is set (the message stays in the log)
        """
        if message.id in self.log:
            msg = f"Message {message.id} already appended"
            raise ValueError(msg)

        if self.persistence is not None:
            persistence = self.persistence
            await self._call_persistence(lambda: persistence.save_messages([message]), "save")
        self.log.append(message)

        index_error: ChatMemoryError | None = None
        try:
            await self._index_message(message)
        except ChatMemoryError as e:
            index_error = e
            self._index_failures += 1
            logger.exception("Indexing failed for message %s: %s", message.id, e)

        self._notify(self.on_message_stored, message)

        if index_error is not None and self.config.strict_indexing:
            raise index_error
        return message

    async def append_user_message(
        self,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        return await self.append_message(
            Message(role=MessageRole.USER, content=content, metadata=metadata)
        )

    async def append_assistant_message(
        self,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        return await self.append_message(
            Message(role=MessageRole.ASSISTANT, content=content, metadata=metadata)
        )

    async def append_system_message(
        self,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        return await self.append_message(
            Message(role=MessageRole.SYSTEM, content=content, metadata=metadata)
        )

    async def _index_message(self, message: Message) -> None:
        entries = await self._embed_message(message)
        if entries:
            self._call_vector_store(lambda store: store.insert(entries), "insert")

    async def _embed_message(self, message: Message) -> list["VectorEntry"]:
        if not self.indexing_enabled or not message.content.strip():
            return []
        if message.role == MessageRole.SYSTEM and not self.config.index_system_messages:
            return []

        chunks = await self.chunker.chunk_message(message, self.chunking_config)
        return await self.embedding_pipeline.embed_chunks(  # type: ignore[union-attr]
            chunks,
            role=message.role.value,
            metadata=message.metadata,
            timestamp=message.timestamp,
        )

    # Read path

    async def build_prompt(
        self,
        client_token_budget: int,
        query: str | None = None,
    ) -> PromptPayload:
        """Build a prompt that fits the client's token budget.

        Args:
            client_token_budget: Maximum estimated tokens of selected content
            query: Recall query (defaults to the latest user message)

        Returns:
            PromptPayload; empty text and zero tokens for an empty conversation
        """
        context = await self.memory.build_context(
            self.log.snapshot(), client_token_budget, query=query
        )

        summary = "\n\n".join(s.summary for s in context.summaries) or None
        trace = InclusionTrace(
            strategy_used=context.strategy_result.name,
            token_budget=client_token_budget,
            selected_message_ids=[m.id for m in context.included],
            excluded_message_ids=[m.id for m in context.strategy_result.excluded],
            recalled_entry_ids=[item.entry_id for item in context.recalled],
            summary_ids=[s.chunk_id for s in context.summaries],
            recall_query=context.recall_query,
        )
        self._last_build_tokens = context.estimated_tokens

        if summary is not None and self.on_summary_created is not None:
            summary_message = Message(
                role=MessageRole.SUMMARY,
                content=summary,
                metadata={
                    "summary_ids": trace.summary_ids,
                    "tokens_before": sum(s.token_estimate_before for s in context.summaries),
                    "tokens_after": sum(s.token_estimate_after for s in context.summaries),
                },
            )
            self._notify(self.on_summary_created, summary_message)

        return PromptPayload(
            prompt_text=self.render_prompt(context),
            included_messages=list(context.included),
            estimated_tokens=context.estimated_tokens,
            summary=summary,
            recalled=list(context.recalled),
            trace=trace,
        )

    @staticmethod
    def render_prompt(context: MemoryContext) -> str:
        """Render summaries, recalled context and messages as labelled sections."""
        sections = []
        if context.summaries:
            body = "\n".join(s.summary for s in context.summaries)
            sections.append(f"{SUMMARY_HEADER}\n{body}")
        if context.recalled:
            body = "\n".join(
                f"- {item.role or 'unknown'}: {item.content}" for item in context.recalled
            )
            sections.append(f"{RECALL_HEADER}\n{body}")
        if context.included:
            body = "\n".join(f"{m.role.value}: {m.content}" for m in context.included)
            sections.append(f"{CONVERSATION_HEADER}\n{body}")
        return "\n\n".join(sections)

    # Lifecycle

    def register_follow_up_generator(self, generator: FollowUpGenerator) -> None:
        self.follow_up_generator = generator

    async def generate_follow_up_questions(self, max_questions: int | None = None) -> list[str]:
        """Suggest follow-up questions.

        Returns an empty list when no generator is configured or it fails.
        """
        if self.follow_up_generator is None:
            return []
        if max_questions is None:
            max_questions = self.config.max_follow_up_questions

        try:
            return await self.follow_up_generator.generate(self.log.snapshot(), max_questions)
        except Exception as e:
            logger.warning("Follow-up generation failed: %s", e)
            return []

    def get_stats(self) -> ConversationStats:
        """Compute statistics from the in-process state."""
        messages = self.log.snapshot()
        return ConversationStats(
            total_messages=len(messages),
            user_messages=sum(1 for m in messages if m.role == MessageRole.USER),
            assistant_messages=sum(1 for m in messages if m.role == MessageRole.ASSISTANT),
            system_messages=sum(1 for m in messages if m.role == MessageRole.SYSTEM),
            total_tokens=sum(self.token_counter.estimate_tokens(m.content) for m in messages),
            vector_count=self.vector_store.count() if self.vector_store is not None else None,
            last_build_tokens=self._last_build_tokens,
            index_failures=self._index_failures,
            oldest_message=messages[0].timestamp if messages else None,
            newest_message=messages[-1].timestamp if messages else None,
        )

    async def clear(self) -> None:
        """Clear the log, the persistence backend and the vector store.

        Either everything is cleared or nothing is: if the vector store
        fails after persistence was cleared, persistence is restored.
        """
        snapshot = self.log.snapshot()
        persistence = self.persistence

        if persistence is not None:
            await self._call_persistence(persistence.clear, "clear")

        if self.vector_store is not None:
            try:
                self._call_vector_store(lambda store: store.clear(), "clear")
            except ChatMemoryError:
                if persistence is not None and snapshot:
                    await self._call_persistence(
                        lambda: persistence.save_messages(snapshot), "restore"
                    )
                raise

        self.log.clear()
        self._last_build_tokens = None
        logger.info("Cleared conversation (%d messages)", len(snapshot))

    async def delete_messages(self, message_ids: Sequence[str]) -> int:
        """Delete messages from persistence, the log and the vector store.

        Vector entries are matched by their ``message_id`` metadata, so
        entries written by an earlier process are removed too.

        Returns:
            Number of messages removed from the log

        Raises:
            PersistenceError: If persistence fails (nothing is removed)
            VectorStoreError: If the vector store fails (the messages are
                already gone from persistence and the log, and recall skips
                their leftover entries)
        """
        ids = [message_id for message_id in message_ids if message_id in self.log]
        if not ids:
            return 0

        if self.persistence is not None:
            persistence = self.persistence
            await self._call_persistence(lambda: persistence.delete_messages(ids), "delete")

        removed = len(self.log.remove(ids))

        for message_id in ids:
            self._call_vector_store(
                lambda store, mid=message_id: store.delete_where({"message_id": mid}),
                "delete",
            )
        return removed

    async def load(self) -> int:
        """Replace the log with the messages held by persistence.

        Returns:
            Number of messages loaded (0 without persistence)
        """
        if self.persistence is None:
            return 0
        messages = await self._call_persistence(self.persistence.load_messages, "load")
        self.log.clear()
        self.log.extend(messages)
        logger.info("Loaded %d messages from persistence", len(messages))
        return len(messages)

    async def reindex(self) -> int:
        """Rebuild vector entries for every message in the log.

        Useful after :meth:`load` or when recall is enabled on an existing
        conversation. Each message is embedded before its old entries are
        replaced, so a message that fails to embed keeps its previous
        entries. Failures are skipped and counted.

        Returns:
            Number of messages indexed
        """
        if not self.indexing_enabled:
            return 0

        indexed = 0
        for message in self.log:
            try:
                entries = await self._embed_message(message)
                self._call_vector_store(
                    lambda store, mid=message.id: store.delete_where({"message_id": mid}),
                    "delete",
                )
                if entries:
                    self._call_vector_store(lambda store, e=entries: store.insert(e), "insert")
            except ChatMemoryError as e:
                self._index_failures += 1
                logger.warning("Reindexing failed for message %s: %s", message.id, e)
                continue
            if entries:
                indexed += 1
        return indexed

    # Helpers

    async def _call_persistence(self, factory: Callable[[], Awaitable[T]], operation: str) -> T:
        timeout = self.config.collaborator_timeout
        try:
            if timeout is None:
                return await factory()
            return await asyncio.wait_for(factory(), timeout=timeout)
        except ChatMemoryError:
            raise
        except asyncio.TimeoutError as e:
            msg = f"Persistence {operation} exceeded {timeout}s"
            raise CollaboratorTimeoutError(msg) from e
        except Exception as e:
            raise PersistenceError(f"Persistence {operation} failed: {e}") from e

    def _call_vector_store(self, action: Callable[["VectorStore"], None], operation: str) -> None:
        if self.vector_store is None:
            return
        try:
            action(self.vector_store)
        except ChatMemoryError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Vector store {operation} failed: {e}") from e

    @staticmethod
    def _notify(callback: Callable[[Message], None] | None, message: Message) -> None:
        if callback is None:
            return
        try:
            callback(message)
        except Exception:
            logger.exception("Callback %r failed for message %s", callback, message.id)
