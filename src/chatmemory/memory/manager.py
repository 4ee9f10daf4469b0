"""Combine strategy selection with vector recall under one token budget."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from chatmemory.config.schema import MemoryConfig
from chatmemory.errors import InvalidConfigurationError
from chatmemory.memory.schema import Message, MessageRole, RecalledItem, StrategyResult, SummaryInfo
from chatmemory.memory.strategies import ContextStrategy
from chatmemory.utils.tokens import TokenCounter

if TYPE_CHECKING:
    from chatmemory.embeddings.pipeline import EmbeddingPipeline
    from chatmemory.vector.store import VectorStore

logger = logging.getLogger(__name__)

# Candidates fetched per requested recall slot, to survive dedupe and budget filtering
_OVERFETCH = 4


@dataclass
class MemoryContext:
    """Everything selected for one prompt build."""

    strategy_result: StrategyResult
    recalled: list[RecalledItem]
    estimated_tokens: int
    token_budget: int
    recall_query: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def included(self) -> list[Message]:
        return self.strategy_result.included

    @property
    def summaries(self) -> list[SummaryInfo]:
        return self.strategy_result.summaries


class MemoryManager:
    """High-level context selection with optional semantic recall.

    The context strategy picks verbatim messages. When both a vector store
    and an embedding pipeline are configured, part of the budget is held
    back and spent on older content recalled by similarity to the query.
    """

    def __init__(
        self,
        strategy: ContextStrategy,
        token_counter: TokenCounter,
        config: MemoryConfig | None = None,
        vector_store: "VectorStore | None" = None,
        embedding_pipeline: "EmbeddingPipeline | None" = None,
    ):
        """Initialize memory manager.

        Args:
            strategy: Context strategy selecting verbatim messages
            token_counter: Estimator used for all budget accounting
            config: Recall settings (defaults if None)
            vector_store: Optional vector store for recall
            embedding_pipeline: Optional pipeline used to embed recall queries
        """
        self.strategy = strategy
        self.token_counter = token_counter
        self.config = config or MemoryConfig()
        self.vector_store = vector_store
        self.embedding_pipeline = embedding_pipeline

        # Recall needs both components
        self.recall_enabled = vector_store is not None and embedding_pipeline is not None

    async def build_context(
        self,
        messages: Sequence[Message],
        token_budget: int,
        query: str | None = None,
    ) -> MemoryContext:
        """Select context for a prompt.

        Args:
            messages: Full conversation, oldest first
            token_budget: Maximum estimated tokens for the whole context
            query: Recall query (defaults to the latest user message)

        Returns:
            MemoryContext with strategy result and recalled items

        Raises:
            InvalidConfigurationError: If token_budget is negative
            EmbeddingError: If the configured embedding service fails
        """
        if token_budget < 0:
            msg = f"token_budget must be non-negative, got {token_budget}"
            raise InvalidConfigurationError(msg)

        wants_recall = (
            self.recall_enabled
            and self.config.recall_top_k > 0
            and self.config.max_recall_tokens > 0
        )
        reserve = 0
        if wants_recall:
            reserve = min(
                int(token_budget * self.config.recall_reserve_ratio),
                self.config.max_recall_tokens,
            )

        result = await self.strategy.apply(messages, token_budget - reserve, self.token_counter)

        used = sum(self.token_counter.estimate_tokens(m.content) for m in result.included)
        used += sum(self.token_counter.estimate_tokens(s.summary) for s in result.summaries)

        recalled: list[RecalledItem] = []
        recall_query = None
        if wants_recall:
            recall_query = query if query is not None else self._latest_user_content(messages)
            allowance = min(self.config.max_recall_tokens, token_budget - used)
            if recall_query and allowance > 0:
                recalled = await self.recall(
                    recall_query,
                    allowance,
                    exclude_message_ids={m.id for m in result.included},
                    known_message_ids={m.id for m in messages},
                )

        estimated = used + sum(item.estimated_tokens for item in recalled)
        metadata = {
            "strategy": result.name,
            "original_count": len(messages),
            "included_count": len(result.included),
            "excluded_count": len(result.excluded),
            "summary_count": len(result.summaries),
            "recalled_count": len(recalled),
            "recall_reserve": reserve,
        }
        logger.debug("Built context: %s tokens=%d/%d", metadata, estimated, token_budget)

        return MemoryContext(
            strategy_result=result,
            recalled=recalled,
            estimated_tokens=estimated,
            token_budget=token_budget,
            recall_query=recall_query,
            metadata=metadata,
        )

    async def recall(
        self,
        query: str,
        max_tokens: int,
        exclude_message_ids: set[str] | None = None,
        known_message_ids: set[str] | None = None,
    ) -> list[RecalledItem]:
        """Recall indexed content similar to a query.

        Args:
            query: Query text to embed
            max_tokens: Token allowance for the recalled items
            exclude_message_ids: Messages already in the prompt
            known_message_ids: Messages still in the conversation; entries of
                any other message are stale and skipped (None disables)

        Returns:
            Up to ``recall_top_k`` items, in chronological order

        Raises:
            RuntimeError: If recall is not enabled
        """
        if not self.recall_enabled:
            msg = "Recall not enabled. Provide vector_store and embedding_pipeline."
            raise RuntimeError(msg)

        exclude = exclude_message_ids or set()
        vector = await self.embedding_pipeline.embed_query(query)  # type: ignore[union-attr]
        hits = self.vector_store.query(  # type: ignore[union-attr]
            vector,
            k=self.config.recall_top_k * _OVERFETCH,
            min_similarity=self.config.min_similarity,
        )

        items: list[RecalledItem] = []
        used = 0
        for hit in hits:
            message_id = hit.entry.metadata.get("message_id")
            if message_id in exclude:
                continue
            if (
                known_message_ids is not None
                and message_id is not None
                and message_id not in known_message_ids
            ):
                continue
            tokens = self.token_counter.estimate_tokens(hit.entry.content)
            if used + tokens > max_tokens:
                continue
            items.append(
                RecalledItem(
                    entry_id=hit.entry.id,
                    message_id=message_id,
                    role=hit.entry.metadata.get("role"),
                    content=hit.entry.content,
                    similarity=hit.similarity,
                    estimated_tokens=tokens,
                    timestamp=hit.entry.timestamp,
                    chunk_index=int(hit.entry.metadata.get("chunk_index", 0)),
                )
            )
            used += tokens
            if len(items) >= self.config.recall_top_k:
                break

        items.sort(key=_recall_order)
        return items

    @staticmethod
    def _latest_user_content(messages: Sequence[Message]) -> str | None:
        for message in reversed(messages):
            if message.role == MessageRole.USER and message.content.strip():
                return message.content
        return None


def _recall_order(item: RecalledItem) -> tuple[float, str, int]:
    timestamp = item.timestamp.timestamp() if item.timestamp else 0.0
    return (timestamp, item.message_id or "", item.chunk_index)
