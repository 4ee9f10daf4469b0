"""Factory functions for assembling a conversation manager from configuration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatmemory.config.schema import ChatMemoryConfig
from chatmemory.conversation.follow_up import HeuristicFollowUpGenerator
from chatmemory.conversation.manager import ConversationManager
from chatmemory.embeddings.hashing import HashingEmbedding
from chatmemory.embeddings.ollama import OllamaEmbedding
from chatmemory.embeddings.pipeline import EmbeddingPipeline
from chatmemory.embeddings.sentence_transformer import SentenceTransformerEmbedding
from chatmemory.errors import EmbeddingError, InvalidConfigurationError
from chatmemory.memory.strategies import SlidingWindowStrategy, SummarizationStrategy
from chatmemory.memory.summarizer import DeterministicSummarizer
from chatmemory.persistence.memory import InMemoryMessageStore
from chatmemory.persistence.sqlite import SQLiteMessageStore
from chatmemory.utils.tokens import HeuristicTokenCounter
from chatmemory.vector.memory import InMemoryVectorStore

if TYPE_CHECKING:
    from chatmemory.embeddings.client import EmbeddingService
    from chatmemory.memory.strategies import ContextStrategy
    from chatmemory.persistence.base import MessagePersistence
    from chatmemory.vector.store import VectorStore

logger = logging.getLogger(__name__)


def create_embedding_service(config: ChatMemoryConfig) -> EmbeddingService:
    """Create the embedding service named by ``config.embedding.provider``.

    Unset ``model`` and ``dimensions`` fall back to the provider's defaults,
    so an Ollama model's size comes from its known-dimensions table or its
    first response.

    Raises:
        ValueError: If the provider is not recognised.
    """
    embedding = config.embedding
    if embedding.provider == "hashing":
        if embedding.dimensions is None:
            return HashingEmbedding()
        return HashingEmbedding(dimensions=embedding.dimensions)
    elif embedding.provider == "sentence-transformers":
        if embedding.model is None:
            return SentenceTransformerEmbedding()
        return SentenceTransformerEmbedding(model_name=embedding.model)
    elif embedding.provider == "ollama":
        return OllamaEmbedding(
            model=embedding.model or "nomic-embed-text",
            host=embedding.host,
            timeout=embedding.timeout or 30.0,
            dimensions=embedding.dimensions,
        )
    else:
        raise ValueError(f"Unknown embedding provider: {embedding.provider}")


def create_vector_store(
    config: ChatMemoryConfig,
    dimensions: int | None = None,
) -> VectorStore | None:
    """Create the configured vector store, or None when recall is disabled.

    Args:
        config: ChatMemory configuration.
        dimensions: Vector length; taken from the configured embedding
            service when None.

    Raises:
        ValueError: If the backend is not recognised.
        InvalidConfigurationError: If the embedding dimensions cannot be
            determined.
    """
    vector = config.vector_store
    if not vector.enabled:
        return None

    if dimensions is None:
        dimensions = _service_dimensions(create_embedding_service(config))
    if vector.backend == "memory":
        return InMemoryVectorStore(dimensions=dimensions)
    elif vector.backend == "chromadb":
        from chatmemory.vector.chromadb import ChromaDBVectorStore

        return ChromaDBVectorStore(
            dimensions=dimensions,
            collection_name=vector.collection,
            persist_directory=vector.persist_directory,
        )
    else:
        raise ValueError(f"Unknown vector store backend: {vector.backend}")


def create_persistence(config: ChatMemoryConfig) -> MessagePersistence | None:
    """Create the configured persistence backend, or None for ``"none"``.

    Raises:
        ValueError: If the backend is not recognised.
    """
    persistence = config.persistence
    if persistence.backend == "none":
        return None
    elif persistence.backend == "memory":
        return InMemoryMessageStore()
    elif persistence.backend == "sqlite":
        return SQLiteMessageStore(persistence.path, conversation_id=persistence.conversation_id)
    else:
        raise ValueError(f"Unknown persistence backend: {persistence.backend}")


def create_strategy(config: ChatMemoryConfig) -> ContextStrategy:
    """Create the context strategy named by ``config.memory.strategy``.

    Raises:
        ValueError: If the strategy is not recognised.
    """
    memory = config.memory
    if memory.strategy == "sliding_window":
        return SlidingWindowStrategy(lookback_messages=memory.lookback_messages)
    elif memory.strategy == "summarization":
        return SummarizationStrategy(
            summarizer=DeterministicSummarizer(max_chars=memory.summary_max_chars),
            lookback_messages=memory.lookback_messages,
            max_summary_chunk_size=memory.max_summary_chunk_size,
            summary_reserve_ratio=memory.summary_reserve_ratio,
            preserve_system_messages=memory.preserve_system_messages,
        )
    else:
        raise ValueError(f"Unknown context strategy: {memory.strategy}")


def create_conversation_manager(config: ChatMemoryConfig | None = None) -> ConversationManager:
    """Assemble a conversation manager from configuration.

    Args:
        config: ChatMemory configuration (defaults if None).

    Returns:
        A conversation manager wired with the configured collaborators.
    """
    config = config or ChatMemoryConfig()

    vector_store = None
    pipeline = None
    if config.vector_store.enabled:
        service = create_embedding_service(config)
        vector_store = create_vector_store(config, dimensions=_service_dimensions(service))
        pipeline = EmbeddingPipeline(
            service,
            batch_size=config.embedding.batch_size,
            max_concurrency=config.embedding.max_concurrency,
            timeout=config.embedding.timeout,
        )

    manager = ConversationManager(
        token_counter=HeuristicTokenCounter(
            chars_per_token=config.tokens.chars_per_token,
            offset=config.tokens.offset,
        ),
        strategy=create_strategy(config),
        persistence=create_persistence(config),
        vector_store=vector_store,
        embedding_pipeline=pipeline,
        follow_up_generator=HeuristicFollowUpGenerator(),
        memory_config=config.memory,
        chunking_config=config.chunking,
        conversation_config=config.conversation,
    )
    logger.debug(
        "Created conversation manager: strategy=%s vector_store=%s persistence=%s",
        config.memory.strategy,
        config.vector_store.backend if vector_store is not None else None,
        config.persistence.backend,
    )
    return manager


def _service_dimensions(service: EmbeddingService) -> int:
    try:
        return service.dimensions
    except EmbeddingError as e:
        msg = f"Cannot determine embedding dimensions for the vector store: {e}"
        raise InvalidConfigurationError(msg) from e
