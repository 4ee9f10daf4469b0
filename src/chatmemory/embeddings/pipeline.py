"""Batch chunks through an embedding service into vector entries."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

from chatmemory.embeddings.client import EmbeddingService
from chatmemory.errors import (
    ChatMemoryError,
    CollaboratorTimeoutError,
    EmbeddingError,
    InvalidConfigurationError,
)
from chatmemory.processing.chunker import Chunk
from chatmemory.vector.store import VectorEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCALAR_TYPES = (str, int, float, bool)


class EmbeddingPipeline:
    """Turns chunks into :class:`VectorEntry` values.

    Texts are grouped into batches of ``batch_size`` and up to
    ``max_concurrency`` batches are embedded at once. Every returned vector
    is checked against the service's declared dimensionality. Writing the
    entries to a vector store is left to the caller.
    """

    def __init__(
        self,
        service: EmbeddingService,
        batch_size: int = 32,
        max_concurrency: int = 4,
        timeout: float | None = None,
    ):
        """Initialize the pipeline.

        Args:
            service: Embedding collaborator
            batch_size: Texts per embed_batch call
            max_concurrency: Batches in flight at once
            timeout: Per-call timeout in seconds (None disables)
        """
        if batch_size <= 0:
            raise InvalidConfigurationError(f"batch_size must be positive, got {batch_size}")
        if max_concurrency <= 0:
            msg = f"max_concurrency must be positive, got {max_concurrency}"
            raise InvalidConfigurationError(msg)
        if timeout is not None and timeout <= 0:
            raise InvalidConfigurationError(f"timeout must be positive, got {timeout}")

        self.service = service
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency
        self.timeout = timeout

    async def embed_chunks(
        self,
        chunks: Sequence[Chunk],
        role: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> list[VectorEntry]:
        """Embed chunks into vector entries.

        Args:
            chunks: Chunks to embed (order is preserved)
            role: Role of the parent message, stored in entry metadata
            metadata: Extra metadata; only scalar values are kept
            timestamp: Entry timestamp (defaults to now)

        Returns:
            One VectorEntry per chunk, ID ``<message_id>#<chunk_index>``

        Raises:
            EmbeddingError: If the service fails or returns malformed vectors
            CollaboratorTimeoutError: If a call exceeds the timeout
        """
        if not chunks:
            return []

        vectors = await self.embed_texts([chunk.content for chunk in chunks])
        timestamp = timestamp or datetime.now(timezone.utc)
        extra = {k: v for k, v in (metadata or {}).items() if isinstance(v, _SCALAR_TYPES)}

        entries = []
        for chunk, vector in zip(chunks, vectors, strict=True):
            entry_metadata: dict[str, Any] = {
                **extra,
                "message_id": chunk.parent_message_id,
                "chunk_index": chunk.sequence_index,
            }
            if role is not None:
                entry_metadata["role"] = role
            entries.append(
                VectorEntry(
                    id=chunk.id,
                    embedding=tuple(vector),
                    content=chunk.content,
                    metadata=entry_metadata,
                    timestamp=timestamp,
                )
            )
        return entries

    async def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed texts in concurrent batches, preserving order."""
        if not texts:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)
        batches = [
            list(texts[i : i + self.batch_size]) for i in range(0, len(texts), self.batch_size)
        ]

        async def run(batch: list[str]) -> list[list[float]]:
            async with semaphore:
                vectors = await self._call(lambda: self.service.embed_batch(batch), "embed_batch")
            if len(vectors) != len(batch):
                msg = (
                    f"{self.service.name} returned {len(vectors)} embeddings "
                    f"for {len(batch)} texts"
                )
                raise EmbeddingError(msg)
            for vector in vectors:
                self._check_vector(vector)
            return vectors

        # A failing batch cancels the others; the first failure is raised as-is
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(run(batch)) for batch in batches]
        except ExceptionGroup as eg:
            raise eg.exceptions[0]

        logger.debug("Embedded %d texts in %d batches", len(texts), len(batches))
        return [vector for task in tasks for vector in task.result()]

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        vector = await self._call(lambda: self.service.embed(text), "embed")
        self._check_vector(vector)
        return vector

    async def _call(self, factory: Callable[[], Awaitable[T]], operation: str) -> T:
        try:
            if self.timeout is None:
                return await factory()
            return await asyncio.wait_for(factory(), timeout=self.timeout)
        except ChatMemoryError:
            raise
        except asyncio.TimeoutError as e:
            msg = f"{self.service.name}.{operation} exceeded {self.timeout}s"
            raise CollaboratorTimeoutError(msg) from e
        except Exception as e:
            raise EmbeddingError(f"{self.service.name}.{operation} failed: {e}") from e

    def _check_vector(self, vector: Sequence[float]) -> None:
        expected = self.service.dimensions
        if expected <= 0:
            msg = f"{self.service.name} declares invalid dimensions {expected}"
            raise InvalidConfigurationError(msg)
        if len(vector) != expected:
            msg = (
                f"{self.service.name} returned a vector of length {len(vector)}, "
                f"declared dimensions {expected}"
            )
            raise EmbeddingError(msg)
