"""Embedding service interface."""

from typing import Protocol


class EmbeddingService(Protocol):
    """Protocol for embedding generation services."""

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding for a single text.

        Args:
            text: Text string to embed

        Returns:
            Embedding vector
        """
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors (one per input text, same order)
        """
        ...

    @property
    def dimensions(self) -> int:
        """Declared length of every embedding vector."""
        ...

    @property
    def name(self) -> str:
        """Identifier of the embedding model or service."""
        ...
