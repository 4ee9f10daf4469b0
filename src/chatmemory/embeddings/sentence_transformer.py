"""Sentence-transformers embedding client (local, privacy-first)."""

import asyncio
from typing import Any

import numpy as np

from chatmemory.errors import EmbeddingError


class SentenceTransformerEmbedding:
    """Local embedding generation using sentence-transformers.

    The model is loaded lazily on first use and inference runs in the
    default thread pool so it does not block the event loop.
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        device: str | None = None,
        cache_dir: str | None = None,
    ):
        """Initialize sentence-transformers client.

        Args:
            model_name: HuggingFace model identifier
            device: Device to run on ("cuda", "mps", "cpu", or None for auto)
            cache_dir: Directory to cache models (None uses default)
        """
        self._model_name = model_name
        self._device = device
        self._cache_dir = cache_dir
        self._model: Any = None
        self._dimensions: int | None = None

    def _load_model(self) -> None:
        """Load the sentence-transformers model (lazy initialization)."""
        if self._model is not None:
            return

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            msg = (
                "sentence-transformers is required for local embeddings. "
                "Install with: pip install 'chatmemory[local]'"
            )
            raise EmbeddingError(msg) from e

        self._model = SentenceTransformer(
            self._model_name,
            device=self._device,
            cache_folder=self._cache_dir,
        )
        self._dimensions = self._model.get_sentence_embedding_dimension()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        self._load_model()

        loop = asyncio.get_running_loop()
        embeddings_raw = await loop.run_in_executor(None, self._model.encode, texts)

        if isinstance(embeddings_raw, np.ndarray):
            embeddings: list[list[float]] = embeddings_raw.tolist()
            return embeddings
        return [emb.tolist() if isinstance(emb, np.ndarray) else emb for emb in embeddings_raw]

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    @property
    def dimensions(self) -> int:
        if self._dimensions is None:
            self._load_model()
        return self._dimensions  # type: ignore[return-value]

    @property
    def name(self) -> str:
        return self._model_name
