"""Deterministic hashing embedding service (no model required)."""

import hashlib
import re

import numpy as np

from chatmemory.errors import InvalidConfigurationError

_TOKEN = re.compile(r"\w+", re.UNICODE)


class HashingEmbedding:
    """Feature-hashing embeddings over word unigrams and bigrams.

    Texts sharing vocabulary get similar vectors, which is enough for tests,
    offline use and as a fallback when no embedding model is installed.
    Results are stable across processes (no reliance on ``hash()``).
    """

    def __init__(self, dimensions: int = 384, normalize: bool = True):
        """Initialize hashing embedding.

        Args:
            dimensions: Length of produced vectors
            normalize: Scale vectors to unit length
        """
        if dimensions <= 0:
            msg = f"dimensions must be positive, got {dimensions}"
            raise InvalidConfigurationError(msg)
        self._dimensions = dimensions
        self._normalize = normalize

    def _vectorize(self, text: str) -> list[float]:
        vector = np.zeros(self._dimensions, dtype=np.float64)
        words = _TOKEN.findall(text.lower())
        features = words + [f"{a} {b}" for a, b in zip(words, words[1:], strict=False)]

        for feature in features:
            digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "little")
            index = value % self._dimensions
            sign = 1.0 if (value >> 63) & 1 else -1.0
            vector[index] += sign

        if self._normalize:
            norm = np.linalg.norm(vector)
            if norm > 0:
                vector /= norm
        result: list[float] = vector.tolist()
        return result

    async def embed(self, text: str) -> list[float]:
        return self._vectorize(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self._vectorize(text) for text in texts]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def name(self) -> str:
        return f"hashing-{self._dimensions}"
