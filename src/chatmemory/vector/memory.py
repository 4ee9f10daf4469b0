"""In-process vector store with exact cosine search."""

from collections.abc import Sequence
from typing import Any

import numpy as np

from chatmemory.errors import DimensionMismatchError, InvalidConfigurationError
from chatmemory.vector.store import SearchResult, VectorEntry


class InMemoryVectorStore:
    """Brute-force vector store backed by a dict.

    Similarity is computed over the full vector with numpy. Equal
    similarities keep insertion order. Suitable for a single conversation or
    tests; use :class:`~chatmemory.vector.chromadb.ChromaDBVectorStore` for
    persistence.
    """

    def __init__(self, dimensions: int):
        """Initialize the store.

        Args:
            dimensions: Length every stored and query vector must have
        """
        if dimensions <= 0:
            msg = f"dimensions must be positive, got {dimensions}"
            raise InvalidConfigurationError(msg)
        self._dimensions = dimensions
        self._entries: dict[str, VectorEntry] = {}

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def insert(self, entries: Sequence[VectorEntry]) -> None:
        # Validate the whole batch first so a bad entry inserts nothing
        for entry in entries:
            self._check_length(entry.embedding)
        for entry in entries:
            self._entries[entry.id] = entry

    def query(
        self,
        vector: Sequence[float],
        k: int = 10,
        where: dict[str, Any] | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchResult]:
        self._check_length(vector)
        if k <= 0 or not self._entries:
            return []

        candidates = [
            entry for entry in self._entries.values() if where is None or _matches(entry, where)
        ]
        if not candidates:
            return []

        matrix = np.asarray([entry.embedding for entry in candidates], dtype=np.float64)
        query = np.asarray(vector, dtype=np.float64)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        similarities = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        # Stable sort keeps insertion order among ties
        order = np.argsort(-similarities, kind="stable")
        results = []
        for index in order:
            similarity = float(similarities[index])
            if min_similarity is not None and similarity < min_similarity:
                continue
            results.append(SearchResult(entry=candidates[index], similarity=similarity))
            if len(results) >= k:
                break
        return results

    def get(self, ids: Sequence[str]) -> list[VectorEntry]:
        return [self._entries[i] for i in ids if i in self._entries]

    def delete_by_ids(self, ids: Sequence[str]) -> None:
        for entry_id in ids:
            self._entries.pop(entry_id, None)

    def delete_where(self, where: dict[str, Any]) -> None:
        if not where:
            raise InvalidConfigurationError("delete_where needs a non-empty filter")
        matching = [entry_id for entry_id, entry in self._entries.items() if _matches(entry, where)]
        self.delete_by_ids(matching)

    def count(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def _check_length(self, vector: Sequence[float]) -> None:
        if len(vector) != self._dimensions:
            raise DimensionMismatchError(expected=self._dimensions, actual=len(vector))


def _matches(entry: VectorEntry, where: dict[str, Any]) -> bool:
    return all(entry.metadata.get(key) == value for key, value in where.items())
