"""Vector store interface and entry types."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol


@dataclass(frozen=True)
class VectorEntry:
    """An embedded piece of text owned by a vector store."""

    id: str
    embedding: tuple[float, ...]
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class SearchResult:
    """A query hit with its cosine similarity."""

    entry: VectorEntry
    similarity: float


class VectorStore(Protocol):
    """Protocol for vector store implementations."""

    @property
    def dimensions(self) -> int:
        """Fixed vector length shared by every entry."""
        ...

    def insert(self, entries: Sequence[VectorEntry]) -> None:
        """Insert entries (an existing ID is replaced).

        Args:
            entries: Entries to store

        Raises:
            DimensionMismatchError: If an embedding has the wrong length
        """
        ...

    def query(
        self,
        vector: Sequence[float],
        k: int = 10,
        where: dict[str, Any] | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchResult]:
        """Find the k nearest entries by cosine similarity.

        Args:
            vector: Query vector
            k: Number of results to return
            where: Optional exact-match metadata filter
            min_similarity: Optional similarity floor

        Returns:
            Results sorted by descending similarity

        Raises:
            DimensionMismatchError: If the query vector has the wrong length
        """
        ...

    def get(self, ids: Sequence[str]) -> list[VectorEntry]:
        """Fetch entries by ID (unknown IDs are skipped)."""
        ...

    def delete_by_ids(self, ids: Sequence[str]) -> None:
        """Delete entries by ID.

        Args:
            ids: IDs to delete
        """
        ...

    def delete_where(self, where: dict[str, Any]) -> None:
        """Delete every entry whose metadata matches all key/value pairs.

        Args:
            where: Exact-match metadata filter (must not be empty)
        """
        ...

    def count(self) -> int:
        """Get total number of entries in the store."""
        ...

    def clear(self) -> None:
        """Remove all entries from the store."""
        ...
