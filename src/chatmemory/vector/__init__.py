"""Vector stores for semantic recall."""

from chatmemory.vector.memory import InMemoryVectorStore
from chatmemory.vector.store import SearchResult, VectorEntry, VectorStore

try:
    from chatmemory.vector.chromadb import ChromaDBVectorStore
except Exception:
    ChromaDBVectorStore = None  # type: ignore[assignment,misc]

__all__ = [
    "ChromaDBVectorStore",
    "InMemoryVectorStore",
    "SearchResult",
    "VectorEntry",
    "VectorStore",
]
