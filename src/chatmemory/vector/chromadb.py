"""ChromaDB vector store implementation."""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import chromadb

from chatmemory.errors import DimensionMismatchError, InvalidConfigurationError, VectorStoreError
from chatmemory.vector.store import SearchResult, VectorEntry

_TIMESTAMP_KEY = "_timestamp"


class ChromaDBVectorStore:
    """Vector store using ChromaDB for semantic search.

    ChromaDB is an embedded vector database using SQLite for persistence and
    HNSW for approximate nearest neighbour search. The collection is created
    in cosine space so distances convert to similarity as ``1 - distance``.
    Tie order between equal similarities is whatever HNSW returns. Backend
    failures are raised as :class:`~chatmemory.errors.VectorStoreError`.
    """

    def __init__(
        self,
        dimensions: int,
        collection_name: str = "chatmemory",
        persist_directory: str | Path | None = None,
    ):
        """Initialize ChromaDB vector store.

        Args:
            dimensions: Length every stored and query vector must have
            collection_name: Name of the ChromaDB collection
            persist_directory: Directory for persistent storage (None = in-memory)
        """
        if dimensions <= 0:
            msg = f"dimensions must be positive, got {dimensions}"
            raise InvalidConfigurationError(msg)

        self._dimensions = dimensions
        self.collection_name = collection_name

        if persist_directory is None:
            self.client = chromadb.EphemeralClient()
        else:
            persist_path = Path(persist_directory).expanduser().resolve()
            persist_path.mkdir(parents=True, exist_ok=True)
            self.client = chromadb.PersistentClient(path=str(persist_path))

        self.collection = self._get_collection()

    def _get_collection(self) -> Any:
        return self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def insert(self, entries: Sequence[VectorEntry]) -> None:
        if not entries:
            return
        for entry in entries:
            self._check_length(entry.embedding)

        try:
            self.collection.upsert(
                ids=[entry.id for entry in entries],
                embeddings=[list(entry.embedding) for entry in entries],  # type: ignore[arg-type]
                documents=[entry.content for entry in entries],
                metadatas=[  # type: ignore[arg-type]
                    {**entry.metadata, _TIMESTAMP_KEY: entry.timestamp.isoformat()}
                    for entry in entries
                ],
            )
        except Exception as e:
            raise VectorStoreError(f"ChromaDB insert failed: {e}") from e

    def query(
        self,
        vector: Sequence[float],
        k: int = 10,
        where: dict[str, Any] | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchResult]:
        self._check_length(vector)
        total = self.count()
        if k <= 0 or total == 0:
            return []

        try:
            results = self.collection.query(
                query_embeddings=[list(vector)],  # type: ignore[arg-type]
                n_results=min(k, total),
                where=where,
                include=["documents", "metadatas", "distances", "embeddings"],
            )
        except Exception as e:
            raise VectorStoreError(f"ChromaDB query failed: {e}") from e

        # ChromaDB returns results in a batched format
        ids = results["ids"][0] if results["ids"] else []
        documents = results["documents"][0] if results["documents"] else []
        metadatas = results["metadatas"][0] if results["metadatas"] else []
        distances = results["distances"][0] if results["distances"] else []
        embeddings = results["embeddings"][0] if results["embeddings"] is not None else []

        hits = []
        for entry_id, doc, meta, distance, embedding in zip(
            ids, documents, metadatas, distances, embeddings, strict=False
        ):
            similarity = 1.0 - float(distance)
            if min_similarity is not None and similarity < min_similarity:
                continue
            hits.append(
                SearchResult(
                    entry=self._to_entry(entry_id, embedding, doc, meta),
                    similarity=similarity,
                )
            )
        return hits

    def get(self, ids: Sequence[str]) -> list[VectorEntry]:
        if not ids:
            return []
        results = self.collection.get(
            ids=list(ids),
            include=["documents", "metadatas", "embeddings"],
        )
        embeddings = results["embeddings"] if results["embeddings"] is not None else []
        return [
            self._to_entry(entry_id, embedding, doc, meta)
            for entry_id, doc, meta, embedding in zip(
                results["ids"],
                results["documents"] or [],
                results["metadatas"] or [],
                embeddings,
                strict=False,
            )
        ]

    def delete_by_ids(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        try:
            self.collection.delete(ids=list(ids))
        except Exception as e:
            raise VectorStoreError(f"ChromaDB delete failed: {e}") from e

    def delete_where(self, where: dict[str, Any]) -> None:
        if not where:
            raise InvalidConfigurationError("delete_where needs a non-empty filter")
        try:
            self.collection.delete(where=where)
        except Exception as e:
            raise VectorStoreError(f"ChromaDB delete failed: {e}") from e

    def count(self) -> int:
        count_result: int = self.collection.count()
        return count_result

    def clear(self) -> None:
        # Delete the collection and recreate it
        self.client.delete_collection(name=self.collection_name)
        self.collection = self._get_collection()

    def _check_length(self, vector: Sequence[float]) -> None:
        if len(vector) != self._dimensions:
            raise DimensionMismatchError(expected=self._dimensions, actual=len(vector))

    @staticmethod
    def _to_entry(
        entry_id: str,
        embedding: Sequence[float],
        document: str | None,
        metadata: dict[str, Any] | None,
    ) -> VectorEntry:
        metadata = dict(metadata or {})
        raw_timestamp = metadata.pop(_TIMESTAMP_KEY, None)
        timestamp = datetime.fromisoformat(raw_timestamp) if raw_timestamp else None
        entry_kwargs: dict[str, Any] = {}
        if timestamp is not None:
            entry_kwargs["timestamp"] = timestamp
        return VectorEntry(
            id=entry_id,
            embedding=tuple(float(x) for x in embedding),
            content=document or "",
            metadata=metadata,
            **entry_kwargs,
        )
