"""Message processing ahead of embedding."""

from chatmemory.processing.chunker import Chunk, ChunkingStats, MessageChunker

__all__ = ["Chunk", "ChunkingStats", "MessageChunker"]
