"""Embedding generation for semantic recall."""

from chatmemory.embeddings.client import EmbeddingService
from chatmemory.embeddings.hashing import HashingEmbedding
from chatmemory.embeddings.ollama import OllamaEmbedding
from chatmemory.embeddings.pipeline import EmbeddingPipeline
from chatmemory.embeddings.sentence_transformer import SentenceTransformerEmbedding

__all__ = [
    "EmbeddingPipeline",
    "EmbeddingService",
    "HashingEmbedding",
    "OllamaEmbedding",
    "SentenceTransformerEmbedding",
]
