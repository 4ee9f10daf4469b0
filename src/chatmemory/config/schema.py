"""Pydantic models for chatmemory.yaml configuration."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class TokenizerConfig(BaseModel):
    """Heuristic token estimator configuration."""

    chars_per_token: float = Field(
        default=4.0,
        description="Average characters per token used by the heuristic estimator",
        gt=0.0,
    )
    offset: int = Field(default=0, description="Fixed tokens added to every estimate", ge=0)


class ChunkingStrategy(str, Enum):
    """How oversized messages are split before embedding."""

    FIXED_SIZE = "fixed_size"
    SENTENCE_BOUNDARY = "sentence_boundary"
    PARAGRAPH_BOUNDARY = "paragraph_boundary"


class ChunkingConfig(BaseModel):
    """Message chunking configuration."""

    max_chunk_tokens: int = Field(default=500, description="Hard token ceiling per chunk", ge=1)
    strategy: ChunkingStrategy = Field(
        default=ChunkingStrategy.SENTENCE_BOUNDARY,
        description="Boundary used when splitting: fixed_size, sentence_boundary or paragraph_boundary",
    )
    preserve_words: bool = Field(default=True, description="Never split inside a word")
    preserve_sentences: bool = Field(
        default=True,
        description="Never split inside a sentence when using boundary strategies",
    )


class EmbeddingConfig(BaseModel):
    """Embedding service configuration."""

    provider: Literal["hashing", "sentence-transformers", "ollama"] = Field(
        default="hashing",
        description="Embedding provider: 'hashing' (deterministic, no model), "
        "'sentence-transformers' (local model) or 'ollama'",
    )
    model: str | None = Field(
        default=None,
        description="Model name; None picks the provider default "
        "(all-MiniLM-L6-v2 for sentence-transformers, nomic-embed-text for ollama)",
    )
    dimensions: int | None = Field(
        default=None,
        description="Declared embedding dimensionality; None uses the provider's own "
        "(384 for hashing, the model's for the others)",
        ge=1,
    )
    host: str = Field(default="http://localhost:11434", description="Ollama server URL")
    batch_size: int = Field(default=32, description="Texts per embedding request", ge=1)
    max_concurrency: int = Field(default=4, description="Embedding batches in flight", ge=1)
    timeout: float | None = Field(
        default=30.0,
        description="Per-call timeout in seconds (None disables)",
        gt=0.0,
    )


class VectorStoreConfig(BaseModel):
    """Vector index configuration for long-term recall."""

    enabled: bool = Field(default=True, description="Index messages for semantic recall")
    backend: Literal["memory", "chromadb"] = Field(
        default="memory",
        description="Vector store backend: in-process 'memory' or 'chromadb'",
    )
    collection: str = Field(default="chatmemory", description="ChromaDB collection name")
    persist_directory: str | None = Field(
        default=None,
        description="ChromaDB persistence directory (None = in-memory)",
    )


class MemoryConfig(BaseModel):
    """Context selection and recall configuration."""

    strategy: Literal["sliding_window", "summarization"] = Field(
        default="sliding_window",
        description="Context strategy used to select verbatim messages",
    )
    lookback_messages: int = Field(
        default=50, description="Maximum messages kept verbatim", ge=0
    )
    recall_top_k: int = Field(default=5, description="Recalled entries per prompt", ge=0)
    min_similarity: float = Field(
        default=0.0,
        description="Minimum cosine similarity for recalled entries",
        ge=-1.0,
        le=1.0,
    )
    max_recall_tokens: int = Field(
        default=1000, description="Token cap for the recalled context section", ge=0
    )
    recall_reserve_ratio: float = Field(
        default=0.25,
        description="Share of the budget held back from the strategy for recall",
        ge=0.0,
        lt=1.0,
    )
    summary_reserve_ratio: float = Field(
        default=0.2,
        description="Share of the budget held back for summaries (summarization strategy)",
        ge=0.0,
        lt=1.0,
    )
    max_summary_chunk_size: int = Field(
        default=20, description="Messages per summarized chunk", ge=1
    )
    summary_max_chars: int = Field(
        default=200, description="Length cap of deterministic summaries", ge=1
    )
    preserve_system_messages: bool = Field(
        default=True, description="Keep system messages ahead of the window"
    )


class PersistenceConfig(BaseModel):
    """Message persistence configuration."""

    backend: Literal["none", "memory", "sqlite"] = Field(
        default="none",
        description="Persistence backend: 'none' (log only), 'memory' or 'sqlite'",
    )
    path: str = Field(
        default="~/.chatmemory/conversation.db",
        description="SQLite database path",
    )
    conversation_id: str = Field(
        default="default", description="Conversation key inside the SQLite database"
    )


class ConversationConfig(BaseModel):
    """Conversation manager behaviour."""

    strict_indexing: bool = Field(
        default=True,
        description="Re-raise indexing failures after the message has been stored",
    )
    index_system_messages: bool = Field(
        default=False, description="Embed and index system messages for recall"
    )
    collaborator_timeout: float | None = Field(
        default=None,
        description="Timeout in seconds for persistence calls (None disables)",
        gt=0.0,
    )
    max_follow_up_questions: int = Field(
        default=3, description="Default number of follow-up questions", ge=0
    )


class ChatMemoryConfig(BaseModel):
    """Root configuration model."""

    tokens: TokenizerConfig = Field(default_factory=TokenizerConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
