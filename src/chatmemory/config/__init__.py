"""Configuration models and YAML loading."""

from chatmemory.config.loader import ConfigError, load_config, save_config
from chatmemory.config.schema import (
    ChatMemoryConfig,
    ChunkingConfig,
    ChunkingStrategy,
    ConversationConfig,
    EmbeddingConfig,
    MemoryConfig,
    PersistenceConfig,
    TokenizerConfig,
    VectorStoreConfig,
)

__all__ = [
    "ChatMemoryConfig",
    "ChunkingConfig",
    "ChunkingStrategy",
    "ConfigError",
    "ConversationConfig",
    "EmbeddingConfig",
    "MemoryConfig",
    "PersistenceConfig",
    "TokenizerConfig",
    "VectorStoreConfig",
    "load_config",
    "save_config",
]
