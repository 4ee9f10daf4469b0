"""ChatMemory - Bounded-context memory engine for chat applications.

ChatMemory keeps an unbounded conversation history while producing prompts
that fit a model's token budget. Recent messages are kept verbatim, older
ones are summarized or recalled by semantic similarity.

Key modules:

- :mod:`chatmemory.conversation` - Conversation manager: append, build prompts, stats
- :mod:`chatmemory.memory` - Message log, context strategies and recall
- :mod:`chatmemory.processing` - Message chunking for embedding
- :mod:`chatmemory.embeddings` - Embedding services and the batching pipeline
- :mod:`chatmemory.vector` - Vector stores (in-memory, ChromaDB)
- :mod:`chatmemory.persistence` - Durable message stores (in-memory, SQLite)
- :mod:`chatmemory.config` - YAML configuration
"""

__version__ = "0.1.0"
