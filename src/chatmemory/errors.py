"""Exception types raised by chatmemory."""


class ChatMemoryError(Exception):
    """Base class for all chatmemory errors."""


class InvalidConfigurationError(ChatMemoryError, ValueError):
    """A component was configured with an invalid value."""


class DimensionMismatchError(ChatMemoryError):
    """A vector's length disagrees with the expected dimensionality."""

    def __init__(self, expected: int, actual: int, message: str | None = None):
        self.expected = expected
        self.actual = actual
        if message is None:
            message = f"Vector dimension mismatch: expected={expected} actual={actual}"
        super().__init__(message)


class EmbeddingError(ChatMemoryError):
    """The embedding service failed or returned a malformed result."""


class PersistenceError(ChatMemoryError):
    """The persistence backend failed during save, load, delete or clear."""


class VectorStoreError(ChatMemoryError):
    """The vector store backend failed."""


class CollaboratorTimeoutError(ChatMemoryError, TimeoutError):
    """An external collaborator call exceeded its time bound."""


class SummarizationError(ChatMemoryError):
    """A summarizer could not produce a summary."""
