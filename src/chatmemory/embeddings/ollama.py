"""Ollama embedding client (local, via Ollama API)."""

import httpx

from chatmemory.errors import CollaboratorTimeoutError, EmbeddingError

KNOWN_DIMENSIONS = {
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "all-minilm": 384,
}


class OllamaEmbedding:
    """Embedding generation using Ollama's embedding models."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        host: str = "http://localhost:11434",
        timeout: float = 30.0,
        dimensions: int | None = None,
    ):
        """Initialize Ollama embedding client.

        Args:
            model: Ollama model name (e.g., "nomic-embed-text")
            host: Ollama server URL
            timeout: Request timeout in seconds
            dimensions: Declared vector length (looked up for known models if None)
        """
        self._model = model
        self._host = host.rstrip("/")
        self._timeout = timeout
        if dimensions is None:
            dimensions = next(
                (dim for key, dim in KNOWN_DIMENSIONS.items() if key in model),
                None,
            )
        self._dimensions = dimensions

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Raises:
            CollaboratorTimeoutError: If the server does not answer in time
            EmbeddingError: On HTTP errors or malformed responses
        """
        if not texts:
            return []

        embeddings = []
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                for text in texts:
                    response = await client.post(
                        f"{self._host}/api/embeddings",
                        json={"model": self._model, "prompt": text},
                    )
                    response.raise_for_status()
                    embeddings.append(response.json()["embedding"])
        except httpx.TimeoutException as e:
            msg = f"Ollama embedding request timed out after {self._timeout}s"
            raise CollaboratorTimeoutError(msg) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama embedding request failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise EmbeddingError(f"Malformed Ollama embedding response: {e}") from e

        # Learn dimension from first response for unknown models
        if self._dimensions is None and embeddings:
            self._dimensions = len(embeddings[0])

        return embeddings

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    @property
    def dimensions(self) -> int:
        if self._dimensions is None:
            msg = f"Dimension of {self._model} unknown until first embedding is generated"
            raise EmbeddingError(msg)
        return self._dimensions

    @property
    def name(self) -> str:
        return self._model
