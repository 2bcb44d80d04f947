"""Ollama embedding client (local, via Ollama API)."""

import httpx

from ravenmind.llm.retry import with_retry


class OllamaEmbedding:
    """Embedding generation using Ollama's embedding models.

    Shares the Ollama server with the chat model, so requests go through
    the same fixed-schedule retry wrapper.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        host: str = "http://localhost:11434",
        timeout: int = 30,
    ):
        """Initialize Ollama embedding client.

        Args:
            model: Ollama model name (e.g., "nomic-embed-text")
            host: Ollama server URL
            timeout: Request timeout in seconds
        """
        self._model = model
        self._host = host.rstrip("/")
        self._http = httpx.AsyncClient(base_url=self._host, timeout=timeout)

    async def _embed_one(self, text: str) -> list[float]:
        async def _send() -> list[float]:
            response = await self._http.post(
                "/api/embeddings",
                json={"model": self._model, "prompt": text},
            )
            response.raise_for_status()
            return response.json()["embedding"]

        return await with_retry(_send, description=f"Ollama embedding ({self._model})")

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors
        """
        return [await self._embed_one(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return await self._embed_one(text)

    @property
    def model_name(self) -> str:
        """Get the name of the embedding model."""
        return self._model

    async def close(self) -> None:
        await self._http.aclose()
