"""Abstract embedding client interface."""

from typing import Protocol


class EmbeddingClient(Protocol):
    """Protocol for embedding generation clients."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors (one per input text)
        """
        ...

    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    @property
    def model_name(self) -> str:
        ...
