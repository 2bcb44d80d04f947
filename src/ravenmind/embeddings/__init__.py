"""Embedding generation for semantic memory search."""

from ravenmind.embeddings.client import EmbeddingClient
from ravenmind.embeddings.ollama import OllamaEmbedding

__all__ = ["EmbeddingClient", "OllamaEmbedding"]
