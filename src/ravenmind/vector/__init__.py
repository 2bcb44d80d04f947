"""User-scoped vector store for long-term memory."""

from ravenmind.vector.chromadb import ChromaDBVectorStore, scoped_where
from ravenmind.vector.store import VectorStore

__all__ = ["ChromaDBVectorStore", "VectorStore", "scoped_where"]
