"""Abstract vector store interface."""

from typing import Any, Protocol


class VectorStore(Protocol):
    """Protocol for user-scoped vector store implementations.

    Every read takes a ``user_id``; implementations must never return
    documents belonging to another user.
    """

    def add(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadata: list[dict[str, Any]],
    ) -> None:
        """Add embeddings to the vector store.

        Args:
            ids: Unique identifiers for each embedding
            embeddings: List of embedding vectors
            documents: Original text documents
            metadata: Metadata for each document (must include ``user_id``)
        """
        ...

    def search(
        self,
        query_embedding: list[float],
        user_id: str,
        top_k: int = 10,
        where: dict[str, Any] | None = None,
    ) -> tuple[list[str], list[str], list[dict[str, Any]], list[float]]:
        """Search one user's embeddings.

        Args:
            query_embedding: Query vector
            user_id: Owner whose documents are searched
            top_k: Number of results to return
            where: Optional extra metadata filters

        Returns:
            Tuple of (ids, documents, metadatas, distances)

        Raises:
            ValueError: If user_id is empty
        """
        ...

    def get(
        self,
        user_id: str,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> tuple[list[str], list[str], list[dict[str, Any]]]:
        """Get one user's documents by filter.

        Returns:
            Tuple of (ids, documents, metadatas)
        """
        ...

    def delete(self, ids: list[str]) -> None:
        """Delete embeddings by ID."""
        ...

    def count(self, user_id: str | None = None) -> int:
        """Count embeddings, optionally for one user."""
        ...
