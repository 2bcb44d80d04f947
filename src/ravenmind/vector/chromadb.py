"""ChromaDB vector store implementation."""

from pathlib import Path
from typing import Any

import chromadb


def scoped_where(user_id: str, where: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build a ChromaDB filter that always restricts to one user.

    Raises:
        ValueError: If user_id is empty
    """
    if not user_id:
        msg = "Vector store queries must be scoped to a user_id"
        raise ValueError(msg)

    clauses: list[dict[str, Any]] = [{"user_id": user_id}]
    for key, value in (where or {}).items():
        if key == "user_id":
            continue
        clauses.append({key: value})

    # ChromaDB rejects $and with a single clause
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaDBVectorStore:
    """Vector store using ChromaDB for per-user semantic search.

    Runs embedded (persistent or in-memory) or against a ChromaDB server
    when a host is given. The collection uses cosine distance, so
    distances fall in [0, 2].
    """

    def __init__(
        self,
        collection_name: str = "memories",
        persist_directory: str | Path | None = None,
        host: str | None = None,
        port: int = 8000,
    ):
        """Initialize ChromaDB vector store.

        Args:
            collection_name: Name of the ChromaDB collection
            persist_directory: Directory for persistent storage (None = in-memory)
            host: ChromaDB server host (takes precedence over persist_directory)
            port: ChromaDB server port
        """
        self.collection_name = collection_name

        if host:
            self.client = chromadb.HttpClient(host=host, port=port)
        elif persist_directory is None:
            # In-memory mode (for testing)
            self.client = chromadb.EphemeralClient()
        else:
            persist_path = Path(persist_directory).expanduser().resolve()
            persist_path.mkdir(parents=True, exist_ok=True)
            self.client = chromadb.PersistentClient(path=str(persist_path))

        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadata: list[dict[str, Any]],
    ) -> None:
        """Add embeddings to the vector store.

        Raises:
            ValueError: If a metadata entry has no user_id
        """
        if not ids:
            return
        if any(not meta.get("user_id") for meta in metadata):
            msg = "Every memory must carry a user_id"
            raise ValueError(msg)

        self.collection.add(
            ids=ids,
            embeddings=embeddings,  # type: ignore[arg-type]
            documents=documents,
            metadatas=metadata,  # type: ignore[arg-type]
        )

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
        """
        results = self.collection.query(
            query_embeddings=[query_embedding],  # type: ignore[arg-type]
            n_results=top_k,
            where=scoped_where(user_id, where),
        )

        # ChromaDB returns results in a batched format
        ids = results["ids"][0] if results["ids"] else []
        documents = results["documents"][0] if results["documents"] else []
        metadatas = results["metadatas"][0] if results["metadatas"] else []
        distances = results["distances"][0] if results["distances"] else []

        return ids, documents, metadatas, distances  # type: ignore[return-value]

    def get(
        self,
        user_id: str,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> tuple[list[str], list[str], list[dict[str, Any]]]:
        """Get one user's documents by filter."""
        results = self.collection.get(where=scoped_where(user_id, where), limit=limit)

        ids_result = results["ids"] if results["ids"] else []
        documents = results["documents"] if results["documents"] else []
        metadatas = results["metadatas"] if results["metadatas"] else []

        return ids_result, documents, metadatas  # type: ignore[return-value]

    def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        self.collection.delete(ids=ids)

    def count(self, user_id: str | None = None) -> int:
        """Count embeddings, optionally for one user."""
        if user_id is None:
            count_result: int = self.collection.count()
            return count_result
        ids, _, _ = self.get(user_id)
        return len(ids)
