"""Long-term per-user memory on top of a vector store."""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from typing import TYPE_CHECKING

from ravenmind.memory.schema import (
    MemoryDocument,
    MemoryMetadata,
    MemorySearchResult,
    MemoryType,
    MemoryWriteResult,
)
from ravenmind.memory.utils import effective_relevance, relevance_from_distance

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ravenmind.embeddings.client import EmbeddingClient
    from ravenmind.vector.store import VectorStore

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits

# Upper bound on candidates fetched before threshold filtering
MAX_OVERFETCH = 50


def new_memory_id(user_id: str, now_ms: int | None = None) -> str:
    """Build a memory id of the form ``{user_id}-{epoch_ms}-{random6}``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{user_id}-{now_ms}-{suffix}"


def _type_filter(types: Iterable[MemoryType] | None) -> dict | None:
    if not types:
        return None
    values = [MemoryType(t).value for t in types]
    if len(values) == 1:
        return {"type": values[0]}
    return {"type": {"$in": values}}


class LongTermMemory:
    """Stores and retrieves user facts and session summaries.

    Every operation is scoped to a single user. Updates replace the old
    document with a new id and timestamp rather than mutating it.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_client: EmbeddingClient,
        decay_per_day: float = 0.98,
        dedup_threshold: float = 0.85,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize long-term memory.

        Args:
            vector_store: User-scoped vector store
            embedding_client: Embedding client for queries and documents
            decay_per_day: Relevance multiplier per day of age
            dedup_threshold: Plain relevance at which a write replaces an existing memory
            clock: Wall-clock source in seconds
        """
        self.vector_store = vector_store
        self.embedding_client = embedding_client
        self.decay_per_day = decay_per_day
        self.dedup_threshold = dedup_threshold
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def add_memory(
        self,
        user_id: str,
        content: str,
        memory_type: MemoryType = MemoryType.FACT,
        source: str = "conversation",
        importance: float = 1.0,
    ) -> str:
        """Store a new memory unconditionally.

        Returns:
            The new memory id
        """
        now_ms = self._now_ms()
        metadata = MemoryMetadata(
            user_id=user_id,
            type=memory_type,
            source=source,
            timestamp=float(now_ms),
            importance=importance,
        )
        return await self._insert(content, metadata, now_ms)

    async def _insert(self, content: str, metadata: MemoryMetadata, now_ms: int) -> str:
        memory_id = new_memory_id(metadata.user_id, now_ms)
        embedding = await self.embedding_client.embed_single(content)
        await asyncio.to_thread(
            self.vector_store.add,
            [memory_id],
            [embedding],
            [content],
            [metadata.to_store()],
        )
        logger.debug("Stored %s memory %s", metadata.type.value, memory_id)
        return memory_id

    async def add_or_update_memory(
        self,
        user_id: str,
        content: str,
        memory_type: MemoryType = MemoryType.FACT,
        source: str = "conversation",
        importance: float = 1.0,
    ) -> MemoryWriteResult:
        """Store a memory, replacing a near-duplicate of the same type.

        A match is any existing memory of this user and type whose plain
        relevance (without decay) reaches the dedup threshold. The match is
        deleted and the new content inserted with a fresh id and timestamp;
        the higher importance of the two is kept.

        Returns:
            MemoryWriteResult with ``updated=True`` when a memory was replaced
        """
        matches = await self.search(
            user_id,
            content,
            types=[memory_type],
            limit=1,
            threshold=self.dedup_threshold,
            apply_decay=False,
        )

        now_ms = self._now_ms()
        if not matches:
            metadata = MemoryMetadata(
                user_id=user_id,
                type=memory_type,
                source=source,
                timestamp=float(now_ms),
                importance=importance,
            )
            return MemoryWriteResult(id=await self._insert(content, metadata, now_ms), updated=False)

        existing = matches[0]
        merged = existing.metadata.model_copy(
            update={
                "timestamp": float(now_ms),
                "importance": max(existing.metadata.importance, importance),
                "source": source,
            }
        )
        await asyncio.to_thread(self.vector_store.delete, [existing.id])
        new_id = await self._insert(content, merged, now_ms)
        logger.debug("Replaced memory %s with %s", existing.id, new_id)
        return MemoryWriteResult(id=new_id, updated=True, replaced_id=existing.id)

    async def search(
        self,
        user_id: str,
        query: str,
        types: Iterable[MemoryType] | None = None,
        limit: int = 5,
        threshold: float = 0.0,
        exclude_ids: Iterable[str] | None = None,
        apply_decay: bool = True,
    ) -> list[MemorySearchResult]:
        """Semantic search over one user's memories.

        Fetches ``min(limit * 3, 50)`` candidates, scores them, drops those
        below ``threshold``, and returns the best ``limit`` by score.

        Args:
            user_id: Owner of the memories
            query: Query text
            types: Restrict to these memory types
            limit: Maximum results
            threshold: Minimum score to keep
            exclude_ids: Ids to leave out
            apply_decay: Weight relevance by age and importance

        Returns:
            Results sorted by descending relevance_score
        """
        if limit <= 0:
            return []

        excluded = set(exclude_ids or ())
        embedding = await self.embedding_client.embed_single(query)
        ids, documents, metadatas, distances = await asyncio.to_thread(
            self.vector_store.search,
            embedding,
            user_id,
            min(limit * 3, MAX_OVERFETCH),
            _type_filter(types),
        )

        now_ms = self._now_ms()
        results: list[MemorySearchResult] = []
        for memory_id, document, raw_meta, distance in zip(
            ids, documents, metadatas, distances, strict=False
        ):
            if memory_id in excluded:
                continue
            metadata = MemoryMetadata.from_store(raw_meta or {})
            score = relevance_from_distance(distance)
            if apply_decay:
                score = effective_relevance(
                    score,
                    metadata.timestamp,
                    metadata.importance,
                    self.decay_per_day,
                    now_ms,
                )
            if score < threshold:
                continue
            results.append(
                MemorySearchResult(
                    id=memory_id,
                    content=document,
                    metadata=metadata,
                    distance=distance,
                    relevance_score=score,
                )
            )

        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results[:limit]

    async def get_all(
        self,
        user_id: str,
        types: Iterable[MemoryType] | None = None,
        limit: int | None = None,
    ) -> list[MemoryDocument]:
        """List a user's memories, newest first."""
        ids, documents, metadatas = await asyncio.to_thread(
            self.vector_store.get, user_id, _type_filter(types), limit
        )
        memories = [
            MemoryDocument(id=i, content=d, metadata=MemoryMetadata.from_store(m or {}))
            for i, d, m in zip(ids, documents, metadatas, strict=False)
        ]
        memories.sort(key=lambda m: m.metadata.timestamp, reverse=True)
        return memories

    async def delete_memory(self, user_id: str, memory_id: str) -> bool:
        """Delete one memory if it belongs to the user.

        Returns:
            True if a memory was deleted
        """
        ids, _, _ = await asyncio.to_thread(self.vector_store.get, user_id, None, None)
        if memory_id not in ids:
            return False
        await asyncio.to_thread(self.vector_store.delete, [memory_id])
        return True

    async def delete_all_user_memories(self, user_id: str) -> int:
        """Delete every memory of a user.

        Returns:
            Number of memories deleted
        """
        ids, _, _ = await asyncio.to_thread(self.vector_store.get, user_id, None, None)
        await asyncio.to_thread(self.vector_store.delete, ids)
        logger.info("Deleted %d memories for user %s", len(ids), user_id)
        return len(ids)

    async def count(self, user_id: str) -> int:
        return await asyncio.to_thread(self.vector_store.count, user_id)
