"""Pytest configuration and shared fixtures."""

import math
import re
import zlib
from typing import Any

import pytest

from ravenmind.config.schema import RavenmindConfig
from ravenmind.vector.chromadb import scoped_where

EMBEDDING_DIM = 64


class FakeEmbedding:
    """Deterministic bag-of-words embeddings.

    Texts sharing words land close together; identical texts have distance 0.
    """

    def __init__(self, dim: int = EMBEDDING_DIM):
        self.dim = dim
        self.calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        for word in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(word.encode()) % self.dim] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        return self._vector(text)

    @property
    def model_name(self) -> str:
        return "fake-embedding"


def _matches(metadata: dict[str, Any], where: dict[str, Any]) -> bool:
    for key, expected in where.items():
        if key == "$and":
            if not all(_matches(metadata, clause) for clause in expected):
                return False
            continue
        if isinstance(expected, dict) and "$in" in expected:
            if metadata.get(key) not in expected["$in"]:
                return False
        elif metadata.get(key) != expected:
            return False
    return True


class InMemoryVectorStore:
    """Vector store kept in a dict, with cosine distance.

    ``fixed_distances`` maps document text to the distance search reports
    for it, for tests that need exact relevance values.
    """

    def __init__(self, fixed_distances: dict[str, float] | None = None):
        self.records: dict[str, tuple[list[float], str, dict[str, Any]]] = {}
        self.fixed_distances = fixed_distances or {}

    def add(self, ids, embeddings, documents, metadata) -> None:
        for memory_id, embedding, document, meta in zip(ids, embeddings, documents, metadata, strict=True):
            self.records[memory_id] = (embedding, document, dict(meta))

    def _scoped(self, user_id: str, where: dict[str, Any] | None):
        clause = scoped_where(user_id, where)
        return [
            (memory_id, record)
            for memory_id, record in self.records.items()
            if _matches(record[2], clause)
        ]

    def search(self, query_embedding, user_id, top_k=10, where=None):
        scored = []
        for memory_id, (embedding, document, meta) in self._scoped(user_id, where):
            if document in self.fixed_distances:
                distance = self.fixed_distances[document]
            else:
                cosine = sum(a * b for a, b in zip(query_embedding, embedding, strict=False))
                distance = 1.0 - cosine
            scored.append((distance, memory_id, document, meta))
        scored.sort(key=lambda item: item[0])
        scored = scored[:top_k]
        return (
            [s[1] for s in scored],
            [s[2] for s in scored],
            [s[3] for s in scored],
            [s[0] for s in scored],
        )

    def get(self, user_id, where=None, limit=None):
        rows = self._scoped(user_id, where)
        if limit is not None:
            rows = rows[:limit]
        return (
            [memory_id for memory_id, _ in rows],
            [record[1] for _, record in rows],
            [record[2] for _, record in rows],
        )

    def delete(self, ids) -> None:
        for memory_id in ids:
            self.records.pop(memory_id, None)

    def count(self, user_id=None) -> int:
        if user_id is None:
            return len(self.records)
        return len(self._scoped(user_id, None))


@pytest.fixture
def config() -> RavenmindConfig:
    """Provide a default configuration for tests."""
    return RavenmindConfig()


@pytest.fixture
def fake_embedding() -> FakeEmbedding:
    return FakeEmbedding()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()
