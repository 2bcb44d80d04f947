"""Pydantic models for the memory system."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


class MemoryType(StrEnum):
    """Kinds of long-term memory."""

    USER_PROFILE = "user_profile"
    EPISODIC = "episodic"
    FACT = "fact"
    PREFERENCE = "preference"


PROFILE_TYPES = (MemoryType.USER_PROFILE, MemoryType.PREFERENCE, MemoryType.FACT)


class ConversationMessage(BaseModel):
    """A stored turn of a conversation thread."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class ConversationMetadata(BaseModel):
    """Per (user, thread) bookkeeping."""

    message_count: int = 0
    last_activity_at: datetime = Field(default_factory=utcnow)
    summarized: bool = False
    summary: str | None = None


class MemoryMetadata(BaseModel):
    """Metadata stored alongside a long-term memory."""

    user_id: str
    type: MemoryType = MemoryType.FACT
    source: str = "conversation"
    timestamp: float = Field(default_factory=lambda: utcnow().timestamp() * 1000)  # epoch ms
    importance: float = Field(default=1.0, ge=0.0, le=1.0)

    def to_store(self) -> dict[str, Any]:
        """Flatten to primitive values for the vector store."""
        return {
            "user_id": self.user_id,
            "type": self.type.value,
            "source": self.source,
            "timestamp": self.timestamp,
            "importance": self.importance,
        }

    @classmethod
    def from_store(cls, data: dict[str, Any]) -> "MemoryMetadata":
        importance = data.get("importance", 1.0)
        return cls(
            user_id=str(data.get("user_id", "")),
            type=MemoryType(data.get("type", MemoryType.FACT.value)),
            source=str(data.get("source", "conversation")),
            timestamp=float(data.get("timestamp", 0.0)),
            importance=min(max(float(importance), 0.0), 1.0),
        )


class MemoryDocument(BaseModel):
    """A long-term memory."""

    id: str
    content: str
    metadata: MemoryMetadata


class MemorySearchResult(BaseModel):
    """A scored match from a memory query."""

    id: str
    content: str
    metadata: MemoryMetadata
    distance: float
    relevance_score: float = Field(ge=0.0, le=1.0)


class MemoryWriteResult(BaseModel):
    """Outcome of add_or_update_memory."""

    id: str
    updated: bool
    replaced_id: str | None = None
