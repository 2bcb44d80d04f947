"""High-level memory management for chat threads."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from ravenmind.memory.schema import (
    PROFILE_TYPES,
    ConversationMessage,
    ConversationMetadata,
    MemoryDocument,
    MemorySearchResult,
    MemoryType,
    MemoryWriteResult,
    utcnow,
)

if TYPE_CHECKING:
    from ravenmind.config.schema import MemoryConfig
    from ravenmind.memory.context import ChatContext, MemoryContextAssembler
    from ravenmind.memory.extraction import MemoryExtractor
    from ravenmind.memory.long_term import LongTermMemory
    from ravenmind.memory.storage import ConversationStore
    from ravenmind.memory.summarizer import SessionSummarizer

logger = logging.getLogger(__name__)

# Categories accepted by the remember tool
CATEGORY_TYPES: dict[str, MemoryType] = {
    "profile": MemoryType.USER_PROFILE,
    "user_profile": MemoryType.USER_PROFILE,
    "preference": MemoryType.PREFERENCE,
    "fact": MemoryType.FACT,
}


def should_summarize(
    metadata: ConversationMetadata,
    config: MemoryConfig,
    now: datetime | None = None,
) -> bool:
    """Decide whether a thread is due for summarization."""
    if metadata.summarized:
        return False
    if metadata.message_count >= config.summarize_after_messages:
        return True
    idle = ((now or utcnow()) - metadata.last_activity_at).total_seconds()
    return idle >= config.summarize_after_idle


class MemoryManager:
    """Facade over the conversation store and long-term memory.

    This is the single object the orchestrator and the memory tools talk to.
    """

    def __init__(
        self,
        store: ConversationStore,
        assembler: MemoryContextAssembler,
        config: MemoryConfig,
        long_term: LongTermMemory | None = None,
        summarizer: SessionSummarizer | None = None,
        extractor: MemoryExtractor | None = None,
    ):
        """Initialize memory manager.

        Args:
            store: Conversation store
            assembler: Context assembler
            config: Memory configuration
            long_term: Long-term memory (None disables it)
            summarizer: Session summarizer (None disables summaries)
            extractor: Fact extractor (None disables extraction)
        """
        self.store = store
        self.assembler = assembler
        self.config = config
        self.long_term = long_term
        self.summarizer = summarizer
        self.extractor = extractor
        # Threads with a summary in flight
        self._summarizing: set[tuple[str, str]] = set()

    @property
    def long_term_enabled(self) -> bool:
        return self.long_term is not None and self.config.enabled

    # -- conversation -----------------------------------------------------

    async def build_context_for_chat(self, user_id: str, thread_id: str, message: str) -> ChatContext:
        return await self.assembler.build_context_for_chat(user_id, thread_id, message)

    async def build_full_context(self, user_id: str, query: str) -> str:
        return await self.assembler.build_full_context(user_id, query)

    async def add_message(
        self,
        user_id: str,
        thread_id: str,
        role: str,
        content: str,
        guild_id: str | None = None,
    ) -> None:
        """Persist a turn to the thread."""
        await self.store.append(
            user_id,
            thread_id,
            ConversationMessage(role=role, content=content),  # type: ignore[arg-type]
            guild_id=guild_id,
        )

    async def check_and_trigger_summarization(self, user_id: str, thread_id: str) -> bool:
        """Summarize the thread if it is due.

        A thread already being summarized is skipped, so turns finishing
        close together write one summary.

        Returns:
            True if a summary was written
        """
        if self.summarizer is None:
            return False

        key = (user_id, thread_id)
        if key in self._summarizing:
            logger.debug("Summary already in progress for %s/%s", user_id, thread_id)
            return False
        self._summarizing.add(key)
        try:
            metadata = await self.store.get_metadata(user_id, thread_id)
            if metadata is None or not should_summarize(metadata, self.config):
                return False

            messages = await self.store.recent(user_id, thread_id, self.config.summary_message_count)
            summary = await self.summarizer.summarize(user_id, thread_id, messages)
            return summary is not None
        finally:
            self._summarizing.discard(key)

    async def add_from_conversation(self, user_id: str, messages: list[ConversationMessage]) -> int:
        """Extract long-term memories from a finished exchange.

        Returns:
            Number of memories written
        """
        if not user_id:
            logger.warning("Attempted to add memory without user_id - skipping")
            return 0
        if self.extractor is None or not self.long_term_enabled:
            return 0
        return await self.extractor.extract(user_id, messages)

    # -- long-term --------------------------------------------------------

    async def remember(self, user_id: str, fact: str, category: str = "fact") -> MemoryWriteResult | None:
        """Explicitly store a fact for a user."""
        if not self.long_term_enabled:
            return None
        memory_type = CATEGORY_TYPES.get(category.lower(), MemoryType.FACT)
        return await self.long_term.add_or_update_memory(  # type: ignore[union-attr]
            user_id, fact, memory_type=memory_type, source="explicit", importance=1.0
        )

    async def recall(self, user_id: str, query: str, limit: int = 5) -> list[MemorySearchResult]:
        """Search a user's profile and episodic memories."""
        if not self.long_term_enabled:
            return []
        return await self.long_term.search(  # type: ignore[union-attr]
            user_id,
            query,
            types=PROFILE_TYPES + (MemoryType.EPISODIC,),
            limit=limit,
            threshold=self.config.profile_threshold,
        )

    async def store_episodic_memory(self, user_id: str, summary: str) -> str | None:
        if not self.long_term_enabled:
            return None
        return await self.long_term.add_memory(  # type: ignore[union-attr]
            user_id, summary, memory_type=MemoryType.EPISODIC, source="session_summary"
        )

    async def get_all_memories(self, user_id: str) -> list[MemoryDocument]:
        if not self.long_term_enabled:
            return []
        return await self.long_term.get_all(user_id)  # type: ignore[union-attr]

    async def delete_memory(self, user_id: str, memory_id: str) -> bool:
        if not self.long_term_enabled:
            return False
        return await self.long_term.delete_memory(user_id, memory_id)  # type: ignore[union-attr]

    async def delete_all_memories(self, user_id: str) -> int:
        if not self.long_term_enabled:
            return 0
        return await self.long_term.delete_all_user_memories(user_id)  # type: ignore[union-attr]
