"""Session summarization into episodic memory."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from ravenmind.llm.client import GenerationOptions, Message
from ravenmind.memory.schema import ConversationMetadata, MemoryType
from ravenmind.resources.types import AllocationRequest, TaskPriority, TaskType

if TYPE_CHECKING:
    from ravenmind.config.schema import SummarizationConfig
    from ravenmind.llm.client import TextGenerator
    from ravenmind.memory.long_term import LongTermMemory
    from ravenmind.memory.schema import ConversationMessage
    from ravenmind.memory.storage import ConversationStore
    from ravenmind.resources.coordinator import ResourceCoordinator

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """Summarize this conversation between a user and an AI assistant.

Write 3-6 sentences in the third person covering:
- the topics discussed and questions asked
- decisions, conclusions, or answers reached
- anything the user said they would follow up on

Do not invent details. Reply with the summary only."""


class SessionSummarizer:
    """Summarizes a thread, stores the summary, and marks the thread summarized."""

    def __init__(
        self,
        backend: TextGenerator,
        store: ConversationStore,
        long_term: LongTermMemory | None,
        config: SummarizationConfig,
        coordinator: ResourceCoordinator | None = None,
    ):
        self.backend = backend
        self.store = store
        self.long_term = long_term
        self.config = config
        self.coordinator = coordinator

    async def summarize(
        self,
        user_id: str,
        thread_id: str,
        messages: list[ConversationMessage],
    ) -> str | None:
        """Summarize messages and record the result.

        Returns:
            The summary, or None if nothing was summarized
        """
        if len(messages) < 2:
            return None

        request_id = f"sum-{uuid.uuid4().hex[:8]}"
        if self.coordinator is not None:
            allocation = await self.coordinator.request_allocation(
                AllocationRequest(
                    request_id=request_id,
                    task_type=TaskType.SUMMARIZATION,
                    priority=TaskPriority.LOW,
                    user_id=user_id,
                )
            )
            if not allocation.granted:
                logger.info("Skipping summarization of %s/%s: %s", user_id, thread_id, allocation.reason)
                self.coordinator.release_allocation(request_id)
                return None

        try:
            transcript = "\n".join(f"{m.role}: {m.content}" for m in messages)
            summary = await self.backend.generate(
                SUMMARY_PROMPT,
                [Message(role="user", content=transcript)],
                GenerationOptions(
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    model=self.config.model,
                ),
            )
        finally:
            if self.coordinator is not None:
                self.coordinator.release_allocation(request_id)

        summary = summary.strip()
        if not summary:
            return None

        if self.long_term is not None:
            await self.long_term.add_memory(
                user_id,
                summary,
                memory_type=MemoryType.EPISODIC,
                source="session_summary",
            )

        metadata = await self.store.get_metadata(user_id, thread_id) or ConversationMetadata()
        metadata.summarized = True
        metadata.summary = summary
        await self.store.set_metadata(user_id, thread_id, metadata)
        logger.info("Summarized thread %s for user %s", thread_id, user_id)
        return summary
