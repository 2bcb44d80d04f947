"""Three-tier memory context assembly.

The context handed to the model blends:

1. the active conversation (recent turns of this thread),
2. the user profile (long-lived facts and preferences), and
3. episodic memories (summaries of past sessions relevant to the message),

plus the stored summary of this thread once it has been summarized. Each
tier gets a fixed share of a character budget derived from the token limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ravenmind.memory.schema import PROFILE_TYPES, ConversationMessage, MemorySearchResult, MemoryType
from ravenmind.memory.utils import MESSAGE_OVERHEAD_CHARS, compute_tier_budgets, trim_string

if TYPE_CHECKING:
    from ravenmind.config.schema import MemoryConfig
    from ravenmind.memory.long_term import LongTermMemory
    from ravenmind.memory.storage import ConversationStore

logger = logging.getLogger(__name__)

PROFILE_QUERY = "user preferences personality facts"
ACTIVE_MESSAGE_LIMIT = 20
PROFILE_LIMIT = 10
EPISODIC_LIMIT = 5

# Memories the bot keeps about itself live under this user id
BOT_USER_ID = "bot"


@dataclass
class ChatContext:
    """Memory context for one chat turn."""

    system_context: str = ""
    conversation_history: list[ConversationMessage] = field(default_factory=list)


def trim_to_budget(messages: list[ConversationMessage], max_chars: int) -> list[ConversationMessage]:
    """Keep the newest messages that fit in max_chars.

    Walks from newest to oldest and stops at the first message that would
    overflow, so the oldest turns are dropped first.

    Returns:
        Kept messages in chronological order
    """
    kept: list[ConversationMessage] = []
    total = 0
    for message in reversed(messages):
        cost = len(message.content) + MESSAGE_OVERHEAD_CHARS
        if total + cost > max_chars:
            break
        kept.append(message)
        total += cost
    kept.reverse()
    return kept


def format_bullets(results: list[MemorySearchResult]) -> str:
    return "\n".join(f"- {r.content}" for r in results)


class MemoryContextAssembler:
    """Builds the bounded memory context for a chat turn."""

    def __init__(
        self,
        store: ConversationStore,
        long_term: LongTermMemory | None,
        config: MemoryConfig,
    ):
        """Initialize the assembler.

        Args:
            store: Conversation store for the active tier and summaries
            long_term: Long-term memory (None disables profile and episodic tiers)
            config: Memory configuration (budgets and thresholds)
        """
        self.store = store
        self.long_term = long_term
        self.config = config

    async def _search(
        self,
        user_id: str,
        query: str,
        types: tuple[MemoryType, ...],
        limit: int,
        threshold: float,
        exclude_ids: set[str] | None = None,
    ) -> list[MemorySearchResult]:
        if self.long_term is None or not self.config.enabled:
            return []
        return await self.long_term.search(
            user_id,
            query,
            types=types,
            limit=limit,
            threshold=threshold,
            exclude_ids=exclude_ids,
        )

    async def build_context_for_chat(
        self,
        user_id: str,
        thread_id: str,
        current_message: str,
    ) -> ChatContext:
        """Assemble memory context for a message.

        Args:
            user_id: Author of the message
            thread_id: Conversation thread (channel or DM)
            current_message: Text used as the episodic query

        Returns:
            ChatContext with the system context and trimmed history
        """
        budgets = compute_tier_budgets(
            self.config.max_context_tokens,
            self.config.tier_allocation,
            self.config.chars_per_token,
        )

        recent = await self.store.recent(user_id, thread_id, ACTIVE_MESSAGE_LIMIT)
        history = trim_to_budget(recent, budgets.active)

        profile = await self._search(
            user_id,
            PROFILE_QUERY,
            PROFILE_TYPES,
            PROFILE_LIMIT,
            self.config.profile_threshold,
        )
        episodic = await self._search(
            user_id,
            current_message,
            (MemoryType.EPISODIC,),
            EPISODIC_LIMIT,
            self.config.episodic_threshold,
            exclude_ids={r.id for r in profile},
        )

        sections: list[str] = []
        if profile:
            sections.append(f"## About This User\n{trim_string(format_bullets(profile), budgets.profile)}")
        if episodic:
            sections.append(
                f"## Relevant Past Conversations\n{trim_string(format_bullets(episodic), budgets.episodic)}"
            )

        metadata = await self.store.get_metadata(user_id, thread_id)
        if metadata and metadata.summarized and metadata.summary:
            sections.append(f"## Previous Session Summary\n{metadata.summary}")

        logger.debug(
            "Context for %s/%s: %d history, %d profile, %d episodic",
            user_id,
            thread_id,
            len(history),
            len(profile),
            len(episodic),
        )
        return ChatContext(system_context="\n\n".join(sections), conversation_history=history)

    async def build_full_context(self, user_id: str, query: str) -> str:
        """Profile and episodic context without a thread, plus the bot's own memories."""
        user_memories = await self._search(
            user_id,
            query,
            PROFILE_TYPES + (MemoryType.EPISODIC,),
            PROFILE_LIMIT,
            self.config.profile_threshold,
        )
        bot_memories = await self._search(
            BOT_USER_ID,
            query,
            PROFILE_TYPES + (MemoryType.EPISODIC,),
            PROFILE_LIMIT,
            self.config.profile_threshold,
        )

        parts: list[str] = []
        if user_memories:
            parts.append(f"## Recalled Memories About This User\n{format_bullets(user_memories)}")
        if bot_memories:
            parts.append(f"## My Own Memories & Knowledge\n{format_bullets(bot_memories)}")
        return "\n\n".join(parts)
