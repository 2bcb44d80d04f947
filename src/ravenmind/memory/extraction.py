"""Post-turn extraction of long-term facts from a conversation."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ravenmind.llm.client import GenerationOptions, Message
from ravenmind.memory.schema import MemoryType

if TYPE_CHECKING:
    from ravenmind.llm.client import TextGenerator
    from ravenmind.memory.long_term import LongTermMemory
    from ravenmind.memory.schema import ConversationMessage

logger = logging.getLogger(__name__)

EXTRACTABLE_TYPES = {MemoryType.USER_PROFILE, MemoryType.PREFERENCE, MemoryType.FACT}

EXTRACTION_PROMPT = """You extract durable facts about the USER from a chat exchange.

Extract only information worth remembering across conversations:
- user_profile: who the user is (name, job, location, background)
- preference: likes, dislikes, how they want to be answered
- fact: other stable facts the user stated about themselves or their projects

Ignore small talk, questions, and anything the assistant said about itself.
Rate importance from 0.0 (trivial) to 1.0 (essential).

Return a JSON array with this exact format:
```json
[
  {"content": "short third-person statement", "type": "user_profile|preference|fact", "importance": 0.5}
]
```

Return an empty array [] if there is nothing worth remembering."""


def clean_json_response(response: str) -> str:
    """Strip code fence markers around a JSON reply."""
    response = response.strip()

    if response.startswith("```json"):
        response = response[7:]
    elif response.startswith("```"):
        response = response[3:]

    if response.endswith("```"):
        response = response[:-3]

    return response.strip()


def parse_extracted_facts(response: str) -> list[dict[str, Any]]:
    """Parse the extractor's reply into validated fact dicts.

    Malformed replies and malformed entries are dropped.
    """
    try:
        data = json.loads(clean_json_response(response))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse memory extraction JSON: %s", e)
        return []
    if not isinstance(data, list):
        logger.warning("Expected list from memory extraction, got %s", type(data).__name__)
        return []

    facts = []
    for item in data:
        if not isinstance(item, dict):
            continue
        content = str(item.get("content", "")).strip()
        try:
            memory_type = MemoryType(item.get("type", MemoryType.FACT.value))
            importance = float(item.get("importance", 0.5))
        except (ValueError, TypeError):
            continue
        if not content or memory_type not in EXTRACTABLE_TYPES:
            continue
        facts.append(
            {
                "content": content,
                "type": memory_type,
                "importance": min(max(importance, 0.0), 1.0),
            }
        )
    return facts


class MemoryExtractor:
    """Turns a (user, assistant) exchange into de-duplicated long-term memories."""

    def __init__(
        self,
        backend: TextGenerator,
        long_term: LongTermMemory,
        model: str | None = None,
        min_importance: float = 0.3,
    ):
        self.backend = backend
        self.long_term = long_term
        self.model = model
        self.min_importance = min_importance

    async def extract(self, user_id: str, messages: list[ConversationMessage]) -> int:
        """Extract and store facts from a conversation excerpt.

        Args:
            user_id: Owner of the memories
            messages: Turns to mine, oldest first

        Returns:
            Number of memories written (inserted or updated)
        """
        transcript = "\n\n".join(
            f"{m.role.capitalize()}:\n{m.content}" for m in messages if m.content.strip()
        )
        if not transcript:
            return 0

        response = await self.backend.generate(
            EXTRACTION_PROMPT,
            [Message(role="user", content=f"Extract memories from this exchange:\n{transcript}")],
            GenerationOptions(temperature=0.1, max_tokens=512, model=self.model),
        )

        written = 0
        for fact in parse_extracted_facts(response):
            if fact["importance"] < self.min_importance:
                continue
            result = await self.long_term.add_or_update_memory(
                user_id,
                fact["content"],
                memory_type=fact["type"],
                source="conversation",
                importance=fact["importance"],
            )
            written += 1
            logger.debug(
                "%s %s memory %s for user %s",
                "Updated" if result.updated else "Stored",
                fact["type"].value,
                result.id,
                user_id,
            )
        return written
