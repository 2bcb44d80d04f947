"""Tests for memory extraction."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from ravenmind.memory.extraction import MemoryExtractor, clean_json_response, parse_extracted_facts
from ravenmind.memory.long_term import LongTermMemory
from ravenmind.memory.schema import ConversationMessage, MemoryType

EXTRACTOR_REPLY = """```json
[
  {"content": "Works as a nurse", "type": "user_profile", "importance": 0.9},
  {"content": "Prefers short answers", "type": "preference", "importance": 0.6},
  {"content": "Said hello", "type": "fact", "importance": 0.1}
]
```"""


def test_clean_json_response():
    assert clean_json_response('```json\n[1, 2]\n```') == "[1, 2]"
    assert clean_json_response("```\n{}\n```") == "{}"
    assert clean_json_response("  []  ") == "[]"


class TestParseExtractedFacts:
    """Test parsing of the extractor reply."""

    def test_parses_fenced_list(self):
        facts = parse_extracted_facts(EXTRACTOR_REPLY)

        assert [f["type"] for f in facts] == [MemoryType.USER_PROFILE, MemoryType.PREFERENCE, MemoryType.FACT]

    def test_invalid_json(self):
        assert parse_extracted_facts("I could not find anything.") == []

    def test_not_a_list(self):
        assert parse_extracted_facts('{"content": "x"}') == []

    def test_drops_bad_entries(self):
        reply = """[
            {"content": "Session recap", "type": "episodic", "importance": 0.8},
            {"content": "", "type": "fact"},
            {"content": "Lives in Oslo", "type": "hometown"},
            "not a dict",
            {"content": "Lives in Oslo", "type": "user_profile", "importance": 3}
        ]"""

        facts = parse_extracted_facts(reply)

        assert facts == [{"content": "Lives in Oslo", "type": MemoryType.USER_PROFILE, "importance": 1.0}]


class TestMemoryExtractor:
    """Test end-to-end extraction into long-term memory."""

    @pytest.fixture
    def backend(self):
        backend = MagicMock()
        backend.generate = AsyncMock(return_value=EXTRACTOR_REPLY)
        return backend

    @pytest.fixture
    def long_term(self, vector_store, fake_embedding):
        return LongTermMemory(vector_store, fake_embedding)

    @pytest.mark.asyncio
    async def test_stores_important_facts(self, backend, long_term):
        extractor = MemoryExtractor(backend, long_term, model="qwen2.5:3b", min_importance=0.3)
        messages = [
            ConversationMessage(role="user", content="Hi! I'm a nurse, keep it short please."),
            ConversationMessage(role="assistant", content="Will do."),
        ]

        written = await extractor.extract("u1", messages)

        assert written == 2
        contents = {m.content for m in await long_term.get_all("u1")}
        assert contents == {"Works as a nurse", "Prefers short answers"}

        _, prompt_messages, options = backend.generate.await_args.args
        assert "User:\nHi! I'm a nurse" in prompt_messages[0].content
        assert options.model == "qwen2.5:3b"
        assert options.temperature == 0.1

    @pytest.mark.asyncio
    async def test_repeat_extraction_updates(self, backend, long_term):
        extractor = MemoryExtractor(backend, long_term)
        messages = [ConversationMessage(role="user", content="I'm a nurse.")]

        await extractor.extract("u1", messages)
        await extractor.extract("u1", messages)

        assert await long_term.count("u1") == 2

    @pytest.mark.asyncio
    async def test_empty_transcript(self, backend, long_term):
        extractor = MemoryExtractor(backend, long_term)

        assert await extractor.extract("u1", [ConversationMessage(role="user", content="   ")]) == 0
        backend.generate.assert_not_awaited()
