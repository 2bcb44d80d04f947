"""Tests for the memory manager."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from ravenmind.config.schema import MemoryConfig
from ravenmind.memory.context import MemoryContextAssembler
from ravenmind.memory.long_term import LongTermMemory
from ravenmind.memory.manager import MemoryManager, should_summarize
from ravenmind.memory.schema import ConversationMessage, ConversationMetadata, MemoryType, utcnow
from ravenmind.memory.storage import ConversationStore


@pytest.fixture
def store(tmp_path):
    return ConversationStore(tmp_path / "conversations.db")


@pytest.fixture
def long_term(vector_store, fake_embedding):
    return LongTermMemory(vector_store, fake_embedding)


@pytest.fixture
def manager(store, long_term):
    config = MemoryConfig()
    return MemoryManager(store, MemoryContextAssembler(store, long_term, config), config, long_term=long_term)


class TestShouldSummarize:
    """Test the summarization trigger."""

    def test_message_count(self):
        metadata = ConversationMetadata(message_count=15)
        assert should_summarize(metadata, MemoryConfig())

    def test_idle(self):
        now = utcnow()
        metadata = ConversationMetadata(message_count=2, last_activity_at=now - timedelta(minutes=31))
        assert should_summarize(metadata, MemoryConfig(), now)

    def test_fresh_short_thread(self):
        now = utcnow()
        metadata = ConversationMetadata(message_count=4, last_activity_at=now - timedelta(minutes=5))
        assert not should_summarize(metadata, MemoryConfig(), now)

    def test_already_summarized(self):
        metadata = ConversationMetadata(message_count=50, summarized=True)
        assert not should_summarize(metadata, MemoryConfig())


class TestSummarizationTrigger:
    """Test check_and_trigger_summarization."""

    @pytest.mark.asyncio
    async def test_triggers_when_due(self, manager, store):
        manager.summarizer = MagicMock()
        manager.summarizer.summarize = AsyncMock(return_value="A summary.")
        for i in range(15):
            await manager.add_message("u1", "t1", "user", f"message {i}")

        assert await manager.check_and_trigger_summarization("u1", "t1") is True
        user_id, thread_id, messages = manager.summarizer.summarize.await_args.args
        assert (user_id, thread_id, len(messages)) == ("u1", "t1", 15)

    @pytest.mark.asyncio
    async def test_not_due(self, manager):
        manager.summarizer = MagicMock()
        manager.summarizer.summarize = AsyncMock()
        await manager.add_message("u1", "t1", "user", "hi")

        assert await manager.check_and_trigger_summarization("u1", "t1") is False
        manager.summarizer.summarize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_triggers_write_one_summary(self, manager):
        """Test turns finishing together on one thread summarize it once."""
        release = asyncio.Event()

        async def slow_summary(*args):
            await release.wait()
            return "A summary."

        manager.summarizer = MagicMock()
        manager.summarizer.summarize = AsyncMock(side_effect=slow_summary)
        for i in range(15):
            await manager.add_message("u1", "t1", "user", f"message {i}")

        first = asyncio.create_task(manager.check_and_trigger_summarization("u1", "t1"))
        second = asyncio.create_task(manager.check_and_trigger_summarization("u1", "t1"))
        await asyncio.sleep(0.05)
        release.set()

        assert await asyncio.gather(first, second) == [True, False]
        manager.summarizer.summarize.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_threads_not_blocked(self, manager):
        release = asyncio.Event()

        async def slow_summary(*args):
            await release.wait()
            return "A summary."

        manager.summarizer = MagicMock()
        manager.summarizer.summarize = AsyncMock(side_effect=slow_summary)
        for thread in ("t1", "t2"):
            for i in range(15):
                await manager.add_message("u1", thread, "user", f"message {i}")

        tasks = [asyncio.create_task(manager.check_and_trigger_summarization("u1", t)) for t in ("t1", "t2")]
        await asyncio.sleep(0.05)
        release.set()

        assert await asyncio.gather(*tasks) == [True, True]

    @pytest.mark.asyncio
    async def test_without_summarizer(self, manager):
        assert await manager.check_and_trigger_summarization("u1", "t1") is False


class TestLongTerm:
    """Test explicit memory operations."""

    @pytest.mark.asyncio
    async def test_remember_maps_category(self, manager, vector_store):
        result = await manager.remember("u1", "Works night shifts", "profile")

        metadata = vector_store.records[result.id][2]
        assert metadata["type"] == MemoryType.USER_PROFILE.value
        assert metadata["source"] == "explicit"

    @pytest.mark.asyncio
    async def test_unknown_category_is_fact(self, manager, vector_store):
        result = await manager.remember("u1", "Has two cats", "pets")
        assert vector_store.records[result.id][2]["type"] == "fact"

    @pytest.mark.asyncio
    async def test_recall(self, manager):
        await manager.remember("u1", "Has two cats")

        results = await manager.recall("u1", "cats")

        assert [r.content for r in results] == ["Has two cats"]

    @pytest.mark.asyncio
    async def test_disabled(self, store, long_term):
        config = MemoryConfig(enabled=False)
        manager = MemoryManager(store, MemoryContextAssembler(store, long_term, config), config, long_term=long_term)

        assert await manager.remember("u1", "Has two cats") is None
        assert await manager.recall("u1", "cats") == []
        assert await manager.get_all_memories("u1") == []

    @pytest.mark.asyncio
    async def test_episodic_and_deletion(self, manager):
        memory_id = await manager.store_episodic_memory("u1", "They debugged a flaky test.")

        memories = await manager.get_all_memories("u1")
        assert [m.metadata.type for m in memories] == [MemoryType.EPISODIC]

        assert await manager.delete_memory("u1", memory_id) is True
        assert await manager.delete_all_memories("u1") == 0


class TestExtraction:
    """Test add_from_conversation."""

    @pytest.mark.asyncio
    async def test_missing_user_id(self, manager):
        manager.extractor = MagicMock()
        manager.extractor.extract = AsyncMock()

        assert await manager.add_from_conversation("", [ConversationMessage(role="user", content="hi")]) == 0
        manager.extractor.extract.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delegates_to_extractor(self, manager):
        manager.extractor = MagicMock()
        manager.extractor.extract = AsyncMock(return_value=2)
        messages = [ConversationMessage(role="user", content="I'm a nurse")]

        assert await manager.add_from_conversation("u1", messages) == 2
        manager.extractor.extract.assert_awaited_once_with("u1", messages)
