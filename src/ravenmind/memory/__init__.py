"""Conversation and long-term memory for ravenmind.

Provides SQLite-backed per-thread conversation storage, per-user long-term
memory in a vector store, and the three-tier context assembly that blends
them into each prompt.

Components:

- :class:`MemoryManager` - Facade used by the orchestrator and memory tools
- :class:`ConversationStore` - SQLite thread storage with TTL expiry
- :class:`LongTermMemory` - De-duplicating user memory over ChromaDB
- :class:`MemoryContextAssembler` - Budgeted three-tier context builder
"""

from ravenmind.memory.context import ChatContext, MemoryContextAssembler
from ravenmind.memory.long_term import LongTermMemory
from ravenmind.memory.manager import MemoryManager
from ravenmind.memory.storage import ConversationStore

__all__ = [
    "ChatContext",
    "ConversationStore",
    "LongTermMemory",
    "MemoryContextAssembler",
    "MemoryManager",
]
