"""Construction and lifecycle of the long-lived service objects.

``build_runtime`` wires every component from a loaded configuration. Nothing
here is a module-level singleton: callers own the returned Runtime and must
``start`` and ``stop`` it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from ravenmind.agent.loop import Orchestrator
from ravenmind.config.schema import RavenmindConfig
from ravenmind.embeddings.client import EmbeddingClient
from ravenmind.embeddings.ollama import OllamaEmbedding
from ravenmind.hardware.detect import resolve_total_vram_mb
from ravenmind.image.comfyui import ComfyUIClient
from ravenmind.image.service import ImageService
from ravenmind.llm.lifecycle import ModelLifecycleGate
from ravenmind.llm.ollama import OllamaClient
from ravenmind.mcp.manager import MCPManager
from ravenmind.memory.context import MemoryContextAssembler
from ravenmind.memory.extraction import MemoryExtractor
from ravenmind.memory.long_term import LongTermMemory
from ravenmind.memory.manager import MemoryManager
from ravenmind.memory.storage import ConversationStore
from ravenmind.memory.summarizer import SessionSummarizer
from ravenmind.resources.coordinator import ResourceCoordinator
from ravenmind.security.impersonation import ImpersonationDetector
from ravenmind.security.permissions import ToolPermissionChecker
from ravenmind.tools.base import ToolContext
from ravenmind.tools.dispatcher import ToolDispatcher
from ravenmind.tools.registry import get_enabled_tools, load_builtin_tools
from ravenmind.vector.chromadb import ChromaDBVectorStore
from ravenmind.vector.store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """All service objects of a running bot."""

    config: RavenmindConfig
    backend: OllamaClient
    coordinator: ResourceCoordinator
    gate: ModelLifecycleGate
    comfyui: ComfyUIClient
    images: ImageService
    memory: MemoryManager
    mcp: MCPManager
    dispatcher: ToolDispatcher
    orchestrator: Orchestrator
    embeddings: EmbeddingClient | None = None

    async def start(self) -> None:
        """Start polling, the inactivity checker and MCP connections."""
        await self.coordinator.refresh_status()
        self.coordinator.start()
        self.gate.start()
        await self.mcp.connect_all()

        pruned = await self.memory.store.prune_expired()
        if pruned:
            logger.info("Pruned %d expired conversation threads", pruned)

        if self.config.ollama.preload_on_startup:
            try:
                await self.gate.ensure_awake()
            except Exception as e:
                logger.warning("Model preload failed: %s", e)

    async def stop(self) -> None:
        """Drain background work and close every connection."""
        await self.orchestrator.aclose()
        await self.gate.stop()
        await self.coordinator.stop()
        await self.mcp.disconnect_all()
        await self.comfyui.close()
        if isinstance(self.embeddings, OllamaEmbedding):
            await self.embeddings.close()
        await self.backend.close()


def _vector_store(config: RavenmindConfig) -> VectorStore:
    persist = config.vector_store.persist_directory
    return ChromaDBVectorStore(
        collection_name=config.vector_store.collection_name,
        persist_directory=os.path.expanduser(persist) if persist else None,
        host=config.vector_store.host,
        port=config.vector_store.port,
    )


def build_runtime(
    config: RavenmindConfig,
    *,
    vector_store: VectorStore | None = None,
    embedding_client: EmbeddingClient | None = None,
) -> Runtime:
    """Build every service object from configuration.

    Args:
        config: Loaded configuration
        vector_store: Store to use instead of ChromaDB from config
        embedding_client: Embedding client to use instead of Ollama

    Returns:
        An unstarted Runtime
    """
    backend = OllamaClient(
        model=config.ollama.model,
        host=config.ollama.host,
        timeout=config.ollama.timeout,
    )
    comfyui = ComfyUIClient(base_url=config.comfyui.url)
    coordinator = ResourceCoordinator(
        config=config.gpu,
        text_backend=backend,
        gpu_stats=comfyui if config.comfyui.enabled else None,
        total_vram_mb=resolve_total_vram_mb(config.gpu.total_vram_mb),
    )
    gate = ModelLifecycleGate(backend, config.ollama, coordinator=coordinator)
    images = ImageService(comfyui, config.comfyui, coordinator=coordinator)

    store = ConversationStore(
        config.memory.storage_path,
        ttl_seconds=config.memory.conversation_ttl,
        max_messages=config.memory.max_thread_messages,
    )

    long_term: LongTermMemory | None = None
    extractor: MemoryExtractor | None = None
    if config.memory.enabled:
        if embedding_client is None:
            embedding_client = OllamaEmbedding(
                model=config.embedding.model,
                host=config.ollama.host,
                timeout=config.embedding.timeout,
            )
        long_term = LongTermMemory(
            vector_store or _vector_store(config),
            embedding_client,
            decay_per_day=config.memory.time_decay_per_day,
            dedup_threshold=config.memory.dedup_threshold,
        )
        extractor = MemoryExtractor(
            gate.background(),
            long_term,
            model=config.summarization.model,
            min_importance=config.memory.min_importance,
        )

    summarizer = SessionSummarizer(
        gate.background(), store, long_term, config.summarization, coordinator=coordinator
    )
    memory = MemoryManager(
        store,
        MemoryContextAssembler(store, long_term, config.memory),
        config.memory,
        long_term=long_term,
        summarizer=summarizer,
        extractor=extractor,
    )

    load_builtin_tools()
    builtins = get_enabled_tools(
        web_search=config.tools.web_search,
        fetch_url=config.tools.fetch_url,
        image_generation=config.comfyui.enabled,
        memory=config.memory.enabled,
    )

    def context_factory(user_id: str) -> ToolContext:
        return ToolContext(
            user_id=user_id,
            config=config.tools,
            memory=memory,
            images=images if config.comfyui.enabled else None,
        )

    mcp = MCPManager.from_config(config.mcp)
    dispatcher = ToolDispatcher(
        {t.name: t for t in builtins},
        config.agent,
        context_factory,
        mcp_manager=mcp,
    )
    orchestrator = Orchestrator(
        gate=gate,
        memory=memory,
        permissions=ToolPermissionChecker(config.security),
        detector=ImpersonationDetector(config.security.impersonation),
        dispatcher=dispatcher,
        config=config,
    )

    return Runtime(
        config=config,
        backend=backend,
        coordinator=coordinator,
        gate=gate,
        comfyui=comfyui,
        images=images,
        memory=memory,
        mcp=mcp,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
        embeddings=embedding_client,
    )
