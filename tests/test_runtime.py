"""Tests for runtime wiring."""

import httpx
import pytest
import respx

from ravenmind.config.schema import RavenmindConfig
from ravenmind.runtime import build_runtime

OLLAMA = "http://localhost:11434"


@pytest.fixture
def runtime_config(tmp_path) -> RavenmindConfig:
    config = RavenmindConfig()
    config.memory.storage_path = str(tmp_path / "conversations.db")
    config.gpu.total_vram_mb = 24576
    config.ollama.preload_on_startup = False
    return config


def test_build_runtime_wires_tools(runtime_config, vector_store, fake_embedding):
    """Test every built-in tool is offered when enabled."""
    runtime = build_runtime(runtime_config, vector_store=vector_store, embedding_client=fake_embedding)

    names = {t.name for t in runtime.dispatcher.catalog()}

    assert {"think", "calculate", "web_search", "fetch_url", "remember", "recall", "generate_image"} <= names
    assert runtime.memory.long_term.vector_store is vector_store
    assert runtime.coordinator.gpu_stats is runtime.comfyui
    assert runtime.coordinator.total_vram_mb == 24576
    assert runtime.memory.summarizer.backend.gate is runtime.gate
    assert runtime.memory.extractor.backend.gate is runtime.gate


def test_disabled_features(runtime_config, vector_store, fake_embedding):
    """Test disabled features drop their tools and dependencies."""
    runtime_config.comfyui.enabled = False
    runtime_config.memory.enabled = False
    runtime_config.tools.web_search = False

    runtime = build_runtime(runtime_config, vector_store=vector_store, embedding_client=fake_embedding)

    names = {t.name for t in runtime.dispatcher.catalog()}
    assert not names & {"generate_image", "remember", "recall", "web_search"}
    assert runtime.memory.long_term is None
    assert runtime.memory.extractor is None
    assert runtime.coordinator.gpu_stats is None


@pytest.mark.asyncio
async def test_start_and_stop(runtime_config, vector_store, fake_embedding):
    """Test the runtime starts its background work and shuts down cleanly."""
    runtime_config.comfyui.enabled = False
    runtime = build_runtime(runtime_config, vector_store=vector_store, embedding_client=fake_embedding)

    with respx.mock(assert_all_called=False) as mock:
        mock.get(f"{OLLAMA}/api/ps").mock(return_value=httpx.Response(200, json={"models": []}))
        await runtime.start()
        status = runtime.coordinator.status
        await runtime.stop()

    assert status.source == "ollama"
    assert status.used_mb == 0


@pytest.mark.asyncio
async def test_start_preloads_model(runtime_config, vector_store, fake_embedding):
    """Test the model is woken at startup when configured."""
    runtime_config.comfyui.enabled = False
    runtime_config.ollama.preload_on_startup = True
    runtime = build_runtime(runtime_config, vector_store=vector_store, embedding_client=fake_embedding)

    with respx.mock(assert_all_called=False) as mock:
        mock.get(f"{OLLAMA}/api/ps").mock(return_value=httpx.Response(200, json={"models": []}))
        load = mock.post(f"{OLLAMA}/api/generate").mock(return_value=httpx.Response(200, json={"done": True}))
        await runtime.start()
        awake = not runtime.gate.is_asleep
        await runtime.stop()

    assert awake
    assert load.called
