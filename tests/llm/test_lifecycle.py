"""Tests for the model sleep/wake gate."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ravenmind.config.schema import OllamaConfig
from ravenmind.llm.client import GenerationOptions, Message
from ravenmind.llm.lifecycle import ModelLifecycleGate, ModelWakeError


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def backend():
    backend = MagicMock()
    backend.model = "qwen2.5:14b"
    backend.warm_load = AsyncMock()
    backend.unload = AsyncMock()
    backend.generate = AsyncMock(return_value="hello")
    return backend


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ollama_config():
    return OllamaConfig(sleep_after=300, keep_alive=600, max_tokens=2048)


@pytest.fixture
def gate(backend, ollama_config, clock):
    return ModelLifecycleGate(backend, ollama_config, clock=clock)


def http_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://localhost:11434/api/generate")
    return httpx.HTTPStatusError("error", request=request, response=httpx.Response(code, request=request))


class TestWake:
    """Test waking the model."""

    @pytest.mark.asyncio
    async def test_starts_asleep(self, gate):
        assert gate.is_asleep
        assert gate.seconds_until_sleep() == 0.0

    @pytest.mark.asyncio
    async def test_ensure_awake_loads_model(self, gate, backend):
        await gate.ensure_awake()

        assert not gate.is_asleep
        backend.warm_load.assert_awaited_once_with("qwen2.5:14b", 600)

    @pytest.mark.asyncio
    async def test_concurrent_wakes_share_one_load(self, gate, backend):
        release = asyncio.Event()

        async def slow_load(model, keep_alive):
            await release.wait()

        backend.warm_load.side_effect = slow_load
        waiters = [asyncio.create_task(gate.ensure_awake()) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(*waiters)

        assert backend.warm_load.await_count == 1
        assert not gate.is_asleep

    @pytest.mark.asyncio
    async def test_wake_failure_raises_and_stays_asleep(self, gate, backend):
        backend.warm_load.side_effect = httpx.ConnectError("refused")

        with pytest.raises(ModelWakeError):
            await gate.ensure_awake()
        assert gate.is_asleep

    @pytest.mark.asyncio
    async def test_wake_registers_with_coordinator(self, backend, ollama_config, clock):
        coordinator = MagicMock()
        coordinator.request_llm_access = AsyncMock(return_value=True)
        gate = ModelLifecycleGate(backend, ollama_config, coordinator=coordinator, clock=clock)

        await gate.ensure_awake()

        coordinator.request_llm_access.assert_awaited_once()
        coordinator.notify_model_loaded.assert_called_once_with("qwen2.5:14b")

    @pytest.mark.asyncio
    async def test_wake_proceeds_when_vram_denied(self, backend, ollama_config, clock):
        coordinator = MagicMock()
        coordinator.request_llm_access = AsyncMock(return_value=False)
        gate = ModelLifecycleGate(backend, ollama_config, coordinator=coordinator, clock=clock)

        await gate.ensure_awake()

        backend.warm_load.assert_awaited_once()
        assert not gate.is_asleep
        allocation_id = coordinator.request_llm_access.await_args.args[0]
        coordinator.release_allocation.assert_called_once_with(allocation_id)


class TestSleep:
    """Test putting the model to sleep."""

    @pytest.mark.asyncio
    async def test_sleep_unloads(self, gate, backend):
        await gate.ensure_awake()
        await gate.sleep()

        backend.unload.assert_awaited_once_with("qwen2.5:14b")
        assert gate.is_asleep

    @pytest.mark.asyncio
    async def test_sleep_when_asleep_is_noop(self, gate, backend):
        await gate.sleep()
        backend.unload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_found_still_marks_asleep(self, gate, backend):
        backend.unload.side_effect = http_error(404)
        await gate.ensure_awake()

        await gate.sleep()

        assert gate.is_asleep

    @pytest.mark.asyncio
    async def test_server_error_keeps_awake(self, gate, backend):
        backend.unload.side_effect = http_error(500)
        await gate.ensure_awake()

        await gate.sleep()

        assert not gate.is_asleep

    @pytest.mark.asyncio
    async def test_inactivity_triggers_sleep(self, gate, backend, clock):
        await gate.ensure_awake()

        clock.now += 100
        assert await gate.check_inactivity() is False
        assert gate.seconds_until_sleep() == pytest.approx(200)

        clock.now += 250
        assert await gate.check_inactivity() is True
        assert gate.is_asleep

    @pytest.mark.asyncio
    async def test_callbacks_notified(self, gate):
        states = []
        gate.on_sleep_state_change(states.append)

        await gate.ensure_awake()
        await gate.sleep()

        assert states == [False, True]

    @pytest.mark.asyncio
    async def test_external_unload_marks_asleep(self, backend, ollama_config, clock):
        coordinator = MagicMock()
        coordinator.request_llm_access = AsyncMock(return_value=True)
        gate = ModelLifecycleGate(backend, ollama_config, coordinator=coordinator, clock=clock)
        await gate.ensure_awake()

        evicted = coordinator.on_model_unloaded.call_args.args[0]
        evicted("qwen2.5:14b")

        assert gate.is_asleep


class TestGenerate:
    """Test generation through the gate."""

    @pytest.mark.asyncio
    async def test_generate_wakes_then_generates(self, gate, backend):
        reply = await gate.generate("system", [Message(role="user", content="hi")])

        assert reply == "hello"
        backend.warm_load.assert_awaited_once()
        options = backend.generate.await_args.args[2]
        assert options.temperature == 0.7
        assert options.max_tokens == 2048

    def test_options_clamped(self, gate):
        options = gate.normalize_options(temperature=5.0, max_tokens=100_000)
        assert options.temperature == 2.0
        assert options.max_tokens == 2048

        options = gate.normalize_options(temperature=-1.0, max_tokens=0)
        assert options.temperature == 0.0
        assert options.max_tokens == 1


class TestBackgroundGeneration:
    """Test background work on the managed model goes through the gate."""

    @pytest.mark.asyncio
    async def test_same_model_wakes_and_touches(self, gate, backend, clock):
        generator = gate.background()
        clock.now += 250

        reply = await generator.generate("system", [], GenerationOptions(model="qwen2.5:14b", max_tokens=512))

        assert reply == "hello"
        backend.warm_load.assert_awaited_once()
        assert not gate.is_asleep
        assert gate.seconds_until_sleep() == 300
        assert backend.generate.await_args.args[2].max_tokens == 512

    @pytest.mark.asyncio
    async def test_default_model_goes_through_gate(self, gate, backend):
        await gate.background().generate("system", [])

        backend.warm_load.assert_awaited_once()
        assert not gate.is_asleep

    @pytest.mark.asyncio
    async def test_other_model_bypasses_gate(self, gate, backend):
        options = GenerationOptions(model="qwen2.5:3b")

        await gate.background().generate("system", [], options)

        backend.warm_load.assert_not_awaited()
        assert gate.is_asleep
        backend.generate.assert_awaited_once_with("system", [], options)
