"""Sleep/wake lifecycle for the text-generation model.

The gate starts asleep. ``ensure_awake`` loads the model on demand and a
background checker unloads it after a period of inactivity. Concurrent wake
(or sleep) requests share one in-flight task so the backend sees a single
load (or unload) call.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import httpx

from ravenmind.llm.client import BackendError, GenerationOptions, Message

if TYPE_CHECKING:
    from ravenmind.config.schema import OllamaConfig
    from ravenmind.llm.client import TextBackend
    from ravenmind.resources.coordinator import ResourceCoordinator

logger = logging.getLogger(__name__)

SleepStateCallback = Callable[[bool], Any]


class ModelWakeError(BackendError):
    """The model could not be loaded."""


class ModelLifecycleGate:
    """Wraps a text backend with inactivity-driven sleep and coalesced wake."""

    def __init__(
        self,
        backend: TextBackend,
        config: OllamaConfig,
        coordinator: ResourceCoordinator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the gate.

        Args:
            backend: Text backend to manage
            config: Ollama configuration (keep_alive, sleep_after, limits)
            coordinator: Optional resource coordinator to inform of loads
            clock: Monotonic time source
        """
        self.backend = backend
        self.config = config
        self.coordinator = coordinator
        self._clock = clock

        self._asleep = True
        self._last_activity = clock()
        self._wake_task: asyncio.Task[None] | None = None
        self._sleep_task: asyncio.Task[None] | None = None
        self._checker_task: asyncio.Task[None] | None = None
        self._callbacks: list[SleepStateCallback] = []
        self._allocation_id: str | None = None

        if coordinator is not None:
            coordinator.on_model_unloaded(self._handle_external_unload)

    @property
    def model(self) -> str:
        return self.backend.model

    @property
    def is_asleep(self) -> bool:
        return self._asleep

    def touch(self) -> None:
        """Record activity, postponing sleep."""
        self._last_activity = self._clock()

    def seconds_until_sleep(self) -> float:
        """Seconds until the inactivity timer fires, or 0 when asleep."""
        if self._asleep:
            return 0.0
        elapsed = self._clock() - self._last_activity
        return max(0.0, self.config.sleep_after - elapsed)

    def on_sleep_state_change(self, callback: SleepStateCallback) -> None:
        """Register a callback invoked with True on sleep and False on wake."""
        self._callbacks.append(callback)

    def _set_asleep(self, asleep: bool) -> None:
        changed = asleep != self._asleep
        self._asleep = asleep
        if not changed:
            return
        for callback in self._callbacks:
            try:
                callback(asleep)
            except Exception:
                logger.exception("Sleep state callback failed")

    # -- wake -------------------------------------------------------------

    async def ensure_awake(self) -> None:
        """Make sure the model is loaded.

        Idempotent; concurrent callers await the same wake operation.

        Raises:
            ModelWakeError: If the model could not be loaded
        """
        if not self._asleep:
            self.touch()
            return

        if self._wake_task is None or self._wake_task.done():
            self._wake_task = asyncio.create_task(self._wake())
        await asyncio.shield(self._wake_task)

    async def _wake(self) -> None:
        # A sleep in flight must finish before loading again
        if self._sleep_task is not None and not self._sleep_task.done():
            await asyncio.shield(self._sleep_task)

        logger.info("Waking model %s", self.model)
        started = self._clock()

        if self.coordinator is not None:
            self._allocation_id = f"llm-{uuid.uuid4().hex[:8]}"
            granted = await self.coordinator.request_llm_access(self._allocation_id)
            if not granted:
                # The backend spills to host memory when VRAM is short
                logger.info("No VRAM reserved for %s, loading with host-memory spillover", self.model)
                self.coordinator.release_allocation(self._allocation_id)
                self._allocation_id = None

        try:
            await self.backend.warm_load(self.model, self.config.keep_alive)
        except Exception as e:
            if self._allocation_id and self.coordinator is not None:
                self.coordinator.release_allocation(self._allocation_id)
                self._allocation_id = None
            logger.warning("Failed to wake model %s: %s", self.model, e)
            raise ModelWakeError(f"Failed to load model {self.model}") from e

        self.touch()
        self._set_asleep(False)
        if self.coordinator is not None:
            self.coordinator.notify_model_loaded(self.model)
        logger.info("Model %s awake after %.1fs", self.model, self._clock() - started)

    # -- sleep ------------------------------------------------------------

    async def sleep(self) -> None:
        """Unload the model. Concurrent callers share one unload."""
        if self._asleep:
            return

        if self._sleep_task is None or self._sleep_task.done():
            self._sleep_task = asyncio.create_task(self._sleep())
        await asyncio.shield(self._sleep_task)

    async def _sleep(self) -> None:
        if self._asleep:
            return

        logger.info("Putting model %s to sleep", self.model)
        try:
            await self.backend.unload(self.model)
        except httpx.HTTPStatusError as e:
            if e.response.status_code not in (400, 404):
                logger.warning("Failed to put model to sleep: %s", e)
                return
            logger.warning("Model %s appears already unloaded; marking as asleep", self.model)
        except Exception as e:
            logger.warning("Failed to put model to sleep: %s", e)
            return

        self._mark_unloaded()

    def _mark_unloaded(self) -> None:
        if self.coordinator is not None:
            if self._allocation_id:
                self.coordinator.release_allocation(self._allocation_id)
                self._allocation_id = None
            self.coordinator.notify_model_unloaded(self.model)
        self._set_asleep(True)

    def _handle_external_unload(self, model: str) -> None:
        # The coordinator evicted the model to make room for another workload
        if model == self.model and not self._asleep:
            logger.info("Model %s was evicted by the resource coordinator", model)
            self._allocation_id = None
            self._set_asleep(True)

    # -- inactivity checker -----------------------------------------------

    def start(self) -> None:
        """Start the background inactivity checker."""
        if self._checker_task is None or self._checker_task.done():
            self._checker_task = asyncio.create_task(self._check_loop())

    async def stop(self) -> None:
        """Stop the inactivity checker."""
        if self._checker_task is not None:
            self._checker_task.cancel()
            try:
                await self._checker_task
            except asyncio.CancelledError:
                pass
            self._checker_task = None

    async def _check_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.sleep_check_interval)
            await self.check_inactivity()

    async def check_inactivity(self) -> bool:
        """Sleep the model if it has been idle long enough.

        Returns:
            True if a sleep was triggered
        """
        if self._asleep:
            return False
        if self._clock() - self._last_activity < self.config.sleep_after:
            return False
        await self.sleep()
        return True

    # -- generation -------------------------------------------------------

    def normalize_options(
        self,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> GenerationOptions:
        """Clamp sampling options to safe ranges."""
        if temperature is None:
            temperature = self.config.temperature
        if max_tokens is None:
            max_tokens = self.config.max_tokens

        return GenerationOptions(
            temperature=min(max(temperature, 0.0), 2.0),
            max_tokens=min(max(1, int(max_tokens)), self.config.max_tokens),
            model=model,
        )

    async def generate(
        self,
        system_prompt: str,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Wake the model if needed and generate a reply.

        Raises:
            ModelWakeError: If the model could not be woken
            BackendError: If generation failed
        """
        return await self.generate_with_options(
            system_prompt, messages, self.normalize_options(temperature, max_tokens)
        )

    async def generate_with_options(
        self, system_prompt: str, messages: list[Message], options: GenerationOptions
    ) -> str:
        """Generate with explicit options, waking the model first."""
        await self.ensure_awake()
        self.touch()
        try:
            return await self.backend.generate(system_prompt, messages, options)
        finally:
            self.touch()

    def background(self) -> GatedGenerator:
        """A generator for background work that keeps this gate informed."""
        return GatedGenerator(self)


class GatedGenerator:
    """Routes background generation for the managed model through its gate.

    Requests naming another model go straight to the backend; the gate only
    tracks residency of its own model.
    """

    def __init__(self, gate: ModelLifecycleGate):
        self.gate = gate

    async def generate(
        self,
        system_prompt: str,
        messages: list[Message],
        options: GenerationOptions | None = None,
    ) -> str:
        options = options or GenerationOptions()
        if options.model not in (None, self.gate.model):
            return await self.gate.backend.generate(system_prompt, messages, options)
        return await self.gate.generate_with_options(system_prompt, messages, options)
