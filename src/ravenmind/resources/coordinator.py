"""GPU memory coordination between the text and image backends.

The coordinator keeps a cached view of GPU memory, refreshed on a fixed
interval, and arbitrates allocation requests against it. The text backend
can spill to host memory, so chat requests are granted whenever a text model
is already resident. Image generation cannot, so it must fit in free VRAM,
and may evict the text model to get there.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from ravenmind.resources.types import (
    RESIDENT_PRIORITIES,
    ActiveTask,
    AllocationRequest,
    AllocationResult,
    GPUMemoryStatus,
    ModelLoadStatus,
    TaskPriority,
    TaskType,
    UsageLevel,
)

if TYPE_CHECKING:
    from ravenmind.config.schema import GPUConfig
    from ravenmind.llm.client import LoadedModel, TextBackend

logger = logging.getLogger(__name__)

MB = 1024 * 1024
DEFAULT_TOTAL_VRAM_MB = 24576

ModelListener = Callable[[str], Any]


class GPUStatsSource(Protocol):
    """Anything that can report device memory (ComfyUI's /system_stats)."""

    async def system_stats(self) -> Any:
        """Return an object with gpu_total_bytes / gpu_free_bytes, or None."""
        ...


class ResourceCoordinator:
    """Arbitrates GPU memory between workloads."""

    def __init__(
        self,
        config: GPUConfig,
        text_backend: TextBackend,
        gpu_stats: GPUStatsSource | None = None,
        total_vram_mb: int | None = None,
    ):
        """Initialize the coordinator.

        Args:
            config: GPU configuration section
            text_backend: Text backend used for residency queries and unloads
            gpu_stats: Optional low-level memory source, preferred when available
            total_vram_mb: Total VRAM when only the text backend reports usage
        """
        self.config = config
        self.text_backend = text_backend
        self.gpu_stats = gpu_stats
        self.total_vram_mb = total_vram_mb or config.total_vram_mb or DEFAULT_TOTAL_VRAM_MB

        self.estimates: dict[TaskType, int] = {
            TaskType.LLM_CHAT: config.llm_estimate_mb,
            TaskType.IMAGE_GENERATION: config.image_estimate_mb,
            TaskType.EMBEDDING: config.embedding_estimate_mb,
            TaskType.SUMMARIZATION: config.summarization_estimate_mb,
        }

        self._status: GPUMemoryStatus | None = None
        self._loaded_models: list[LoadedModel] = []
        self._active: dict[str, ActiveTask] = {}
        self._pending: list[AllocationRequest] = []
        self._usage_level = UsageLevel.NORMAL
        self._unloaded_listeners: list[ModelListener] = []
        self._loaded_listeners: list[ModelListener] = []
        self._lock = asyncio.Lock()
        self._poll_task: asyncio.Task[None] | None = None

    # -- status -----------------------------------------------------------

    @property
    def status(self) -> GPUMemoryStatus | None:
        """Last known memory status. Never blocks."""
        return self._status

    @property
    def active_tasks(self) -> list[ActiveTask]:
        return list(self._active.values())

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def text_model_resident(self) -> bool:
        """Whether the text backend reported a loaded model at the last refresh."""
        return bool(self._loaded_models)

    def start(self) -> None:
        """Start background polling."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop background polling."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.refresh_status()
            except Exception as e:
                logger.debug("GPU status refresh failed: %s", e)
            await asyncio.sleep(self.config.poll_interval)

    async def refresh_status(self) -> GPUMemoryStatus | None:
        """Refresh the cached status and process pending requests."""
        async with self._lock:
            await self._refresh_unlocked()
            self._process_pending()
            return self._status

    async def _query_text_backend(self) -> list[LoadedModel] | None:
        try:
            return await self.text_backend.list_loaded()
        except Exception as e:
            logger.debug("Text backend status unavailable: %s", e)
            return None

    async def _query_gpu_stats(self) -> GPUMemoryStatus | None:
        if self.gpu_stats is None:
            return None
        try:
            stats = await self.gpu_stats.system_stats()
        except Exception as e:
            logger.debug("GPU stats unavailable: %s", e)
            return None
        if stats is None or not stats.gpu_total_bytes:
            return None

        total_mb = round(stats.gpu_total_bytes / MB)
        free_mb = round(stats.gpu_free_bytes / MB)
        return GPUMemoryStatus.from_totals(total_mb, total_mb - free_mb, source="comfyui")

    async def _refresh_unlocked(self) -> None:
        models, device_status = await asyncio.gather(
            self._query_text_backend(),
            self._query_gpu_stats(),
        )

        if models is not None:
            self._loaded_models = models
        names = [m.name for m in self._loaded_models]

        if device_status is not None:
            device_status.loaded_models = names
            self._status = device_status
        elif models is not None:
            used_mb = sum(round(m.vram_bytes / MB) for m in models)
            self._status = GPUMemoryStatus.from_totals(
                self.total_vram_mb, used_mb, source="ollama", loaded_models=names
            )

        self._check_usage_level()
        self._expire_stale_tasks()

    def _check_usage_level(self) -> None:
        if self._status is None:
            return
        usage = self._status.usage_percent
        if usage >= self.config.critical_threshold:
            level = UsageLevel.CRITICAL
        elif usage >= self.config.warning_threshold:
            level = UsageLevel.WARNING
        else:
            level = UsageLevel.NORMAL

        if level != self._usage_level:
            log = logger.warning if level != UsageLevel.NORMAL else logger.info
            log(
                "GPU memory %s: %d%% used (%dMB / %dMB)",
                level.value,
                round(usage * 100),
                self._status.used_mb,
                self._status.total_mb,
            )
            self._usage_level = level

    def _expire_stale_tasks(self) -> None:
        now = time.monotonic()
        for request_id, task in list(self._active.items()):
            if now - task.start_time > self.config.task_expiry:
                logger.warning(
                    "Force-releasing stale %s allocation %s", task.task_type.value, request_id
                )
                del self._active[request_id]

    def _available_mb(self) -> int:
        if self._status is None:
            return 0
        return self._status.free_mb - self.config.min_free_buffer_mb

    # -- allocation -------------------------------------------------------

    def _record(self, request: AllocationRequest, required_mb: int) -> None:
        self._active[request.request_id] = ActiveTask(
            request_id=request.request_id,
            task_type=request.task_type,
            priority=request.priority,
            estimated_mb=required_mb,
            user_id=request.user_id,
        )

    def _required_mb(self, request: AllocationRequest) -> int:
        if request.estimated_mb is not None:
            return request.estimated_mb
        return self.estimates[request.task_type]

    async def request_allocation(self, request: AllocationRequest) -> AllocationResult:
        """Request GPU memory for a task.

        Args:
            request: Allocation request

        Returns:
            AllocationResult; ``granted=False`` means the request was queued
            until the next refresh and the caller should retry or degrade.
        """
        async with self._lock:
            if request.request_id in self._active:
                return AllocationResult(
                    granted=False, reason=f"Request id {request.request_id} already active"
                )

            required_mb = self._required_mb(request)

            if self._status is None:
                await self._refresh_unlocked()

            if request.task_type == TaskType.LLM_CHAT and self.text_model_resident:
                self._record(request, required_mb)
                logger.debug("Chat allocation granted (model resident, spillover allowed)")
                return AllocationResult(granted=True, current_free_mb=self._available_mb())

            if self._status is None:
                # Nothing reports memory; proceed optimistically
                self._record(request, required_mb)
                logger.debug("No GPU status available, granting %s", request.request_id)
                return AllocationResult(granted=True)

            available_mb = self._available_mb()
            if available_mb >= required_mb:
                self._record(request, required_mb)
                logger.debug(
                    "Allocated %dMB for %s (%dMB available)",
                    required_mb,
                    request.task_type.value,
                    available_mb,
                )
                return AllocationResult(granted=True, current_free_mb=available_mb)

            evicted = await self._try_free(required_mb, request.priority)
            available_mb = self._available_mb()
            if evicted and available_mb >= required_mb:
                self._record(request, required_mb)
                logger.info(
                    "Freed VRAM and allocated %dMB for %s", required_mb, request.task_type.value
                )
                return AllocationResult(
                    granted=True, current_free_mb=available_mb, evicted=evicted
                )

            self._pending.append(request)
            logger.info(
                "Allocation pending for %s: need %dMB, have %dMB",
                request.task_type.value,
                required_mb,
                available_mb,
            )
            return AllocationResult(
                granted=False,
                reason=f"Insufficient VRAM: need {required_mb}MB, available {available_mb}MB",
                current_free_mb=available_mb,
                evicted=evicted,
            )

    async def _try_free(self, required_mb: int, priority: TaskPriority) -> list[str]:
        """Unload the text model when that would satisfy the request.

        Never evicts an incumbent whose priority exceeds the requester's.
        """
        if not self._loaded_models or self._status is None:
            return []
        if priority < RESIDENT_PRIORITIES[TaskType.LLM_CHAT]:
            return []

        reclaimable_mb = sum(round(m.vram_bytes / MB) for m in self._loaded_models)
        if self._status.free_mb + reclaimable_mb < required_mb + self.config.min_free_buffer_mb:
            return []

        logger.info("Unloading text model(s) to free %dMB", reclaimable_mb)
        evicted = await self._unload_all()
        await self._refresh_unlocked()
        return evicted

    async def _unload_all(self) -> list[str]:
        evicted = []
        for model in list(self._loaded_models):
            try:
                await self.text_backend.unload(model.name)
            except Exception as e:
                logger.error("Failed to unload %s: %s", model.name, e)
                continue
            evicted.append(model.name)
            self._notify(self._unloaded_listeners, model.name)
        if evicted:
            self._drop_tasks(TaskType.LLM_CHAT)
        return evicted

    def _process_pending(self) -> None:
        if not self._pending:
            return

        pending = sorted(self._pending, key=lambda r: r.priority, reverse=True)
        self._pending = []

        for request in pending:
            required_mb = self._required_mb(request)
            available_mb = self._available_mb()
            if available_mb >= required_mb:
                self._record(request, required_mb)
                logger.debug("Pending %s request granted: %dMB", request.task_type.value, required_mb)
            else:
                # Dropped; callers retry explicitly
                logger.debug(
                    "Pending %s request dropped: need %dMB, have %dMB",
                    request.task_type.value,
                    required_mb,
                    available_mb,
                )

    def release_allocation(self, request_id: str) -> bool:
        """Release an allocation, or withdraw a request still queued.

        Callers whose request was denied release its id too, so a queued
        request is not granted after they have given up.

        Returns:
            True if the request id was active or queued
        """
        task = self._active.pop(request_id, None)
        if task is None:
            queued = len(self._pending)
            self._pending = [r for r in self._pending if r.request_id != request_id]
            return len(self._pending) < queued
        logger.debug(
            "Released %s allocation %s after %.1fs",
            task.task_type.value,
            request_id,
            time.monotonic() - task.start_time,
        )
        return True

    def is_allocated(self, request_id: str) -> bool:
        return request_id in self._active

    async def request_llm_access(self, request_id: str) -> bool:
        """Request access for waking the text model."""
        result = await self.request_allocation(
            AllocationRequest(
                request_id=request_id,
                task_type=TaskType.LLM_CHAT,
                priority=TaskPriority.NORMAL,
            )
        )
        return result.granted

    async def request_image_generation_access(
        self, request_id: str, user_id: str | None = None
    ) -> AllocationResult:
        """Request memory for image generation at elevated priority.

        May evict the text model.
        """
        return await self.request_allocation(
            AllocationRequest(
                request_id=request_id,
                task_type=TaskType.IMAGE_GENERATION,
                priority=TaskPriority.HIGH,
                user_id=user_id,
            )
        )

    # -- model notifications ----------------------------------------------

    def on_model_unloaded(self, callback: ModelListener) -> None:
        """Register a callback invoked with the model name after an eviction."""
        self._unloaded_listeners.append(callback)

    def on_model_loaded(self, callback: ModelListener) -> None:
        """Register a callback invoked with the model name after a load."""
        self._loaded_listeners.append(callback)

    def _notify(self, listeners: list[ModelListener], model: str) -> None:
        for callback in listeners:
            try:
                callback(model)
            except Exception:
                logger.exception("Model listener failed for %s", model)

    def _drop_tasks(self, task_type: TaskType) -> None:
        for request_id, task in list(self._active.items()):
            if task.task_type == task_type:
                del self._active[request_id]

    def notify_model_loaded(self, model: str) -> None:
        """Record that the text backend loaded a model outside the coordinator."""
        logger.debug("Model loaded: %s", model)
        self._notify(self._loaded_listeners, model)

    def notify_model_unloaded(self, model: str) -> None:
        """Record that the text backend unloaded a model outside the coordinator."""
        logger.debug("Model unloaded: %s", model)
        self._loaded_models = [m for m in self._loaded_models if m.name != model]
        self._drop_tasks(TaskType.LLM_CHAT)

    async def unload_text_models(self) -> list[str]:
        """Force-unload every resident text model."""
        async with self._lock:
            await self._refresh_unlocked()
            evicted = await self._unload_all()
            await self._refresh_unlocked()
            return evicted

    # -- diagnostics ------------------------------------------------------

    async def get_model_load_status(self) -> ModelLoadStatus:
        """Report where the primary text model lives (VRAM, RAM or split)."""
        models = await self._query_text_backend()
        if not models:
            return ModelLoadStatus(loaded=False, location="unloaded")

        model = models[0]
        ratio = model.vram_bytes / model.size_bytes if model.size_bytes else 0.0
        if ratio < 0.1:
            location = "ram"
        elif ratio > 0.9:
            location = "vram"
        else:
            location = "partial"

        return ModelLoadStatus(
            loaded=True,
            location=location,
            vram_used_mb=round(model.vram_bytes / MB),
            model_size_mb=round(model.size_bytes / MB),
            model_name=model.name,
        )

    async def wait_for_vram(
        self,
        required_mb: int,
        timeout: float = 60.0,
        check_interval: float = 2.0,
    ) -> bool:
        """Wait until required_mb is available above the buffer.

        Returns:
            True if memory became available before the timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            await self.refresh_status()
            available = self._available_mb() if self._status else None
            if available is not None and available >= required_mb:
                logger.info("VRAM available: %dMB (needed %dMB)", available, required_mb)
                return True
            if loop.time() >= deadline:
                break
            await asyncio.sleep(check_interval)

        logger.warning("Timed out waiting for %dMB VRAM after %.0fs", required_mb, timeout)
        return False

    async def calculate_optimal_gpu_layers(
        self,
        model_size_mb: int = 14500,
        total_layers: int = 60,
    ) -> int:
        """Estimate how many transformer layers fit in free VRAM.

        Returns:
            Layer count for the backend's ``num_gpu`` option, or -1 for all
        """
        status = await self.refresh_status()
        if status is None:
            logger.warning("No VRAM status available, defaulting to full GPU loading")
            return -1

        available = self._available_mb()
        if available >= model_size_mb:
            return -1

        per_layer = model_size_mb / total_layers
        layers = max(0, min(int(available // per_layer), total_layers))
        logger.info(
            "Limited VRAM (%dMB available), loading %d/%d layers to GPU",
            available,
            layers,
            total_layers,
        )
        return layers
