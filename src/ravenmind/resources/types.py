"""Data types for GPU resource coordination."""

import time
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum


class TaskType(StrEnum):
    """Workloads that consume GPU memory."""

    LLM_CHAT = "llm_chat"
    IMAGE_GENERATION = "image_generation"
    EMBEDDING = "embedding"
    SUMMARIZATION = "summarization"


class TaskPriority(IntEnum):
    """Allocation priority; higher values may evict lower ones."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class UsageLevel(StrEnum):
    """Coarse GPU pressure band."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


# Priority of each workload while it holds the GPU.
RESIDENT_PRIORITIES: dict[TaskType, TaskPriority] = {
    TaskType.LLM_CHAT: TaskPriority.HIGH,
    TaskType.IMAGE_GENERATION: TaskPriority.NORMAL,
    TaskType.EMBEDDING: TaskPriority.LOW,
    TaskType.SUMMARIZATION: TaskPriority.LOW,
}


@dataclass
class AllocationRequest:
    """A request for GPU memory."""

    request_id: str
    task_type: TaskType
    priority: TaskPriority = TaskPriority.NORMAL
    estimated_mb: int | None = None  # None = use the configured estimate
    user_id: str | None = None


@dataclass
class AllocationResult:
    """Outcome of an allocation request. Denial is a normal result."""

    granted: bool
    reason: str | None = None
    current_free_mb: int | None = None
    evicted: list[str] = field(default_factory=list)


@dataclass
class ActiveTask:
    """An outstanding allocation."""

    request_id: str
    task_type: TaskType
    priority: TaskPriority
    estimated_mb: int
    start_time: float = field(default_factory=time.monotonic)
    user_id: str | None = None


@dataclass
class GPUMemoryStatus:
    """Snapshot of GPU memory, in MB."""

    total_mb: int
    used_mb: int
    free_mb: int
    usage_percent: float
    source: str  # "comfyui" or "ollama"
    loaded_models: list[str] = field(default_factory=list)

    @classmethod
    def from_totals(
        cls,
        total_mb: int,
        used_mb: int,
        source: str,
        loaded_models: list[str] | None = None,
    ) -> "GPUMemoryStatus":
        used_mb = max(0, min(used_mb, total_mb))
        return cls(
            total_mb=total_mb,
            used_mb=used_mb,
            free_mb=total_mb - used_mb,
            usage_percent=used_mb / total_mb if total_mb else 0.0,
            source=source,
            loaded_models=loaded_models or [],
        )


@dataclass
class ModelLoadStatus:
    """Where a text model currently lives."""

    loaded: bool
    location: str  # "vram", "ram", "partial" or "unloaded"
    vram_used_mb: int = 0
    model_size_mb: int = 0
    model_name: str | None = None
