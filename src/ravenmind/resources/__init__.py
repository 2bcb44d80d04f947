"""GPU memory coordination."""

from ravenmind.resources.coordinator import ResourceCoordinator
from ravenmind.resources.types import AllocationRequest, AllocationResult, TaskPriority, TaskType

__all__ = ["AllocationRequest", "AllocationResult", "ResourceCoordinator", "TaskPriority", "TaskType"]
