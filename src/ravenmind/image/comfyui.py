"""ComfyUI image-generation backend client."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx

from ravenmind.llm.retry import with_retry

logger = logging.getLogger(__name__)


class ImageGenerationError(Exception):
    """ComfyUI rejected or failed a request."""


@dataclass
class SystemStats:
    """GPU memory as reported by ComfyUI."""

    gpu_total_bytes: int
    gpu_free_bytes: int
    device_name: str = ""


@dataclass
class QueueStatus:
    """ComfyUI queue depth."""

    running: int = 0
    pending: int = 0

    @property
    def size(self) -> int:
        return self.running + self.pending


@dataclass
class JobStatus:
    """Progress of a submitted prompt."""

    done: bool
    outputs: list[dict[str, Any]] = field(default_factory=list)


class ComfyUIClient:
    """Thin async client for the ComfyUI HTTP API."""

    def __init__(self, base_url: str = "http://localhost:8188", timeout: float = 30.0):
        """Initialize ComfyUI client.

        Args:
            base_url: ComfyUI server URL
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.client_id = uuid.uuid4().hex
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async def _send() -> httpx.Response:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
            return response

        return await with_retry(_send, description=f"ComfyUI {method} {path}")

    async def health_check(self) -> bool:
        """Return True if ComfyUI answers /system_stats."""
        try:
            response = await self._http.get("/system_stats", timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def system_stats(self) -> SystemStats | None:
        """Report memory of the first CUDA device, or None if unavailable."""
        try:
            response = await self._http.get("/system_stats", timeout=5.0)
            response.raise_for_status()
        except httpx.HTTPError:
            return None

        for device in response.json().get("devices", []):
            if device.get("type") == "cuda":
                return SystemStats(
                    gpu_total_bytes=int(device.get("vram_total", 0)),
                    gpu_free_bytes=int(device.get("vram_free", 0)),
                    device_name=device.get("name", ""),
                )
        return None

    async def queue_status(self) -> QueueStatus:
        """Return queue depth; an unreachable server reports an empty queue."""
        try:
            response = await self._http.get("/queue", timeout=5.0)
            response.raise_for_status()
        except httpx.HTTPError:
            return QueueStatus()

        data = response.json()
        return QueueStatus(
            running=len(data.get("queue_running", [])),
            pending=len(data.get("queue_pending", [])),
        )

    async def submit(self, workflow: dict[str, Any]) -> str:
        """Queue a workflow.

        Returns:
            The prompt id

        Raises:
            ImageGenerationError: If ComfyUI rejects the workflow
        """
        try:
            response = await self._request(
                "POST", "/prompt", json={"prompt": workflow, "client_id": self.client_id}
            )
        except httpx.HTTPStatusError as e:
            raise ImageGenerationError(f"Failed to queue prompt: {e.response.text[:200]}") from e

        prompt_id = response.json().get("prompt_id")
        if not prompt_id:
            raise ImageGenerationError("ComfyUI returned no prompt id")
        return prompt_id

    async def poll_status(self, prompt_id: str) -> JobStatus:
        """Check whether a prompt has finished."""
        response = await self._http.get(f"/history/{prompt_id}", timeout=5.0)
        if response.status_code != 200:
            return JobStatus(done=False)

        history = response.json().get(prompt_id)
        if not history or not history.get("status", {}).get("completed"):
            return JobStatus(done=False)

        images = []
        for node_output in history.get("outputs", {}).values():
            images.extend(node_output.get("images", []))
        return JobStatus(done=True, outputs=images)

    async def fetch_output(self, filename: str, subfolder: str = "", folder_type: str = "output") -> bytes:
        """Download a generated image."""
        response = await self._request(
            "GET",
            "/view",
            params={"filename": filename, "subfolder": subfolder, "type": folder_type},
        )
        return response.content

    async def cancel(self, prompt_id: str) -> bool:
        """Remove a prompt from the queue."""
        try:
            response = await self._http.post("/queue", json={"delete": [prompt_id]})
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def free_memory(self) -> bool:
        """Ask ComfyUI to unload its models."""
        try:
            response = await self._http.post("/free", json={"unload_models": True, "free_memory": True})
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        await self._http.aclose()
