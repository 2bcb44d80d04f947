"""Tests for the image generation service."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from ravenmind.config.schema import ComfyUIConfig
from ravenmind.image.comfyui import ImageGenerationError, JobStatus, QueueStatus
from ravenmind.image.service import ImageService, build_workflow, sanitize_prompt
from ravenmind.resources.types import AllocationResult


@pytest.fixture
def comfy():
    client = MagicMock()
    client.health_check = AsyncMock(return_value=True)
    client.queue_status = AsyncMock(return_value=QueueStatus())
    client.submit = AsyncMock(return_value="p-1")
    client.poll_status = AsyncMock(
        return_value=JobStatus(done=True, outputs=[{"filename": "cat.png", "subfolder": "", "type": "output"}])
    )
    client.fetch_output = AsyncMock(return_value=b"png-bytes")
    client.cancel = AsyncMock(return_value=True)
    return client


@pytest.fixture
def comfy_config():
    return ComfyUIConfig(max_queue_size=3, max_jobs_per_user=1, timeout=1, poll_interval=0.01)


@pytest.fixture
def coordinator():
    coordinator = MagicMock()
    coordinator.request_image_generation_access = AsyncMock(return_value=AllocationResult(granted=True))
    return coordinator


class TestSanitizePrompt:
    """Test prompt cleaning."""

    def test_collapses_whitespace_and_control_chars(self):
        assert sanitize_prompt("a\x00 cat\n\n on  a mat") == "a cat on a mat"

    def test_rejects_short_long_and_non_strings(self):
        assert sanitize_prompt("hi") is None
        assert sanitize_prompt("x" * 1001) is None
        assert sanitize_prompt(None) is None


def test_build_workflow_uses_checkpoint_and_prompt():
    """Test the workflow wiring."""
    workflow = build_workflow("a red fox", "model.safetensors", seed=42)

    assert workflow["1"]["inputs"]["ckpt_name"] == "model.safetensors"
    assert workflow["2"]["inputs"]["text"] == "a red fox"
    assert workflow["5"]["inputs"]["seed"] == 42


class TestImageService:
    """Test the generation flow."""

    @pytest.mark.asyncio
    async def test_generate_success(self, comfy, comfy_config, coordinator):
        service = ImageService(comfy, comfy_config, coordinator)

        result = await service.generate_image("a cat on a mat", "u1", style="anime")

        assert result.success
        assert result.image == b"png-bytes"
        assert result.filename == "cat.png"
        workflow = comfy.submit.await_args.args[0]
        assert workflow["2"]["inputs"]["text"].startswith("a cat on a mat, anime style")
        request_id = coordinator.request_image_generation_access.await_args.args[0]
        coordinator.release_allocation.assert_called_once_with(request_id)
        assert service.active_jobs_for_user("u1") == 0

    @pytest.mark.asyncio
    async def test_service_unavailable(self, comfy, comfy_config):
        comfy.health_check.return_value = False
        service = ImageService(comfy, comfy_config)

        result = await service.generate_image("a cat", "u1")

        assert not result.success
        assert "unavailable" in result.error
        comfy.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_queue_full(self, comfy, comfy_config):
        comfy.queue_status.return_value = QueueStatus(running=1, pending=2)
        service = ImageService(comfy, comfy_config)

        result = await service.generate_image("a cat", "u1")

        assert not result.success
        assert "Queue is full (3/3)" in result.error

    @pytest.mark.asyncio
    async def test_per_user_limit(self, comfy, comfy_config):
        service = ImageService(comfy, comfy_config)
        service._active_jobs["other-job"] = "u1"

        result = await service.generate_image("a cat", "u1")

        assert not result.success
        assert "already have 1" in result.error

    @pytest.mark.asyncio
    async def test_invalid_prompt(self, comfy, comfy_config):
        service = ImageService(comfy, comfy_config)

        result = await service.generate_image("  ", "u1")

        assert result.error == "Invalid or empty prompt"

    @pytest.mark.asyncio
    async def test_gpu_busy(self, comfy, comfy_config, coordinator):
        coordinator.request_image_generation_access.return_value = AllocationResult(
            granted=False, reason="Insufficient VRAM"
        )
        service = ImageService(comfy, comfy_config, coordinator)

        result = await service.generate_image("a cat", "u1")

        assert not result.success
        assert "GPU is busy" in result.error
        comfy.submit.assert_not_awaited()
        request_id = coordinator.request_image_generation_access.await_args.args[0]
        coordinator.release_allocation.assert_called_once_with(request_id)

    @pytest.mark.asyncio
    async def test_submit_failure_releases_allocation(self, comfy, comfy_config, coordinator):
        comfy.submit.side_effect = ImageGenerationError("Failed to queue prompt: bad node")
        service = ImageService(comfy, comfy_config, coordinator)

        result = await service.generate_image("a cat", "u1")

        assert not result.success
        assert "bad node" in result.error
        coordinator.release_allocation.assert_called_once()

    @pytest.mark.asyncio
    async def test_timeout_cancels_job(self, comfy, comfy_config):
        comfy.poll_status.return_value = JobStatus(done=False)
        service = ImageService(comfy, comfy_config)

        result = await service.generate_image("a cat", "u1")

        assert result.error == "Generation timed out"
        comfy.cancel.assert_awaited_once_with("p-1")
