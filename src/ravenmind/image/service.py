"""Image generation on ComfyUI, coordinated with the text model for GPU memory."""

from __future__ import annotations

import asyncio
import logging
import random
import re
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from ravenmind.image.comfyui import ImageGenerationError

if TYPE_CHECKING:
    from ravenmind.config.schema import ComfyUIConfig
    from ravenmind.image.comfyui import ComfyUIClient
    from ravenmind.resources.coordinator import ResourceCoordinator

logger = logging.getLogger(__name__)

STYLE_PRESETS: dict[str, str] = {
    "realistic": "photorealistic, highly detailed, 8k, professional photography",
    "anime": "anime style, vibrant colors, studio ghibli inspired, detailed",
    "digital-art": "digital art, concept art, artstation trending, highly detailed",
    "oil-painting": "oil painting, classical art style, textured, masterpiece",
    "watercolor": "watercolor painting, soft colors, artistic, flowing",
    "sketch": "pencil sketch, detailed line art, black and white, artistic",
    "3d-render": "3d render, octane render, unreal engine, highly detailed, volumetric lighting",
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ImageResult:
    """Outcome of an image request. Failures are values, not exceptions."""

    success: bool
    image: bytes | None = None
    filename: str | None = None
    error: str | None = None


def sanitize_prompt(prompt: Any) -> str | None:
    """Strip control characters and collapse whitespace.

    Returns:
        The cleaned prompt, or None if it is empty or outside 3-1000 chars
    """
    if not isinstance(prompt, str):
        return None
    cleaned = _WHITESPACE.sub(" ", _CONTROL_CHARS.sub("", prompt)).strip()
    if len(cleaned) < 3 or len(cleaned) > 1000:
        return None
    return cleaned


def build_workflow(
    prompt: str,
    checkpoint: str,
    width: int = 1024,
    height: int = 1024,
    steps: int = 4,
    seed: int = -1,
) -> dict[str, Any]:
    """Build a minimal text-to-image workflow for a turbo checkpoint."""
    if seed < 0:
        seed = random.randint(0, 999_999_999)

    return {
        "1": {"class_type": "CheckpointLoaderSimple", "inputs": {"ckpt_name": checkpoint}},
        "2": {"class_type": "CLIPTextEncode", "inputs": {"clip": ["1", 1], "text": prompt}},
        "3": {"class_type": "CLIPTextEncode", "inputs": {"clip": ["1", 1], "text": ""}},
        "4": {
            "class_type": "EmptyLatentImage",
            "inputs": {"batch_size": 1, "height": height, "width": width},
        },
        "5": {
            "class_type": "KSampler",
            "inputs": {
                "cfg": 1.0,  # turbo models want low CFG
                "denoise": 1.0,
                "latent_image": ["4", 0],
                "model": ["1", 0],
                "negative": ["3", 0],
                "positive": ["2", 0],
                "sampler_name": "euler",
                "scheduler": "simple",
                "seed": seed,
                "steps": steps,
            },
        },
        "6": {"class_type": "VAEDecode", "inputs": {"samples": ["5", 0], "vae": ["1", 2]}},
        "7": {
            "class_type": "SaveImage",
            "inputs": {"filename_prefix": "ravenmind", "images": ["6", 0]},
        },
    }


class ImageService:
    """Runs image jobs under a GPU allocation."""

    def __init__(
        self,
        client: ComfyUIClient,
        config: ComfyUIConfig,
        coordinator: ResourceCoordinator | None = None,
    ):
        self.client = client
        self.config = config
        self.coordinator = coordinator
        self._active_jobs: dict[str, str] = {}  # prompt id or placeholder -> user id

    def active_jobs_for_user(self, user_id: str) -> int:
        return sum(1 for owner in self._active_jobs.values() if owner == user_id)

    async def can_accept_job(self) -> tuple[bool, str | None]:
        """Check the ComfyUI queue against the configured limit."""
        queue = await self.client.queue_status()
        if queue.size >= self.config.max_queue_size:
            return False, f"Queue is full ({queue.size}/{self.config.max_queue_size})"
        return True, None

    async def generate_image(
        self,
        prompt: str,
        user_id: str,
        style: str | None = None,
    ) -> ImageResult:
        """Generate an image for a user.

        Args:
            prompt: Text description
            user_id: Requesting user
            style: Optional key of STYLE_PRESETS

        Returns:
            ImageResult with the PNG bytes on success
        """
        if not await self.client.health_check():
            return ImageResult(
                success=False,
                error="Image generation service is currently unavailable. Please try again later.",
            )

        accepted, reason = await self.can_accept_job()
        if not accepted:
            logger.warning("Rejected image request: %s", reason)
            return ImageResult(success=False, error=f"Cannot generate image: {reason}")

        if self.active_jobs_for_user(user_id) >= self.config.max_jobs_per_user:
            logger.warning("User %s hit concurrent image job limit", user_id)
            return ImageResult(
                success=False,
                error=f"You already have {self.config.max_jobs_per_user} images generating. Please wait.",
            )

        cleaned = sanitize_prompt(prompt)
        if cleaned is None:
            return ImageResult(success=False, error="Invalid or empty prompt")
        if style and style in STYLE_PRESETS:
            cleaned = f"{cleaned}, {STYLE_PRESETS[style]}"

        request_id = f"img-{uuid.uuid4().hex[:12]}"
        if self.coordinator is not None:
            allocation = await self.coordinator.request_image_generation_access(request_id, user_id)
            if not allocation.granted:
                logger.info("Image request %s denied: %s", request_id, allocation.reason)
                self.coordinator.release_allocation(request_id)
                return ImageResult(
                    success=False,
                    error="The GPU is busy right now. Please try again in a minute.",
                )

        job_key = request_id
        self._active_jobs[job_key] = user_id
        try:
            workflow = build_workflow(cleaned, self.config.checkpoint)
            prompt_id = await self.client.submit(workflow)
            result = await self._wait_for_completion(prompt_id)
            if result.success:
                logger.info("Image generated for user %s", user_id)
            return result
        except ImageGenerationError as e:
            logger.error("Image generation failed for user %s: %s", user_id, e)
            return ImageResult(success=False, error=str(e))
        except httpx.HTTPError as e:
            logger.error("Image generation failed for user %s: %s", user_id, e)
            return ImageResult(success=False, error="Image generation failed")
        finally:
            self._active_jobs.pop(job_key, None)
            if self.coordinator is not None:
                self.coordinator.release_allocation(request_id)

    async def _wait_for_completion(self, prompt_id: str) -> ImageResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.timeout

        while loop.time() < deadline:
            try:
                status = await self.client.poll_status(prompt_id)
            except httpx.HTTPError as e:
                logger.debug("Poll for %s failed: %s", prompt_id, e)
                await asyncio.sleep(self.config.poll_interval)
                continue

            if status.done:
                if not status.outputs:
                    return ImageResult(success=False, error="No image in output")
                image = status.outputs[0]
                data = await self.client.fetch_output(
                    image.get("filename", ""),
                    image.get("subfolder", ""),
                    image.get("type", "output"),
                )
                return ImageResult(success=True, image=data, filename=image.get("filename"))

            await asyncio.sleep(self.config.poll_interval)

        await self.client.cancel(prompt_id)
        return ImageResult(success=False, error="Generation timed out")
