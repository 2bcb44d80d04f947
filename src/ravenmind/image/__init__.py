"""Image generation through ComfyUI."""

from ravenmind.image.comfyui import ComfyUIClient, ImageGenerationError
from ravenmind.image.service import ImageResult, ImageService

__all__ = ["ComfyUIClient", "ImageGenerationError", "ImageResult", "ImageService"]
