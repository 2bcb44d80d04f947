"""GPU and backend detection used at startup."""

import logging
import subprocess

import httpx

logger = logging.getLogger(__name__)


def detect_total_vram_mb() -> int | None:
    """Detect total VRAM of the first NVIDIA GPU.

    Returns:
        Total VRAM in MB, or None if no NVIDIA GPU is visible
    """
    try:
        result = subprocess.run(
            ["nvidia-smi", "--query-gpu=memory.total", "--format=csv,noheader,nounits"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            # nvidia-smi returns MiB
            return int(float(result.stdout.strip().split("\n")[0]))

    except (FileNotFoundError, subprocess.TimeoutExpired, ValueError):
        pass

    return None


def resolve_total_vram_mb(configured: int | None, fallback: int = 24576) -> int:
    """Pick the VRAM total: configured value, then nvidia-smi, then fallback."""
    if configured:
        return configured

    detected = detect_total_vram_mb()
    if detected:
        logger.info("Detected %dMB VRAM", detected)
        return detected

    logger.info("No GPU detected, assuming %dMB VRAM", fallback)
    return fallback


async def check_service(url: str, path: str = "/", timeout: float = 5.0) -> bool:
    """Check whether an HTTP backend answers.

    Args:
        url: Service base URL
        path: Path to probe
        timeout: Request timeout in seconds

    Returns:
        True if the service returned 200
    """
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(f"{url.rstrip('/')}{path}")
            return response.status_code == 200
    except httpx.HTTPError:
        return False
