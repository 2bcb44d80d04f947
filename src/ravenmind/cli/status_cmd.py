"""Status command - backend health, GPU memory and loaded models."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ravenmind.config.loader import ConfigError, load_config
from ravenmind.config.schema import RavenmindConfig
from ravenmind.hardware.detect import check_service, resolve_total_vram_mb
from ravenmind.image.comfyui import ComfyUIClient
from ravenmind.llm.ollama import OllamaClient
from ravenmind.resources.coordinator import ResourceCoordinator

console = Console()


def _mark(ok: bool) -> str:
    return "[green]✓[/green]" if ok else "[red]✗[/red]"


def status_command(config_path: str | None = None) -> None:
    """Print a status table."""
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from e

    asyncio.run(_async_status(config))


async def _async_status(config: RavenmindConfig) -> None:
    ollama_up = await check_service(config.ollama.host, "/api/tags")
    comfy_up = config.comfyui.enabled and await check_service(config.comfyui.url, "/system_stats")

    table = Table(title="ravenmind status", show_header=True, header_style="bold cyan")
    table.add_column("Check", style="white", width=24)
    table.add_column("Status", width=8)
    table.add_column("Details", style="dim")

    table.add_row("Ollama", _mark(ollama_up), config.ollama.host)
    if config.comfyui.enabled:
        table.add_row("ComfyUI", _mark(comfy_up), config.comfyui.url)
    else:
        table.add_row("ComfyUI", "[dim]-[/dim]", "disabled")

    backend = OllamaClient(model=config.ollama.model, host=config.ollama.host, timeout=10)
    comfyui = ComfyUIClient(base_url=config.comfyui.url, timeout=10)
    coordinator = ResourceCoordinator(
        config.gpu,
        backend,
        gpu_stats=comfyui if comfy_up else None,
        total_vram_mb=resolve_total_vram_mb(config.gpu.total_vram_mb),
    )
    try:
        status = await coordinator.refresh_status() if ollama_up or comfy_up else None
        if status is not None:
            table.add_row(
                "GPU memory",
                "[green]✓[/green]" if status.usage_percent < 0.9 else "[yellow]⚠[/yellow]",
                f"{status.used_mb}/{status.total_mb}MB used ({status.usage_percent:.0%}), "
                f"source: {status.source}",
            )
        else:
            table.add_row("GPU memory", "[yellow]⚠[/yellow]", "No status available")

        if ollama_up:
            load = await coordinator.get_model_load_status()
            if load.loaded:
                table.add_row(
                    "Loaded model",
                    _mark(True),
                    f"{load.model_name} in {load.location} "
                    f"({load.vram_used_mb}/{load.model_size_mb}MB on GPU)",
                )
            else:
                table.add_row("Loaded model", "[dim]-[/dim]", "asleep")
    finally:
        await backend.close()
        await comfyui.close()

    console.print(table)
