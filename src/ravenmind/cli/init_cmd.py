"""Init command - write a starter configuration."""

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from ravenmind.config.loader import DEFAULT_CONFIG_PATH, save_config
from ravenmind.config.schema import RavenmindConfig
from ravenmind.hardware.detect import detect_total_vram_mb

console = Console()


def init_command(force: bool = False, model: str | None = None, config_path: str | None = None) -> None:
    """Create a configuration file with detected defaults.

    Args:
        force: Overwrite existing config if present
        model: Optional chat model name
        config_path: Destination (default: ~/.ravenmind/ravenmind.yaml)
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    console.print(
        Panel.fit(
            "[bold blue]ravenmind initialization[/bold blue]\nWriting a starter configuration...",
            border_style="blue",
        )
    )

    if path.exists() and not force:
        console.print(f"\n[yellow]Config already exists at {path}[/yellow]")
        console.print("Use [bold]--force[/bold] to overwrite.")
        raise typer.Exit(0)

    config = RavenmindConfig()
    if model:
        config.ollama.model = model

    vram = detect_total_vram_mb()
    if vram:
        console.print(f"  [green]✓[/green] Detected {vram}MB VRAM")
        config.gpu.total_vram_mb = vram
    else:
        console.print("  [yellow]⚠[/yellow] No NVIDIA GPU detected; set gpu.total_vram_mb by hand")

    save_config(config, path)
    console.print(f"\n[green]✓ Configuration saved to {path}[/green]")
    console.print("\nNext steps:")
    console.print(f"  1. Pull the model: [bold]ollama pull {config.ollama.model}[/bold]")
    console.print(f"  2. Export your bot token: [bold]export {config.discord.token_env}=...[/bold]")
    console.print("  3. Start the bot: [bold]ravenmind start[/bold]")
