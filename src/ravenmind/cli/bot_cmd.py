"""Start command - run the Discord bot until interrupted."""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console

from ravenmind.config.loader import ConfigError, load_config
from ravenmind.config.schema import RavenmindConfig
from ravenmind.logging_setup import configure_logging

console = Console()
logger = logging.getLogger(__name__)


def start_command(config_path: str | None = None, log_level: str = "INFO") -> None:
    """Load configuration and run the bot.

    Args:
        config_path: Optional path to config file
        log_level: Root log level
    """
    configure_logging(log_level)

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from e

    token = os.environ.get(config.discord.token_env)
    if not token:
        console.print(f"[red]Environment variable {config.discord.token_env} is not set[/red]")
        raise typer.Exit(1)

    try:
        asyncio.run(_run_bot(config, token))
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down[/yellow]")


async def _run_bot(config: RavenmindConfig, token: str) -> None:
    from ravenmind.channels.discord import DiscordAdapter
    from ravenmind.runtime import build_runtime

    runtime = build_runtime(config)
    adapter = DiscordAdapter(token, runtime.orchestrator)
    await runtime.start()
    try:
        await adapter.start()
    finally:
        logger.info("Stopping runtime")
        await adapter.stop()
        await runtime.stop()
