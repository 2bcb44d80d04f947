"""Logging configuration for the CLI entry points."""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "chromadb", "discord", "openai", "mcp")


def configure_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Route all logging through a rich handler.

    Args:
        level: Root log level name
        console: Console to write to (defaults to stderr)
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
