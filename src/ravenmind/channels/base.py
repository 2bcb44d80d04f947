"""Transport-neutral pieces shared by channel adapters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

# Discord rejects messages longer than this
MAX_MESSAGE_LENGTH = 2000

GENERIC_ERROR_REPLY = "Sorry, something went wrong while handling your message."


@dataclass
class ChannelMessage:
    """A message received from a channel, reduced to what the agent needs."""

    text: str
    user_id: str
    channel_id: str
    display_name: str = ""
    username: str = ""
    guild_id: str | None = None


def chunk_text(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into pieces of at most ``limit`` characters.

    Prefers breaking at the last newline (then space) inside each window.
    """
    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        window = remaining[:limit]
        cut = window.rfind("\n")
        if cut <= 0:
            cut = window.rfind(" ")
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n ")
    if remaining:
        chunks.append(remaining)
    return chunks


@runtime_checkable
class ChannelAdapter(Protocol):
    """Protocol for messaging channel adapters."""

    async def start(self) -> None:
        """Start listening for messages."""
        ...

    async def stop(self) -> None:
        """Stop listening and clean up."""
        ...
