"""Discord channel adapter using discord.py.

Only direct messages and messages that mention the bot reach the agent.

Usage:
    adapter = DiscordAdapter(bot_token="...", orchestrator=runtime.orchestrator)
    await adapter.start()
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING, Any

from ravenmind.agent.loop import ThreadContext, UserIdentity
from ravenmind.channels.base import GENERIC_ERROR_REPLY, ChannelMessage, chunk_text

if TYPE_CHECKING:
    from ravenmind.agent.loop import AgentResponse, Orchestrator

logger = logging.getLogger(__name__)


def strip_mention(text: str, bot_id: int | str) -> str:
    """Remove ``<@id>`` and ``<@!id>`` mentions of the bot."""
    return text.replace(f"<@{bot_id}>", "").replace(f"<@!{bot_id}>", "").strip()


def to_channel_message(message: Any, bot_user: Any) -> ChannelMessage | None:
    """Reduce a discord.Message to a ChannelMessage, or None if it is not for us."""
    if message.author == bot_user or getattr(message.author, "bot", False):
        return None

    is_dm = message.guild is None
    is_mention = not is_dm and bot_user in message.mentions
    if not (is_dm or is_mention):
        return None

    text = strip_mention(message.content, bot_user.id)
    if not text:
        return None

    return ChannelMessage(
        text=text,
        user_id=str(message.author.id),
        channel_id=str(message.channel.id),
        display_name=getattr(message.author, "display_name", "") or "",
        username=message.author.name,
        guild_id=str(message.guild.id) if message.guild else None,
    )


class DiscordAdapter:
    """Discord bot adapter."""

    def __init__(self, bot_token: str, orchestrator: Orchestrator) -> None:
        """Initialize Discord adapter.

        Args:
            bot_token: Discord bot token
            orchestrator: Agent loop that handles messages
        """
        self.bot_token = bot_token
        self.orchestrator = orchestrator
        self._client: Any = None

    async def start(self) -> None:
        """Connect to Discord and serve until stopped."""
        import discord

        intents = discord.Intents.default()
        intents.message_content = True
        self._client = discord.Client(intents=intents)

        @self._client.event  # type: ignore
        async def on_ready() -> None:
            logger.info("Discord bot connected as %s", self._client.user)

        @self._client.event  # type: ignore
        async def on_message(message: Any) -> None:
            await self.handle_message(message)

        logger.info("Starting Discord adapter")
        await self._client.start(self.bot_token)

    async def handle_message(self, message: Any) -> None:
        msg = to_channel_message(message, self._client.user)
        if msg is None:
            return

        logger.info("Discord message from %s: %s", msg.username, msg.text[:100])
        try:
            async with message.channel.typing():
                response = await self.orchestrator.run(
                    msg.text,
                    UserIdentity(msg.user_id, msg.display_name, msg.username),
                    ThreadContext(msg.channel_id, msg.guild_id),
                )
            await self.send_response(message.channel, response)
        except Exception:
            logger.exception("Error processing Discord message")
            await message.channel.send(GENERIC_ERROR_REPLY)

    async def send_response(self, channel: Any, response: AgentResponse) -> None:
        """Send a reply, attaching the image (if any) to the last chunk."""
        import discord

        chunks = chunk_text(response.content) or [""]
        for index, chunk in enumerate(chunks):
            is_last = index == len(chunks) - 1
            if is_last and response.attachment is not None:
                file = discord.File(
                    io.BytesIO(response.attachment.data),
                    filename=response.attachment.filename,
                )
                await channel.send(chunk or None, file=file)
            elif chunk:
                await channel.send(chunk)

    async def stop(self) -> None:
        """Stop the Discord bot."""
        if self._client:
            await self._client.close()
