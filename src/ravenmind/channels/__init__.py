"""Chat transports that feed messages into the agent loop."""

from ravenmind.channels.base import ChannelAdapter, ChannelMessage, chunk_text

__all__ = ["ChannelAdapter", "ChannelMessage", "chunk_text"]
