"""Text-generation backend protocol and data types."""

from dataclasses import dataclass
from typing import Protocol


class BackendError(Exception):
    """A backend request failed after retries."""


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    name: str | None = None  # Tool name for tool result messages


@dataclass
class GenerationOptions:
    """Sampling options for a single generation."""

    temperature: float = 0.7
    max_tokens: int = 4096
    model: str | None = None  # Overrides the backend's default model


@dataclass
class LoadedModel:
    """A model currently resident in the backend."""

    name: str
    size_bytes: int
    vram_bytes: int

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)

    @property
    def vram_mb(self) -> float:
        return self.vram_bytes / (1024 * 1024)


class TextGenerator(Protocol):
    """Anything that turns a prompt and history into text."""

    async def generate(
        self,
        system_prompt: str,
        messages: list[Message],
        options: GenerationOptions | None = None,
    ) -> str:
        """Generate a reply.

        Args:
            system_prompt: System instructions
            messages: Conversation history, oldest first
            options: Sampling options

        Returns:
            Generated text
        """
        ...


class TextBackend(TextGenerator, Protocol):
    """Protocol for text-generation backends."""

    model: str

    async def list_loaded(self) -> list[LoadedModel]:
        """List models currently loaded by the backend."""
        ...

    async def unload(self, model: str) -> None:
        """Ask the backend to unload a model immediately."""
        ...

    async def warm_load(self, model: str, keep_alive: int) -> None:
        """Load a model and keep it resident for keep_alive seconds."""
        ...
