"""Base types for the tool system."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ravenmind.config.schema import ToolsConfig
    from ravenmind.image.service import ImageService
    from ravenmind.memory.manager import MemoryManager


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # JSON Schema type
    description: str
    required: bool = True
    enum: list[str] | None = None


@dataclass
class ToolSchema:
    """Description of a tool as shown to the model."""

    name: str
    description: str
    parameters: list[ToolParameter]

    def to_json_schema(self) -> dict[str, Any]:
        """Return the parameters as a JSON Schema object."""
        properties: dict[str, Any] = {}
        required = []

        for param in self.parameters:
            param_schema: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = param.enum
            properties[param.name] = param_schema
            if param.required:
                required.append(param.name)

        return {"type": "object", "properties": properties, "required": required}

    def signature(self) -> str:
        """Short argument summary, e.g. ``query, max_results?``."""
        return ", ".join(p.name if p.required else f"{p.name}?" for p in self.parameters)


@dataclass
class Attachment:
    """Binary output of a tool, delivered alongside the reply."""

    data: bytes
    filename: str


@dataclass
class ToolResult:
    """Normalized outcome of a tool call."""

    success: bool
    result: str | None = None
    error: str | None = None
    attachment: Attachment | None = None

    @classmethod
    def ok(cls, result: str, attachment: Attachment | None = None) -> ToolResult:
        return cls(success=True, result=result, attachment=attachment)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    def to_model_text(self) -> str:
        """Render for the model's context."""
        if self.success:
            return self.result or "Tool executed successfully."
        return f"Error: {self.error or 'Unknown error'}"


@dataclass
class ToolContext:
    """Per-call services and identity handed to tools that ask for ``ctx``."""

    user_id: str
    config: ToolsConfig | None = None
    memory: MemoryManager | None = None
    images: ImageService | None = None
    extras: dict[str, Any] = field(default_factory=dict)


# Tool function signature: async function returning text or a ToolResult
ToolFunction = Callable[..., Awaitable["str | ToolResult"]]


@dataclass
class Tool:
    """A tool that the agent can use."""

    schema: ToolSchema
    fn: ToolFunction
    takes_context: bool = False

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def description(self) -> str:
        return self.schema.description

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> ToolResult:
        """Execute the tool with given arguments.

        Args:
            ctx: Caller identity and services
            **kwargs: Tool arguments

        Returns:
            ToolResult (plain string results are wrapped as successes)
        """
        if self.takes_context:
            output = await self.fn(ctx, **kwargs)
        else:
            output = await self.fn(**kwargs)
        if isinstance(output, ToolResult):
            return output
        return ToolResult.ok(str(output))


@dataclass
class ToolCall:
    """A tool invocation parsed from model output."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
