"""Converters between MCP tool metadata and ravenmind tool schemas."""

from __future__ import annotations

from typing import Any

from ravenmind.tools.base import ToolParameter, ToolSchema

# Separator between server name and remote tool name
TOOL_NAME_SEPARATOR = "__"


def prefixed_tool_name(server_name: str, tool_name: str) -> str:
    return f"{server_name}{TOOL_NAME_SEPARATOR}{tool_name}"


def split_tool_name(name: str) -> tuple[str, str] | None:
    """Split ``server__tool`` into its parts, or None for a plain name."""
    server, sep, remote = name.partition(TOOL_NAME_SEPARATOR)
    if not sep or not server or not remote:
        return None
    return server, remote


def mcp_input_schema_to_params(input_schema: dict[str, Any]) -> list[ToolParameter]:
    """Convert an MCP input schema to a ToolParameter list.

    Args:
        input_schema: MCP Tool.inputSchema dict

    Returns:
        List of ToolParameter instances
    """
    params: list[ToolParameter] = []
    properties = input_schema.get("properties", {}) or {}
    required_fields = set(input_schema.get("required", []) or [])

    for name, prop in properties.items():
        prop_type = prop.get("type", "string")
        if isinstance(prop_type, list):
            # ["string", "null"] style unions
            prop_type = next((t for t in prop_type if t != "null"), "string")
        params.append(
            ToolParameter(
                name=name,
                type=prop_type,
                description=prop.get("description", f"Parameter {name}"),
                required=name in required_fields,
                enum=prop.get("enum"),
            )
        )

    return params


def mcp_tool_to_schema(
    name: str,
    description: str | None,
    input_schema: dict[str, Any],
) -> ToolSchema:
    """Convert MCP tool metadata to a ToolSchema.

    Args:
        name: Prefixed tool name
        description: Tool description
        input_schema: MCP input schema

    Returns:
        ToolSchema instance
    """
    return ToolSchema(
        name=name,
        description=description or f"External tool: {name}",
        parameters=mcp_input_schema_to_params(input_schema),
    )


def call_result_text(result: Any) -> str:
    """Join the text items of an MCP CallToolResult."""
    texts = [content.text for content in getattr(result, "content", []) if hasattr(content, "text")]
    return "\n".join(texts)
