"""Executes tool calls with timeouts and coarse error reporting."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ravenmind.mcp.converters import TOOL_NAME_SEPARATOR
from ravenmind.tools.base import Tool, ToolCall, ToolContext, ToolResult

if TYPE_CHECKING:
    from ravenmind.config.schema import AgentConfig
    from ravenmind.mcp.manager import MCPManager

logger = logging.getLogger(__name__)

# Tools that may run longer than the default timeout
LONG_RUNNING_TOOLS = frozenset({"generate_image"})

TIMEOUT_ERROR = "Tool timed out."
PERMISSION_ERROR = "Permission denied."
EXECUTION_ERROR = "Tool execution failed."
ARGUMENTS_ERROR = "Invalid arguments for tool."
UNKNOWN_TOOL_ERROR = "Unknown tool"


def arguments_match(tool: Tool, arguments: dict) -> bool:
    """Check that arguments bind to the tool function's signature."""
    try:
        sig = inspect.signature(tool.fn)
    except (TypeError, ValueError):
        return True
    try:
        if tool.takes_context:
            sig.bind(None, **arguments)
        else:
            sig.bind(**arguments)
    except TypeError:
        return False
    return True


class ToolDispatcher:
    """Routes a ToolCall to a built-in tool or an MCP server tool.

    Exceptions never reach the caller: they are logged in full and turned
    into short messages that are safe to show the model.
    """

    def __init__(
        self,
        tools: dict[str, Tool],
        config: AgentConfig,
        context_factory: Callable[[str], ToolContext],
        mcp_manager: MCPManager | None = None,
    ):
        """Initialize dispatcher.

        Args:
            tools: Built-in tools by name
            config: Agent configuration (timeouts)
            context_factory: Builds the ToolContext for a user id
            mcp_manager: External tool servers, if any
        """
        self.tools = tools
        self.config = config
        self.context_factory = context_factory
        self.mcp_manager = mcp_manager

    def timeout_for(self, name: str) -> float:
        if name in LONG_RUNNING_TOOLS:
            return self.config.image_tool_timeout
        return self.config.tool_timeout

    def _is_mcp_tool(self, name: str) -> bool:
        return (
            TOOL_NAME_SEPARATOR in name
            and self.mcp_manager is not None
            and self.mcp_manager.has_tool(name)
        )

    def knows(self, name: str) -> bool:
        return name in self.tools or self._is_mcp_tool(name)

    def catalog(self) -> list[Tool]:
        """Every tool the dispatcher can run, built-ins first."""
        tools = list(self.tools.values())
        if self.mcp_manager is not None:
            tools.extend(self.mcp_manager.get_all_tools().values())
        return tools

    async def dispatch(self, call: ToolCall, user_id: str) -> ToolResult:
        """Execute a tool call for a user.

        Args:
            call: Parsed tool call
            user_id: Caller (already authorized by the security gate)

        Returns:
            ToolResult; failures carry a coarse error string
        """
        if not isinstance(call.arguments, dict):
            return ToolResult.fail(ARGUMENTS_ERROR)

        if self._is_mcp_tool(call.name):
            coro = self.mcp_manager.call_tool(call.name, call.arguments)  # type: ignore[union-attr]
        elif call.name in self.tools:
            tool = self.tools[call.name]
            if not arguments_match(tool, call.arguments):
                logger.warning("Invalid arguments for %s: %s", call.name, sorted(call.arguments))
                return ToolResult.fail(ARGUMENTS_ERROR)
            coro = tool.execute(self.context_factory(user_id), **call.arguments)
        else:
            return ToolResult.fail(UNKNOWN_TOOL_ERROR)

        timeout = self.timeout_for(call.name)
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Tool %s timed out after %.0fs", call.name, timeout)
            return ToolResult.fail(TIMEOUT_ERROR)
        except PermissionError:
            logger.warning("Tool %s denied for user %s", call.name, user_id, exc_info=True)
            return ToolResult.fail(PERMISSION_ERROR)
        except Exception:
            logger.exception("Tool %s failed", call.name)
            return ToolResult.fail(EXECUTION_ERROR)
