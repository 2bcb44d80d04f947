"""Connection to a single external MCP server."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from contextlib import AsyncExitStack
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.client.streamable_http import streamablehttp_client

from ravenmind.mcp.converters import call_result_text, mcp_tool_to_schema, prefixed_tool_name
from ravenmind.tools.base import Tool, ToolFunction, ToolResult

logger = logging.getLogger(__name__)

_ENV_REF = re.compile(r"\$\{([^}]+)\}")


class MCPToolError(RuntimeError):
    """A remote tool call failed or reported an error."""


def expand_env(value: str) -> str:
    """Replace ``${VAR}`` references with environment values (missing = empty)."""
    return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)


class MCPServerConnection:
    """Connection to one MCP server.

    Discovers the server's tools on connect and wraps each as a Tool named
    ``{server}__{tool}`` whose function calls the remote server.
    """

    def __init__(
        self,
        name: str,
        transport: str = "stdio",
        command: str | None = None,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        url: str | None = None,
        connect_timeout: float = 30.0,
    ):
        """Initialize connection config.

        Args:
            name: Server name (used as tool prefix)
            transport: Transport type ("stdio" or "streamable-http")
            command: Command for stdio transport
            args: Arguments for the command
            env: Extra environment variables; ``${VAR}`` references are expanded
            url: URL for HTTP transport
            connect_timeout: Seconds allowed for connect and discovery
        """
        self.name = name
        self.transport = transport
        self.command = command
        self.args = [expand_env(a) for a in args or []]
        self.env = {k: expand_env(v) for k, v in (env or {}).items()}
        self.url = url
        self.connect_timeout = connect_timeout
        self._tools: dict[str, Tool] = {}
        self._session: ClientSession | None = None
        self._stack: AsyncExitStack | None = None

    @property
    def tools(self) -> dict[str, Tool]:
        """Discovered tools (empty until connected)."""
        return self._tools

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Connect to the server and discover its tools.

        Raises:
            ValueError: If the transport is misconfigured
            TimeoutError: If the server does not answer in time
        """
        if self.transport == "stdio" and not self.command:
            raise ValueError(f"Server {self.name}: stdio transport requires 'command'")
        if self.transport == "streamable-http" and not self.url:
            raise ValueError(f"Server {self.name}: streamable-http transport requires 'url'")
        if self.transport not in ("stdio", "streamable-http"):
            raise ValueError(f"Unknown transport: {self.transport}")

        stack = AsyncExitStack()
        try:
            await asyncio.wait_for(self._open(stack), timeout=self.connect_timeout)
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack

    async def _open(self, stack: AsyncExitStack) -> None:
        if self.transport == "stdio":
            params = StdioServerParameters(
                command=self.command,
                args=self.args,
                env={**os.environ, **self.env} if self.env else None,
            )
            read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
        else:
            read_stream, write_stream, _ = await stack.enter_async_context(
                streamablehttp_client(self.url)
            )

        session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
        await session.initialize()
        self._session = session
        await self._discover_tools()

    async def _discover_tools(self) -> None:
        if self._session is None:
            raise RuntimeError("Not connected")

        response = await self._session.list_tools()
        self._tools.clear()
        for mcp_tool in response.tools:
            name = prefixed_tool_name(self.name, mcp_tool.name)
            schema = mcp_tool_to_schema(name, mcp_tool.description, mcp_tool.inputSchema or {})
            self._tools[name] = Tool(schema=schema, fn=self._make_remote_caller(mcp_tool.name))

        logger.info("Discovered %d tools from MCP server '%s'", len(self._tools), self.name)

    def _make_remote_caller(self, remote_tool_name: str) -> ToolFunction:
        """Create an async function that calls a remote tool.

        The function raises MCPToolError on failure so the dispatcher can
        turn it into a coarse error for the model.
        """

        async def call_remote_tool(**kwargs: Any) -> ToolResult:
            return await self.call_tool(remote_tool_name, kwargs)

        return call_remote_tool

    async def call_tool(self, remote_tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Call a tool by its un-prefixed name.

        Raises:
            MCPToolError: If not connected or the server reports an error
        """
        if self._session is None:
            raise MCPToolError(f"Not connected to MCP server '{self.name}'")

        result = await self._session.call_tool(remote_tool_name, arguments)
        text = call_result_text(result)
        if getattr(result, "isError", False):
            raise MCPToolError(f"{self.name}/{remote_tool_name} failed: {text or 'no details'}")
        return ToolResult.ok(text or "(no output)")

    async def disconnect(self) -> None:
        """Close the session and transport."""
        stack, self._stack = self._stack, None
        self._session = None
        self._tools.clear()
        if stack is not None:
            await stack.aclose()
