"""MCP manager orchestrating multiple server connections."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ravenmind.mcp.client import MCPServerConnection, MCPToolError
from ravenmind.mcp.converters import split_tool_name

if TYPE_CHECKING:
    from ravenmind.config.schema import ExternalMCPServerConfig, MCPConfig
    from ravenmind.tools.base import Tool, ToolResult

logger = logging.getLogger(__name__)


class MCPManager:
    """Owns the MCP server connections and gives a merged view of their tools.

    A server that fails to connect is logged and skipped; the rest keep
    working.
    """

    def __init__(self, connect_timeout: float = 30.0) -> None:
        self.connect_timeout = connect_timeout
        self._connections: dict[str, MCPServerConnection] = {}

    @classmethod
    def from_config(cls, config: MCPConfig) -> MCPManager:
        manager = cls(connect_timeout=config.connect_timeout)
        for server in config.servers:
            manager.add_server(server)
        return manager

    def add_server(self, config: ExternalMCPServerConfig) -> None:
        """Register a server for connection."""
        self._connections[config.name] = MCPServerConnection(
            name=config.name,
            transport=config.transport,
            command=config.command,
            args=config.args,
            env=config.env,
            url=config.url,
            connect_timeout=self.connect_timeout,
        )

    async def connect_all(self) -> None:
        """Connect to all registered servers."""
        for name, conn in self._connections.items():
            try:
                await conn.connect()
                logger.info("Connected to MCP server '%s' with %d tool(s)", name, len(conn.tools))
            except Exception as e:
                logger.warning("Failed to connect to MCP server '%s': %s", name, e)

    async def disconnect_all(self) -> None:
        """Disconnect from all servers."""
        for name, conn in self._connections.items():
            try:
                await conn.disconnect()
            except Exception as e:
                logger.warning("Error disconnecting from '%s': %s", name, e)

    def get_all_tools(self) -> dict[str, Tool]:
        """Merged tools of all connected servers, keyed by prefixed name."""
        all_tools: dict[str, Tool] = {}
        for conn in self._connections.values():
            all_tools.update(conn.tools)
        return all_tools

    def has_tool(self, name: str) -> bool:
        parts = split_tool_name(name)
        if parts is None:
            return False
        conn = self._connections.get(parts[0])
        return conn is not None and name in conn.tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Call a tool by its prefixed name.

        Raises:
            MCPToolError: If the tool is unknown or the call fails
        """
        parts = split_tool_name(name)
        conn = self._connections.get(parts[0]) if parts else None
        if conn is None or parts is None or name not in conn.tools:
            raise MCPToolError(f"Tool not found: {name}")
        return await conn.call_tool(parts[1], arguments)

    def get_server(self, name: str) -> MCPServerConnection | None:
        return self._connections.get(name)

    @property
    def server_names(self) -> list[str]:
        return list(self._connections.keys())

    def status(self) -> list[dict[str, Any]]:
        """Connection state per server."""
        return [
            {"server": name, "connected": conn.connected, "tools": len(conn.tools)}
            for name, conn in self._connections.items()
        ]
