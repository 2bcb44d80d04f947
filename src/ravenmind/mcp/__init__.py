"""Client side of the Model Context Protocol: external tool servers."""

from ravenmind.mcp.client import MCPServerConnection, MCPToolError
from ravenmind.mcp.manager import MCPManager

__all__ = ["MCPManager", "MCPServerConnection", "MCPToolError"]
