"""Tiered tool access control.

Owner-only tools are invisible to everyone else: they are filtered out of
tool listings and a denied call is reported as an unknown tool, so their
names cannot be enumerated.
"""

import logging
from collections.abc import Iterable
from enum import IntEnum
from typing import TypeVar

from pydantic import BaseModel

from ravenmind.config.schema import SecurityConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

MCP_SEPARATOR = "__"


class ToolPermission(IntEnum):
    """Privilege tier required to use a tool."""

    PUBLIC = 0
    MODERATOR_ONLY = 1
    ADMIN_ONLY = 2
    OWNER_ONLY = 3
    ALWAYS_BLOCKED = 4


class PermissionLevel(IntEnum):
    """Privilege level of a user."""

    USER = 0
    MODERATOR = 1
    ADMIN = 2
    OWNER = 3


class ToolAccess(BaseModel):
    """Result of a tool access check."""

    allowed: bool
    reason: str = ""
    visible: bool = True


def bare_tool_name(tool_name: str) -> str:
    """Strip an MCP server prefix (``server__tool`` -> ``tool``)."""
    if MCP_SEPARATOR in tool_name:
        return tool_name.split(MCP_SEPARATOR, 1)[1]
    return tool_name


def _tool_name(tool: object) -> str:
    if isinstance(tool, str):
        return tool
    if isinstance(tool, dict):
        return str(tool.get("name", ""))
    return str(getattr(tool, "name", ""))


class ToolPermissionChecker:
    """Maps users to roles and tools to tiers from configuration."""

    def __init__(self, config: SecurityConfig):
        self.config = config
        self._owners = set(config.owner_ids)
        self._admins = set(config.admin_ids)
        self._moderators = set(config.moderator_ids)

    def get_user_level(self, user_id: str) -> PermissionLevel:
        if user_id in self._owners:
            return PermissionLevel.OWNER
        if user_id in self._admins:
            return PermissionLevel.ADMIN
        if user_id in self._moderators:
            return PermissionLevel.MODERATOR
        return PermissionLevel.USER

    def is_owner(self, user_id: str) -> bool:
        return self.get_user_level(user_id) == PermissionLevel.OWNER

    def get_tool_permission(self, tool_name: str) -> ToolPermission:
        """Return the tier of a tool; MCP tools inherit the tier of their bare name."""
        tools = self.config.tools
        for name in {tool_name, bare_tool_name(tool_name)}:
            if name in tools.always_blocked:
                return ToolPermission.ALWAYS_BLOCKED
        for name in {tool_name, bare_tool_name(tool_name)}:
            if name in tools.owner_only:
                return ToolPermission.OWNER_ONLY
        for name in {tool_name, bare_tool_name(tool_name)}:
            if name in tools.admin_only:
                return ToolPermission.ADMIN_ONLY
        for name in {tool_name, bare_tool_name(tool_name)}:
            if name in tools.moderator_only:
                return ToolPermission.MODERATOR_ONLY
        return ToolPermission.PUBLIC

    def check_tool_access(
        self,
        user_id: str,
        tool_name: str,
        *,
        allow_blocked_override: bool = False,
    ) -> ToolAccess:
        """Decide whether a user may see and run a tool.

        Args:
            user_id: User requesting the tool
            tool_name: Tool name (possibly MCP-prefixed)
            allow_blocked_override: Let an owner run an always-blocked tool

        Returns:
            ToolAccess with allowed, reason and visible
        """
        level = self.get_user_level(user_id)
        permission = self.get_tool_permission(tool_name)

        if permission == ToolPermission.ALWAYS_BLOCKED:
            if allow_blocked_override and level == PermissionLevel.OWNER:
                logger.warning("Owner %s overrode block on tool %s", user_id, tool_name)
                return ToolAccess(allowed=True, reason="Owner override", visible=True)
            return ToolAccess(
                allowed=False,
                reason="This tool is disabled for security reasons",
                visible=level == PermissionLevel.OWNER,
            )

        if permission == ToolPermission.OWNER_ONLY:
            if level == PermissionLevel.OWNER:
                return ToolAccess(allowed=True, reason="Owner access granted")
            # Non-owners must not learn the tool exists
            return ToolAccess(allowed=False, reason="", visible=False)

        if permission == ToolPermission.ADMIN_ONLY:
            if level >= PermissionLevel.ADMIN:
                return ToolAccess(allowed=True, reason="Admin access granted")
            return ToolAccess(allowed=False, reason="This tool requires administrator privileges")

        if permission == ToolPermission.MODERATOR_ONLY:
            if level >= PermissionLevel.MODERATOR:
                return ToolAccess(allowed=True, reason="Moderator access granted")
            return ToolAccess(allowed=False, reason="This tool requires moderator privileges")

        return ToolAccess(allowed=True, reason="Public access")

    def filter_tools_for_user(self, tools: Iterable[T], user_id: str) -> list[T]:
        """Keep only the tools visible to a user.

        Accepts tool names, dicts with a ``name`` key, or objects with a
        ``name`` attribute.
        """
        return [t for t in tools if self.check_tool_access(user_id, _tool_name(t)).visible]

    def get_executable_tools_for_user(self, tools: Iterable[T], user_id: str) -> list[T]:
        """Keep only the tools a user may run."""
        return [t for t in tools if self.check_tool_access(user_id, _tool_name(t)).allowed]

    def log_tool_access(self, user_id: str, tool_name: str, access: ToolAccess) -> None:
        if access.allowed:
            logger.debug("User %s accessed tool %s: %s", user_id, tool_name, access.reason)
        else:
            logger.info(
                "User %s denied access to tool %s: %s",
                user_id,
                tool_name,
                access.reason or "hidden tool",
            )
