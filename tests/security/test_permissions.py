"""Tests for tiered tool permissions."""

from types import SimpleNamespace

import pytest

from ravenmind.config.schema import SecurityConfig
from ravenmind.security.permissions import (
    PermissionLevel,
    ToolPermission,
    ToolPermissionChecker,
    bare_tool_name,
)


@pytest.fixture
def checker():
    return ToolPermissionChecker(
        SecurityConfig(owner_ids=["owner1"], admin_ids=["admin1"], moderator_ids=["mod1"])
    )


def test_bare_tool_name():
    assert bare_tool_name("files__read_file") == "read_file"
    assert bare_tool_name("web_search") == "web_search"


class TestLevels:
    """Test user role resolution."""

    def test_levels(self, checker):
        assert checker.get_user_level("owner1") == PermissionLevel.OWNER
        assert checker.get_user_level("admin1") == PermissionLevel.ADMIN
        assert checker.get_user_level("mod1") == PermissionLevel.MODERATOR
        assert checker.get_user_level("someone") == PermissionLevel.USER

    def test_is_owner(self, checker):
        assert checker.is_owner("owner1")
        assert not checker.is_owner("admin1")

    def test_tool_tiers(self, checker):
        assert checker.get_tool_permission("filesystem_write") == ToolPermission.ALWAYS_BLOCKED
        assert checker.get_tool_permission("execute_command") == ToolPermission.OWNER_ONLY
        assert checker.get_tool_permission("user_ban") == ToolPermission.ADMIN_ONLY
        assert checker.get_tool_permission("message_delete") == ToolPermission.MODERATOR_ONLY
        assert checker.get_tool_permission("web_search") == ToolPermission.PUBLIC

    def test_mcp_tools_inherit_tier(self, checker):
        assert checker.get_tool_permission("fs__filesystem_read") == ToolPermission.OWNER_ONLY


class TestCheckToolAccess:
    """Test access decisions per tier."""

    def test_public(self, checker):
        access = checker.check_tool_access("someone", "web_search")
        assert access.allowed and access.visible

    def test_owner_only_invisible_to_others(self, checker):
        for user_id in ("someone", "mod1", "admin1"):
            access = checker.check_tool_access(user_id, "execute_command")
            assert not access.allowed
            assert not access.visible
            assert access.reason == ""

    def test_owner_only_for_owner(self, checker):
        assert checker.check_tool_access("owner1", "execute_command").allowed

    def test_admin_only(self, checker):
        denied = checker.check_tool_access("mod1", "user_ban")

        assert not denied.allowed
        assert denied.visible
        assert denied.reason == "This tool requires administrator privileges"
        assert checker.check_tool_access("admin1", "user_ban").allowed
        assert checker.check_tool_access("owner1", "user_ban").allowed

    def test_moderator_only(self, checker):
        assert checker.check_tool_access("mod1", "user_timeout").allowed
        denied = checker.check_tool_access("someone", "user_timeout")
        assert denied.reason == "This tool requires moderator privileges"

    def test_always_blocked(self, checker):
        for user_id in ("someone", "admin1"):
            access = checker.check_tool_access(user_id, "filesystem_delete")
            assert not access.allowed
            assert not access.visible

        owner = checker.check_tool_access("owner1", "filesystem_delete")
        assert not owner.allowed
        assert owner.visible

    def test_owner_override(self, checker):
        assert checker.check_tool_access("owner1", "filesystem_delete", allow_blocked_override=True).allowed
        assert not checker.check_tool_access(
            "admin1", "filesystem_delete", allow_blocked_override=True
        ).allowed


class TestFiltering:
    """Test tool list filtering."""

    def test_filter_names(self, checker):
        tools = ["web_search", "execute_command", "user_ban"]

        assert checker.filter_tools_for_user(tools, "someone") == ["web_search", "user_ban"]
        assert checker.get_executable_tools_for_user(tools, "someone") == ["web_search"]
        assert checker.filter_tools_for_user(tools, "owner1") == tools

    def test_filter_dicts_and_objects(self, checker):
        tools = [{"name": "execute_command"}, SimpleNamespace(name="calculate")]

        visible = checker.filter_tools_for_user(tools, "someone")

        assert len(visible) == 1
        assert visible[0].name == "calculate"
