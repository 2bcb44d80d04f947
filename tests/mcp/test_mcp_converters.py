"""Tests for MCP converters."""

from types import SimpleNamespace

from ravenmind.mcp.converters import (
    call_result_text,
    mcp_input_schema_to_params,
    mcp_tool_to_schema,
    prefixed_tool_name,
    split_tool_name,
)


def test_prefixed_tool_name():
    assert prefixed_tool_name("files", "read_file") == "files__read_file"


def test_split_tool_name():
    assert split_tool_name("files__read_file") == ("files", "read_file")
    assert split_tool_name("github__search__code") == ("github", "search__code")
    assert split_tool_name("web_search") is None
    assert split_tool_name("__read") is None


def test_input_schema_to_params():
    params = mcp_input_schema_to_params(
        {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path"},
                "encoding": {"type": ["string", "null"], "enum": ["utf-8", "latin-1"]},
                "limit": {"type": "integer"},
            },
            "required": ["path"],
        }
    )

    by_name = {p.name: p for p in params}
    assert by_name["path"].required is True
    assert by_name["path"].description == "File path"
    assert by_name["encoding"].type == "string"
    assert by_name["encoding"].enum == ["utf-8", "latin-1"]
    assert by_name["encoding"].required is False
    assert by_name["limit"].description == "Parameter limit"


def test_empty_schema():
    assert mcp_input_schema_to_params({}) == []


def test_tool_to_schema_default_description():
    schema = mcp_tool_to_schema("files__stat", None, {"properties": {"path": {"type": "string"}}})

    assert schema.description == "External tool: files__stat"
    assert schema.to_json_schema()["properties"]["path"]["type"] == "string"


def test_call_result_text():
    result = SimpleNamespace(
        content=[SimpleNamespace(text="line one"), SimpleNamespace(data=b"img"), SimpleNamespace(text="line two")]
    )

    assert call_result_text(result) == "line one\nline two"
    assert call_result_text(SimpleNamespace()) == ""
