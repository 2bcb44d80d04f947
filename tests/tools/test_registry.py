"""Tests for tool registration and discovery."""

from ravenmind.tools.registry import get_all_tools, get_enabled_tools, get_tool, load_builtin_tools

BUILTINS = {
    "think",
    "calculate",
    "get_time",
    "web_search",
    "fetch_url",
    "search_arxiv",
    "wikipedia_summary",
    "generate_image",
    "remember",
    "recall",
}


def test_builtin_tools_registered():
    """Test every built-in module registers its tools."""
    load_builtin_tools()
    assert BUILTINS <= set(get_all_tools())


def test_schema_from_signature_and_docstring():
    """Test parameter types, descriptions and required flags."""
    load_builtin_tools()
    schema = get_tool("web_search").schema

    params = {p.name: p for p in schema.parameters}
    assert params["query"].type == "string"
    assert params["query"].required is True
    assert params["query"].description == "The search query"
    assert params["max_results"].type == "integer"
    assert params["max_results"].required is False


def test_context_parameter_hidden():
    """Test the ctx parameter is not exposed to the model."""
    load_builtin_tools()
    tool = get_tool("remember")

    assert tool.takes_context is True
    assert [p.name for p in tool.schema.parameters] == ["fact", "category"]
    assert get_tool("calculate").takes_context is False


def test_optional_parameter_unwrapped():
    """Test ``str | None`` maps to a string parameter."""
    load_builtin_tools()
    params = {p.name: p for p in get_tool("generate_image").schema.parameters}
    assert params["style"].type == "string"
    assert params["style"].required is False


def test_json_schema():
    """Test conversion of a tool schema to JSON Schema."""
    load_builtin_tools()
    schema = get_tool("calculate").schema.to_json_schema()

    assert schema["type"] == "object"
    assert schema["required"] == ["expression"]
    assert schema["properties"]["expression"]["type"] == "string"


def test_enabled_tools_respect_flags():
    """Test configuration flags remove tool groups."""
    load_builtin_tools()
    names = {t.name for t in get_enabled_tools(web_search=False, fetch_url=False, image_generation=False, memory=False)}

    assert "web_search" not in names
    assert not names & {"fetch_url", "search_arxiv", "wikipedia_summary"}
    assert "generate_image" not in names
    assert not names & {"remember", "recall"}
    assert {"think", "calculate", "get_time"} <= names
