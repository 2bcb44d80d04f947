"""Tool registration and discovery system."""

import importlib
import inspect
from collections.abc import Callable
from typing import Any, Union, get_type_hints

from ravenmind.tools.base import Tool, ToolFunction, ToolParameter, ToolSchema

# Global tool registry
_TOOLS: dict[str, Tool] = {}

# Modules whose @tool functions make up the built-in catalog
BUILTIN_MODULES = (
    "ravenmind.tools.reasoning",
    "ravenmind.tools.calculator",
    "ravenmind.tools.clock",
    "ravenmind.tools.web_search",
    "ravenmind.tools.web",
    "ravenmind.tools.image",
    "ravenmind.tools.memory",
)

CONTEXT_PARAM = "ctx"


def _python_type_to_json_schema(py_type: Any) -> str:
    """Convert Python type hint to JSON Schema type.

    Args:
        py_type: Python type annotation

    Returns:
        JSON Schema type string
    """
    origin = getattr(py_type, "__origin__", None)
    if origin is type(None):
        return "null"

    # Unwrap Union types (including Optional)
    args = getattr(py_type, "__args__", ())
    if origin is Union or (args and type(None) in args):
        non_none = [arg for arg in args if arg is not type(None)]
        if non_none:
            py_type = non_none[0]

    type_map = {
        str: "string",
        int: "integer",
        float: "number",
        bool: "boolean",
        list: "array",
        dict: "object",
    }

    return type_map.get(py_type, "string")


def tool(description: str) -> Callable[[ToolFunction], ToolFunction]:
    """Decorator to register a function as a tool.

    Introspects the function signature and docstring to build the tool
    schema. A first parameter named ``ctx`` receives the ToolContext and is
    not part of the schema.

    Args:
        description: Human-readable description of what the tool does

    Returns:
        Decorator function

    Example:
        @tool(description="Get the current time")
        async def get_time(timezone: str = "UTC") -> str:
            '''Report the time.

            Args:
                timezone: IANA timezone name
            '''
            ...
    """

    def decorator(fn: ToolFunction) -> ToolFunction:
        hints = get_type_hints(fn)
        sig = inspect.signature(fn)

        parameters: list[ToolParameter] = []
        takes_context = False

        for index, (param_name, param) in enumerate(sig.parameters.items()):
            if index == 0 and param_name == CONTEXT_PARAM:
                takes_context = True
                continue

            param_type = hints.get(param_name, str)
            json_type = _python_type_to_json_schema(param_type)

            # Extract parameter description from docstring if available
            param_desc = f"Parameter {param_name}"
            if fn.__doc__:
                for line in fn.__doc__.split("\n"):
                    line = line.strip()
                    if line.startswith(f"{param_name}:"):
                        param_desc = line[len(param_name) + 1 :].strip()
                        break

            parameters.append(
                ToolParameter(
                    name=param_name,
                    type=json_type,
                    description=param_desc,
                    required=param.default == inspect.Parameter.empty,
                )
            )

        schema = ToolSchema(name=fn.__name__, description=description, parameters=parameters)
        _TOOLS[fn.__name__] = Tool(schema=schema, fn=fn, takes_context=takes_context)

        return fn

    return decorator


def load_builtin_tools() -> None:
    """Import the built-in tool modules so their tools register."""
    for module in BUILTIN_MODULES:
        importlib.import_module(module)


def get_tool(name: str) -> Tool:
    """Get a registered tool by name.

    Raises:
        KeyError: If tool not found
    """
    return _TOOLS[name]


def get_all_tools() -> dict[str, Tool]:
    """Get all registered tools."""
    return _TOOLS.copy()


def get_enabled_tools(
    web_search: bool = True,
    fetch_url: bool = True,
    image_generation: bool = True,
    memory: bool = True,
) -> list[Tool]:
    """Get tools based on configuration flags.

    Args:
        web_search: Include web search
        fetch_url: Include URL fetching and the arXiv and Wikipedia lookups
        image_generation: Include generate_image
        memory: Include remember and recall

    Returns:
        List of enabled Tool instances
    """
    enabled = []

    for name, tool_obj in _TOOLS.items():
        if name == "web_search" and not web_search:
            continue
        if name in ("fetch_url", "search_arxiv", "wikipedia_summary") and not fetch_url:
            continue
        if name == "generate_image" and not image_generation:
            continue
        if name in ("remember", "recall") and not memory:
            continue

        enabled.append(tool_obj)

    return enabled


def clear_tools() -> None:
    """Clear all registered tools. Used for testing."""
    _TOOLS.clear()
