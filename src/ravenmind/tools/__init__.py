"""Tools the agent can call.

Built-in tools register through the ``@tool`` decorator when their module is
imported (see ``load_builtin_tools``). Each tool returns a ``ToolResult``;
tools that need per-user services take a first ``ctx`` parameter.

Available tools:

- **think** - scratchpad reasoning (does not count against the iteration budget)
- **calculate** / **get_time** - arithmetic and clocks
- **web_search** / **fetch_url** / **search_arxiv** / **wikipedia_summary** - lookups
- **generate_image** - ComfyUI image generation
- **remember** / **recall** - long-term memory

Usage::

    from ravenmind.tools.registry import get_enabled_tools, load_builtin_tools

    load_builtin_tools()
    tools = get_enabled_tools(web_search=True, image_generation=False)
"""
