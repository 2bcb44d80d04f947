"""Web search tool using DuckDuckGo."""

import asyncio

from duckduckgo_search import DDGS

from ravenmind.tools.base import ToolResult
from ravenmind.tools.registry import tool

MAX_QUERY_LENGTH = 300


@tool(
    description=(
        "Search the web for information. Use this when you need current information, "
        "facts, or data that may not be in your training data."
    )
)
async def web_search(query: str, max_results: int = 5) -> ToolResult:
    """Search the web and return results.

    Args:
        query: The search query
        max_results: Maximum number of results to return (default: 5, max: 10)
    """
    query = (query or "").strip()
    if not query:
        return ToolResult.fail("Search query cannot be empty.")
    if len(query) > MAX_QUERY_LENGTH:
        return ToolResult.fail("Search query is too long. Please shorten it.")

    max_results = min(max(1, int(max_results or 5)), 10)

    # Run synchronous DDGS in thread pool
    def _search():
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    results = await asyncio.to_thread(_search)

    if not results:
        return ToolResult.ok(f"No results found for query: {query}")

    output = f"Search results for '{query}':\n\n"
    for i, result in enumerate(results, 1):
        title = result.get("title", "No title")
        url = result.get("href", "")
        snippet = result.get("body", "No description")

        output += f"{i}. {title}\n"
        output += f"   URL: {url}\n"
        output += f"   {snippet}\n\n"

    return ToolResult.ok(output.strip())
