"""Explicit long-term memory tools."""

from ravenmind.tools.base import ToolContext, ToolResult
from ravenmind.tools.registry import tool


@tool(description="Save an important fact about the user to long-term memory")
async def remember(ctx: ToolContext, fact: str, category: str = "fact") -> ToolResult:
    """Store a fact for the current user.

    Args:
        fact: The fact to remember, written in the third person
        category: One of profile, preference, fact
    """
    fact = (fact or "").strip()
    if not fact:
        return ToolResult.fail("Nothing to remember.")
    if len(fact) > 1000:
        return ToolResult.fail("Fact is too long.")
    if ctx.memory is None:
        return ToolResult.fail("Long-term memory is not available.")

    result = await ctx.memory.remember(ctx.user_id, fact, category)
    if result is None:
        return ToolResult.fail("Long-term memory is not available.")
    if result.updated:
        return ToolResult.ok(f"Updated existing memory: {fact}")
    return ToolResult.ok(f"Remembered: {fact}")


@tool(description="Search long-term memory for what you know about the user")
async def recall(ctx: ToolContext, query: str) -> ToolResult:
    """Recall memories related to a query.

    Args:
        query: What to look for
    """
    query = (query or "").strip()
    if not query:
        return ToolResult.fail("Query cannot be empty.")
    if ctx.memory is None:
        return ToolResult.fail("Long-term memory is not available.")

    results = await ctx.memory.recall(ctx.user_id, query)
    if not results:
        return ToolResult.ok("No relevant memories found.")
    return ToolResult.ok("\n".join(f"- {r.content}" for r in results))
