"""Scratchpad tool for step-by-step reasoning."""

from ravenmind.tools.registry import tool

THINK_TOOL = "think"


@tool(
    description=(
        "Think through a problem step by step before answering. Use for reasoning, "
        "planning, and breaking down complex tasks. Has no external effect."
    )
)
async def think(thought: str) -> str:
    """Record a reasoning step.

    Args:
        thought: Your current thinking or reasoning step
    """
    return f"Thought recorded: {thought}"
