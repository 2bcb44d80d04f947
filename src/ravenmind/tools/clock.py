"""Current time lookup."""

import re
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ravenmind.tools.base import ToolResult
from ravenmind.tools.registry import tool

_TIMEZONE_NAME = re.compile(r"^[A-Za-z0-9_/+-]+$")


@tool(description="Get the current date and time in a timezone")
async def get_time(timezone: str = "UTC") -> ToolResult:
    """Report the current time.

    Args:
        timezone: IANA timezone name (e.g., 'America/New_York', 'Europe/London', 'Asia/Tokyo')
    """
    tz_name = (timezone or "").strip() or "UTC"
    if len(tz_name) > 50 or not _TIMEZONE_NAME.match(tz_name):
        return ToolResult.fail("Invalid timezone format.")

    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ToolResult.fail("Invalid timezone specified.")

    now = datetime.now(tz)
    return ToolResult.ok(f"Current time in {tz_name}: {now.strftime('%A, %B %d, %Y at %H:%M:%S %Z')}")
