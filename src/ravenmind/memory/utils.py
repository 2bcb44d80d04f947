"""Utility functions for memory budgeting and relevance scoring."""

import time
from dataclasses import dataclass

from ravenmind.config.schema import TierAllocation

MS_PER_DAY = 24 * 60 * 60 * 1000

# Per-message overhead used when budgeting the active tier
MESSAGE_OVERHEAD_CHARS = 20


@dataclass(frozen=True)
class TierBudgets:
    """Character budgets for the three memory tiers."""

    active: int
    profile: int
    episodic: int

    @property
    def total(self) -> int:
        return self.active + self.profile + self.episodic


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Estimate token count for a piece of text.

    Uses a simple heuristic: ~4 characters per token.

    Args:
        text: Text to estimate
        chars_per_token: Characters per token

    Returns:
        Estimated token count
    """
    return -(-len(text) // chars_per_token)


def compute_tier_budgets(
    max_tokens: int,
    allocation: TierAllocation | None = None,
    chars_per_token: int = 4,
) -> TierBudgets:
    """Split a token budget into per-tier character budgets.

    Args:
        max_tokens: Total token budget for memory context
        allocation: Share given to each tier (defaults 50/30/20)
        chars_per_token: Characters per token

    Returns:
        Character budget per tier
    """
    allocation = allocation or TierAllocation()
    total_chars = max(0, max_tokens) * chars_per_token
    return TierBudgets(
        active=int(total_chars * allocation.active),
        profile=int(total_chars * allocation.profile),
        episodic=int(total_chars * allocation.episodic),
    )


def trim_string(text: str, max_chars: int) -> str:
    """Truncate text to max_chars, marking the cut with an ellipsis."""
    if len(text) <= max_chars:
        return text
    if max_chars <= 3:
        return text[:max_chars]
    return text[: max_chars - 3] + "..."


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def relevance_from_distance(distance: float) -> float:
    """Convert a cosine distance (0..2) into a relevance score in [0, 1]."""
    return clamp(1.0 - distance / 2.0, 0.0, 1.0)


def time_decay(timestamp_ms: float, decay_per_day: float = 0.98, now_ms: float | None = None) -> float:
    """Multiplicative penalty for memory age, clamped to [0.1, 1.0].

    Args:
        timestamp_ms: Memory creation time in epoch milliseconds
        decay_per_day: Relevance multiplier per day of age
        now_ms: Current time in epoch milliseconds (defaults to now)
    """
    if now_ms is None:
        now_ms = time.time() * 1000
    age_days = max(0.0, (now_ms - timestamp_ms) / MS_PER_DAY)
    return clamp(decay_per_day**age_days, 0.1, 1.0)


def importance_factor(importance: float) -> float:
    return clamp(importance, 0.3, 1.5)


def effective_relevance(
    relevance: float,
    timestamp_ms: float,
    importance: float,
    decay_per_day: float = 0.98,
    now_ms: float | None = None,
) -> float:
    """Combine relevance, age and importance into the ranking score.

    Returns:
        Score clamped to [0, 1]
    """
    score = relevance * time_decay(timestamp_ms, decay_per_day, now_ms) * importance_factor(importance)
    return clamp(score, 0.0, 1.0)
