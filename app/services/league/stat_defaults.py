"""
Default-merge policy for stat rows.

A roster entry without a stat row means "played the full match with nothing
recorded", never "missing data". Every read path goes through
``merge_stat_defaults`` so the policy lives in one place.
"""
from typing import Any, Dict, Optional

from app.core.config import settings

COUNTER_FIELDS = ("goals", "assists", "yellow_cards", "red_cards", "own_goals")


def default_minutes() -> int:
    return settings.DEFAULT_MINUTES_PLAYED


def empty_counters(minutes: Optional[int] = None) -> Dict[str, Any]:
    """Fresh counters for a player first touched in a match."""
    counters: Dict[str, Any] = {field: 0 for field in COUNTER_FIELDS}
    counters["minutes_played"] = default_minutes() if minutes is None else minutes
    return counters


def merge_stat_defaults(stat: Optional[Any]) -> Dict[str, Any]:
    """
    Effective values of a stat row with the defaults applied.

    Args:
        stat: A ``Stat`` row (or any object with the same attributes), or None

    Returns:
        Dict with the counter fields, ``minutes_played`` (null or zero
        becomes the default) and ``rating`` (None when unrated).

    Examples:
        >>> merge_stat_defaults(None)["minutes_played"]
        90
    """
    merged = empty_counters()
    merged["rating"] = None
    if stat is None:
        return merged

    for field in COUNTER_FIELDS:
        merged[field] = getattr(stat, field, None) or 0
    merged["minutes_played"] = getattr(stat, "minutes_played", None) or default_minutes()
    rating = getattr(stat, "rating", None)
    merged["rating"] = float(rating) if rating is not None else None
    return merged
