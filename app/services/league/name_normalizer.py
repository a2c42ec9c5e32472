"""Name normalization for team and position matching.

Match sides are typed by hand, so a side called " Red Lions" and the
registered team "red lions" are the same team:
- Case: "RED LIONS" → "red lions"
- Surrounding whitespace: "  Red Lions " → "red lions"

Positions are free text ("CB", "Centre-back / DM", "Defender") and are only
ever tested for substrings, so they are lower-cased and stripped as well.
"""
from typing import Iterable, Optional


def normalize_team_name(name: Optional[str]) -> str:
    """
    Normalize a team name for equality comparison.

    Examples:
        >>> normalize_team_name("  Red Lions ")
        'red lions'
        >>> normalize_team_name(None)
        ''
    """
    if not name:
        return ""
    return name.strip().lower()


def normalize_position(position: Optional[str]) -> str:
    if not position:
        return ""
    return position.strip().lower()


def position_matches(position: Optional[str], tokens: Iterable[str]) -> bool:
    """
    True if any token occurs as a substring of the normalized position.

    Examples:
        >>> position_matches("LCB", ("cb",))
        True
        >>> position_matches("Striker", ("cb", "lb"))
        False
    """
    normalized = normalize_position(position)
    if not normalized:
        return False
    return any(token in normalized for token in tokens)
