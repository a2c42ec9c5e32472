"""
Unified player scoring.

    unified = round10( goals * GOAL
                     + assists * ASSIST
                     + saves * SAVE
                     + clean_sheets * (CS_DEFENDER | CS_OTHER)
                     - own_goals * OWN_GOAL_PENALTY
                     + average_rating * (RATING_DEFENDER | RATING_OTHER) )

There is exactly one formula. Variants (no own-goal penalty, extra defender
tokens) are expressed by passing different ``ScoringWeights``.
"""
import math
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from app.services.league.name_normalizer import position_matches

DEFENDER_TOKENS = ("defender", "cb", "lb", "rb", "lwb", "rwb", "sw", "cdm", "dm")


@dataclass(frozen=True)
class ScoringWeights:
    goal: float = 3.0
    assist: float = 2.0
    save: float = 0.5
    clean_sheet_defender: float = 3.0
    clean_sheet_other: float = 2.0
    own_goal_penalty: float = 2.0
    rating_defender: float = 2.6
    rating_other: float = 2.0
    defender_tokens: Tuple[str, ...] = DEFENDER_TOKENS

    def without_own_goal_penalty(self) -> "ScoringWeights":
        return replace(self, own_goal_penalty=0.0)

    def with_defender_tokens(self, *tokens: str) -> "ScoringWeights":
        return replace(self, defender_tokens=self.defender_tokens + tuple(tokens))


DEFAULT_WEIGHTS = ScoringWeights()


def round10(value: float) -> float:
    """
    Round half up to one decimal place.

    Examples:
        >>> round10(21.96)
        22.0
    """
    return math.floor(value * 10 + 0.5) / 10


def is_defender(position: Optional[str], weights: ScoringWeights = DEFAULT_WEIGHTS) -> bool:
    return position_matches(position, weights.defender_tokens)


def unified_score(
    goals: int = 0,
    assists: int = 0,
    saves: int = 0,
    clean_sheets: int = 0,
    own_goals: int = 0,
    average_rating: float = 0.0,
    defender: bool = False,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """
    Compute the unified score of one player.

    Examples:
        >>> unified_score(goals=2, assists=1, average_rating=7.0)
        22.0
    """
    clean_sheet_weight = weights.clean_sheet_defender if defender else weights.clean_sheet_other
    rating_weight = weights.rating_defender if defender else weights.rating_other
    raw = (
        goals * weights.goal
        + assists * weights.assist
        + saves * weights.save
        + clean_sheets * clean_sheet_weight
        - own_goals * weights.own_goal_penalty
        + (average_rating or 0.0) * rating_weight
    )
    return round10(raw)
