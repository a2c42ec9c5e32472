"""
League models.

Usage:
    from app.models import Match, MatchPlayer, Stat, MatchEvent
"""
from app.models.models import (
    Base,
    UserProfile,
    Player,
    Match,
    MatchTeam,
    MatchPlayer,
    Stat,
    MatchEvent,
    PersistentTeam,
    PersistentTeamPlayer,
    Tournament,
    TournamentTeam,
    TournamentStanding,
    TournamentPrize,
    MATCH_STATUSES,
    MATCH_TYPES,
    EVENT_TYPES,
    CARD_TYPES,
    TOURNAMENT_TYPES,
    ROUND_GROUP_STAGE,
    ROUND_FINAL,
)

__all__ = [
    "Base",
    "UserProfile",
    "Player",
    "Match",
    "MatchTeam",
    "MatchPlayer",
    "Stat",
    "MatchEvent",
    "PersistentTeam",
    "PersistentTeamPlayer",
    "Tournament",
    "TournamentTeam",
    "TournamentStanding",
    "TournamentPrize",
    "MATCH_STATUSES",
    "MATCH_TYPES",
    "EVENT_TYPES",
    "CARD_TYPES",
    "TOURNAMENT_TYPES",
    "ROUND_GROUP_STAGE",
    "ROUND_FINAL",
]
