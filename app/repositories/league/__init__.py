"""League repositories."""
from app.repositories.league.match_repository import MatchRepository
from app.repositories.league.roster_repository import RosterRepository, StatRepository, PlayerRepository
from app.repositories.league.event_repository import MatchEventRepository, KEEPER_EVENT_TYPES
from app.repositories.league.tournament_repository import (
    TournamentRepository,
    StandingRepository,
    PrizeRepository,
    MANUAL_SELECTION_TAG,
    PLAYER_OF_TOURNAMENT,
)

__all__ = [
    "MatchRepository",
    "RosterRepository",
    "StatRepository",
    "PlayerRepository",
    "MatchEventRepository",
    "KEEPER_EVENT_TYPES",
    "TournamentRepository",
    "StandingRepository",
    "PrizeRepository",
    "MANUAL_SELECTION_TAG",
    "PLAYER_OF_TOURNAMENT",
]
