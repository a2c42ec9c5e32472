"""
Repository layer for data access.

The repository pattern provides:
1. Separation of data access logic from the aggregation engines
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)

Usage:
    from app.repositories import MatchRepository, StatRepository
    from app.core.database import SessionLocal

    db = SessionLocal()
    completed = MatchRepository(db).find_completed_for_tournament(tournament_id)
    db.close()
"""

from app.repositories.base import BaseRepository
from app.repositories.league import (
    MatchRepository,
    RosterRepository,
    StatRepository,
    PlayerRepository,
    MatchEventRepository,
    TournamentRepository,
    StandingRepository,
    PrizeRepository,
)

__all__ = [
    "BaseRepository",
    "MatchRepository",
    "RosterRepository",
    "StatRepository",
    "PlayerRepository",
    "MatchEventRepository",
    "TournamentRepository",
    "StandingRepository",
    "PrizeRepository",
]
