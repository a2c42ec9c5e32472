"""
League engines.

- MatchStatsService: event log ingestion and per-match stat rows (write path)
- PlayerStatsService: single-player career aggregate
- LeaderboardService: league-wide boards, public overview, dashboard
- StandingsService: tournament table and automatic final
- FixtureService: group-stage fixture generation
- TournamentStatsService / PrizeService: unified scoring and awards
"""
from app.services.league.errors import (
    LeagueError,
    InvalidRequestError,
    NotFoundError,
    ConflictError,
    DataFetchError,
    PersistenceError,
)
from app.services.league.fixture_service import FixtureService
from app.services.league.leaderboard_service import LeaderboardService
from app.services.league.match_stats_service import MatchStatsService
from app.services.league.player_stats_service import PlayerStatsService
from app.services.league.prize_service import PrizeService
from app.services.league.scoring import ScoringWeights, unified_score
from app.services.league.standings_service import StandingsService
from app.services.league.tournament_stats_service import TournamentStatsService

__all__ = [
    "LeagueError",
    "InvalidRequestError",
    "NotFoundError",
    "ConflictError",
    "DataFetchError",
    "PersistenceError",
    "FixtureService",
    "LeaderboardService",
    "MatchStatsService",
    "PlayerStatsService",
    "PrizeService",
    "ScoringWeights",
    "unified_score",
    "StandingsService",
    "TournamentStatsService",
]
