"""
Match Repository for fixtures, results and per-match teams.

Usage:
    repo = MatchRepository(db)
    completed = repo.find_completed_for_tournament(tournament_id)
    has_final = repo.final_exists(tournament_id)
"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import desc, func
from sqlalchemy.orm import selectinload

from app.models import Match, MatchTeam, ROUND_FINAL
from app.repositories.base import BaseRepository


class MatchRepository(BaseRepository[Match]):
    """Repository for match data access."""

    def __init__(self, db):
        super().__init__(Match, db)

    # ========================================================================
    # Tournament Queries
    # ========================================================================

    def find_completed_for_tournament(self, tournament_id: str) -> List[Match]:
        """Completed matches of a tournament, in fetch (insertion) order."""
        return self.where(Match.tournament_id == tournament_id, Match.status == "completed")

    def find_for_tournament(self, tournament_id: str) -> List[Match]:
        """All matches of a tournament ordered by fixture order then date."""
        return self.db.query(Match).filter(
            Match.tournament_id == tournament_id
        ).order_by(Match.fixture_order, Match.date).all()

    def find_by_round(self, tournament_id: str, round_name: str) -> List[Match]:
        """Matches of one round (e.g. group_stage) in a tournament."""
        return self.where(Match.tournament_id == tournament_id, Match.round == round_name)

    def final_exists(self, tournament_id: str) -> bool:
        """Whether a final has already been scheduled for the tournament."""
        return self.exists_where(Match.tournament_id == tournament_id, Match.round == ROUND_FINAL)

    def fixtures_exist(self, tournament_id: str, round_name: str) -> bool:
        """Whether generated fixtures already exist for the given round."""
        return self.exists_where(
            Match.tournament_id == tournament_id,
            Match.is_fixture.is_(True),
            Match.round == round_name,
        )

    def latest_date(self, tournament_id: str) -> Optional[datetime]:
        """Date of the latest match in the tournament, if any."""
        return self.db.query(func.max(Match.date)).filter(
            Match.tournament_id == tournament_id
        ).scalar()

    def first_creator(self, tournament_id: str) -> Optional[str]:
        """``created_by`` of any match of the tournament, reused for generated fixtures."""
        match = self.where_first(Match.tournament_id == tournament_id, Match.created_by.isnot(None))
        return match.created_by if match else None

    # ========================================================================
    # Listings
    # ========================================================================

    def recent(self, limit: int = 5) -> List[Match]:
        """Most recent matches by date, with their per-match teams."""
        return self.db.query(Match).options(selectinload(Match.teams)).order_by(
            desc(Match.date)
        ).limit(limit).all()

    def upcoming(self, after: datetime, limit: int = 5) -> List[Match]:
        """Scheduled matches on or after ``after``, soonest first."""
        return self.db.query(Match).options(selectinload(Match.teams)).filter(
            Match.status == "scheduled",
            Match.date >= after,
        ).order_by(Match.date).limit(limit).all()

    def count_by_status(self, status: str) -> int:
        return self.count(Match.status == status)

    # ========================================================================
    # Per-match teams
    # ========================================================================

    def add_match_teams(self, match: Match, team_a_name: str, team_b_name: str) -> List[MatchTeam]:
        """Create the two ephemeral sides of a match."""
        teams = [
            MatchTeam(match_id=match.id, name=team_a_name, color="#3B82F6"),
            MatchTeam(match_id=match.id, name=team_b_name, color="#EF4444"),
        ]
        self.db.add_all(teams)
        return teams
