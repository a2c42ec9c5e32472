"""
Tournament, standings and prize repositories.

Usage:
    teams = TournamentRepository(db).find_registered_teams(tournament_id)
    table = StandingRepository(db).find_ordered(tournament_id)
    manual = PrizeRepository(db).find_manual_player_of_tournament(tournament_id)
"""
from typing import Optional, List

from sqlalchemy import desc

from app.models import Tournament, TournamentTeam, TournamentStanding, TournamentPrize
from app.repositories.base import BaseRepository

MANUAL_SELECTION_TAG = "Manual Selection"
PLAYER_OF_TOURNAMENT = "player_of_tournament"


class TournamentRepository(BaseRepository[Tournament]):
    """Repository for tournaments and their team registrations."""

    def __init__(self, db):
        super().__init__(Tournament, db)

    def find_registered_teams(self, tournament_id: str) -> List[TournamentTeam]:
        """Registrations with their persistent team loaded, in registration order."""
        return self.db.query(TournamentTeam).filter(
            TournamentTeam.tournament_id == tournament_id
        ).order_by(TournamentTeam.registered_at, TournamentTeam.id).all()


class StandingRepository(BaseRepository[TournamentStanding]):
    """Repository for tournament table rows."""

    def __init__(self, db):
        super().__init__(TournamentStanding, db)

    def find_row(
        self, tournament_id: str, team_id: str, group_name: Optional[str] = None
    ) -> Optional[TournamentStanding]:
        """The row keyed by (tournament, team, group); group ``None`` is the overall table."""
        group_filter = (
            TournamentStanding.group_name.is_(None)
            if group_name is None
            else TournamentStanding.group_name == group_name
        )
        return self.where_first(
            TournamentStanding.tournament_id == tournament_id,
            TournamentStanding.team_id == team_id,
            group_filter,
        )

    def find_ordered(self, tournament_id: str, limit: Optional[int] = None) -> List[TournamentStanding]:
        """Overall table: points, goal difference, goals for (all descending)."""
        query = self.db.query(TournamentStanding).filter(
            TournamentStanding.tournament_id == tournament_id,
            TournamentStanding.group_name.is_(None),
        ).order_by(
            desc(TournamentStanding.points),
            desc(TournamentStanding.goal_difference),
            desc(TournamentStanding.goals_for),
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()


class PrizeRepository(BaseRepository[TournamentPrize]):
    """Repository for awarded tournament prizes."""

    def __init__(self, db):
        super().__init__(TournamentPrize, db)

    def find_for_tournament(self, tournament_id: str) -> List[TournamentPrize]:
        return self.db.query(TournamentPrize).filter(
            TournamentPrize.tournament_id == tournament_id
        ).order_by(TournamentPrize.category, TournamentPrize.rank).all()

    def find_manual_player_of_tournament(self, tournament_id: str) -> Optional[TournamentPrize]:
        """The manually chosen Player of the Tournament row, if one exists."""
        return self.where_first(
            TournamentPrize.tournament_id == tournament_id,
            TournamentPrize.category == PLAYER_OF_TOURNAMENT,
            TournamentPrize.prize_description.like(f"%{MANUAL_SELECTION_TAG}%"),
        )

    def delete_for_tournament(self, tournament_id: str, keep_id: Optional[str] = None) -> int:
        """Delete every prize of the tournament except ``keep_id``."""
        criteria = [TournamentPrize.tournament_id == tournament_id]
        if keep_id is not None:
            criteria.append(TournamentPrize.id != keep_id)
        return self.delete_where(*criteria)

    def delete_category(self, tournament_id: str, category: str) -> int:
        return self.delete_where(
            TournamentPrize.tournament_id == tournament_id,
            TournamentPrize.category == category,
        )
