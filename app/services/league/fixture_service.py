"""
Group-stage fixture generation.

Round robin: every pair of registered teams meets once.
Double round robin: every pair meets twice, sides swapped for the return leg.
Fixtures are dated one day apart starting at the tournament start date.
"""
import logging
from datetime import datetime, timedelta, timezone
from itertools import combinations
from typing import Any, Dict, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import PersistentTeam, ROUND_GROUP_STAGE
from app.repositories.league import MatchRepository, TournamentRepository
from app.services.league.errors import (
    ConflictError,
    DataFetchError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)


def pair_fixtures(teams: List[PersistentTeam], double: bool = False) -> List[Tuple[PersistentTeam, PersistentTeam]]:
    """
    Ordered list of (side A, side B) pairings.

    Examples:
        >>> [(a, b) for a, b in pair_fixtures(["x", "y", "z"])]
        [('x', 'y'), ('x', 'z'), ('y', 'z')]
    """
    fixtures = []
    for home, away in combinations(teams, 2):
        fixtures.append((home, away))
        if double:
            fixtures.append((away, home))
    return fixtures


class FixtureService:
    """Generates the group stage of a tournament."""

    def __init__(self, db: Session):
        self.db = db
        self.tournaments = TournamentRepository(db)
        self.matches = MatchRepository(db)

    def generate_fixtures(self, tournament_id: str) -> Dict[str, Any]:
        """
        Create one scheduled match (plus its two match teams) per pairing.

        Raises:
            InvalidRequestError: fewer than two registered teams
            ConflictError: group-stage fixtures already exist
        """
        if not tournament_id:
            raise InvalidRequestError("Tournament ID is required")

        try:
            tournament = self.tournaments.find_by_id(tournament_id)
            if tournament is None:
                raise NotFoundError("Tournament not found")
            registrations = self.tournaments.find_registered_teams(tournament_id)
            already_generated = self.matches.fixtures_exist(tournament_id, ROUND_GROUP_STAGE)
        except SQLAlchemyError as e:
            raise DataFetchError("Failed to fetch tournament data") from e

        teams = [r.team for r in registrations if r.team is not None]
        if len(teams) < 2:
            raise InvalidRequestError("At least 2 teams are required to generate fixtures")
        if already_generated:
            raise ConflictError("Fixtures have already been generated for this tournament")

        pairings = pair_fixtures(teams, double=tournament.type == "double_round_robin")
        base_date = tournament.start_date or datetime.now(timezone.utc).replace(tzinfo=None)

        created = []
        try:
            for index, (team_a, team_b) in enumerate(pairings):
                match = self.matches.create(
                    type="internal",
                    date=base_date + timedelta(days=index),
                    status="scheduled",
                    team_a_name=team_a.name,
                    team_b_name=team_b.name,
                    score_team_a=0,
                    score_team_b=0,
                    tournament_id=tournament_id,
                    round=ROUND_GROUP_STAGE,
                    is_fixture=True,
                    fixture_order=index + 1,
                )
                self.db.flush()
                self.matches.add_match_teams(match, team_a.name, team_b.name)
                created.append(match)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create fixtures for tournament {tournament_id}: {e}")
            raise PersistenceError("Failed to create fixtures") from e

        logger.info(
            "Generated fixtures",
            extra={"tournament_id": tournament_id, "fixtures": len(created), "type": tournament.type},
        )
        return {
            "fixtures_generated": len(pairings),
            "matches_created": len(created),
            "matches": [
                {
                    "id": m.id,
                    "date": m.date.isoformat(),
                    "team_a_name": m.team_a_name,
                    "team_b_name": m.team_b_name,
                    "fixture_order": m.fixture_order,
                    "round": m.round,
                }
                for m in created
            ],
        }
