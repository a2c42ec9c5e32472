"""
Standings Calculator

Replays every completed match of a tournament into a league table:
1. Resolve free-text match sides to registered teams (trimmed, case-insensitive)
2. Count played/won/drawn/lost and goals for each side
3. Apply the tournament's point weights (3/1/0 unless configured)
4. Persist one overall row per team (find-or-create, never blind insert)
5. When a round-robin group stage is finished, schedule the final once

Order of the table: points, goal difference, goals for (all descending);
remaining ties keep registration order.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.metrics import finals_generated_total, record_unresolved, track_engine
from app.models import (
    Match,
    PersistentTeam,
    Tournament,
    TournamentStanding,
    ROUND_FINAL,
    ROUND_GROUP_STAGE,
)
from app.repositories.league import MatchRepository, StandingRepository, TournamentRepository
from app.services.league.errors import (
    DataFetchError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from app.services.league.name_normalizer import normalize_team_name

logger = logging.getLogger(__name__)

FINAL_ELIGIBLE_TYPES = ("round_robin", "double_round_robin")
FINAL_FIXTURE_ORDER = 999


@dataclass
class TeamRecord:
    """Running table row for one persistent team."""
    team_id: str
    team_name: str
    matches_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def record(self, scored: int, conceded: int) -> None:
        self.matches_played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.wins += 1
        elif scored == conceded:
            self.draws += 1
        else:
            self.losses += 1


@dataclass(frozen=True)
class PointWeights:
    win: int = 3
    draw: int = 1
    loss: int = 0

    @classmethod
    def for_tournament(cls, tournament: Tournament) -> "PointWeights":
        def pick(value: Optional[int], default: int) -> int:
            return default if value is None else value

        return cls(
            win=pick(tournament.points_per_win, settings.DEFAULT_POINTS_PER_WIN),
            draw=pick(tournament.points_per_draw, settings.DEFAULT_POINTS_PER_DRAW),
            loss=pick(tournament.points_per_loss, settings.DEFAULT_POINTS_PER_LOSS),
        )

    def points(self, record: TeamRecord) -> int:
        return record.wins * self.win + record.draws * self.draw + record.losses * self.loss


def table_order_key(record) -> tuple:
    """Sort key (descending) shared by in-memory records and persisted rows."""
    return (-record.points, -record.goal_difference, -record.goals_for)


@dataclass
class StandingsResult:
    records: List[TeamRecord] = field(default_factory=list)
    skipped_matches: List[str] = field(default_factory=list)


def compute_standings(
    matches: List[Match],
    teams: List[PersistentTeam],
    weights: PointWeights = PointWeights(),
) -> StandingsResult:
    """
    Pure replay of completed matches into ordered team records.

    Matches with a side that does not name a registered team are skipped
    and reported in ``skipped_matches``.
    """
    records: Dict[str, TeamRecord] = {}
    by_name: Dict[str, str] = {}
    for team in teams:
        records[team.id] = TeamRecord(team_id=team.id, team_name=team.name)
        key = normalize_team_name(team.name)
        if key in by_name:
            logger.warning(f"Two registered teams share the name {team.name!r}; keeping the first")
            continue
        by_name[key] = team.id

    result = StandingsResult()
    for match in matches:
        team_a = by_name.get(normalize_team_name(match.team_a_name))
        team_b = by_name.get(normalize_team_name(match.team_b_name))
        if team_a is None or team_b is None or team_a == team_b:
            logger.warning(
                "Skipping match with unresolved team names",
                extra={
                    "match_id": match.id,
                    "team_a_name": match.team_a_name,
                    "team_b_name": match.team_b_name,
                },
            )
            record_unresolved("team_name")
            result.skipped_matches.append(match.id)
            continue

        score_a = match.score_team_a or 0
        score_b = match.score_team_b or 0
        records[team_a].record(score_a, score_b)
        records[team_b].record(score_b, score_a)

    for record in records.values():
        record.points = weights.points(record)

    result.records = sorted(records.values(), key=table_order_key)
    return result


def standing_to_dict(row: TournamentStanding, position: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": row.id,
        "tournament_id": row.tournament_id,
        "team_id": row.team_id,
        "team_name": row.team.name if row.team else None,
        "group_name": row.group_name,
        "matches_played": row.matches_played,
        "wins": row.wins,
        "draws": row.draws,
        "losses": row.losses,
        "goals_for": row.goals_for,
        "goals_against": row.goals_against,
        "goal_difference": row.goal_difference,
        "points": row.points,
    }
    if position is not None:
        data["position"] = position
    return data


class StandingsService:
    """
    Service that rebuilds and reads tournament tables.

    Usage:
        result = StandingsService(db).recalculate_standings(tournament_id)
    """

    def __init__(self, db: Session):
        self.db = db
        self.tournaments = TournamentRepository(db)
        self.matches = MatchRepository(db)
        self.standings = StandingRepository(db)

    def recalculate_standings(self, tournament_id: str) -> Dict[str, Any]:
        """
        Rebuild the tournament table from completed matches.

        Returns:
            Dictionary with:
            - updated: False when there were no completed matches (table untouched)
            - message
            - standings: Ordered table with 1-based positions
            - skipped_matches: Ids of matches whose sides did not resolve
            - final_match_id: Id of a final scheduled by this run, if any
        """
        if not tournament_id:
            raise InvalidRequestError("Tournament ID is required")

        with track_engine("standings"):
            tournament = self._get_tournament(tournament_id)
            try:
                completed = self.matches.find_completed_for_tournament(tournament_id)
                if not completed:
                    return {
                        "updated": False,
                        "message": "No completed matches",
                        "standings": [],
                        "skipped_matches": [],
                        "final_match_id": None,
                    }
                registrations = self.tournaments.find_registered_teams(tournament_id)
            except SQLAlchemyError as e:
                logger.error(f"Failed to fetch matches/teams for tournament {tournament_id}: {e}")
                raise DataFetchError("Failed to fetch tournament data") from e

            teams = [r.team for r in registrations if r.team is not None]
            if not teams:
                raise InvalidRequestError("No teams found in tournament")
            result = compute_standings(completed, teams, PointWeights.for_tournament(tournament))

            try:
                self._persist(tournament_id, result.records)
                final = self._maybe_generate_final(tournament, result.records)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to persist standings for tournament {tournament_id}: {e}")
                raise PersistenceError("Failed to update standings") from e

        if final is not None:
            finals_generated_total.inc()
        logger.info(
            "Recalculated standings",
            extra={
                "tournament_id": tournament_id,
                "teams": len(result.records),
                "skipped_matches": len(result.skipped_matches),
                "final_generated": final is not None,
            },
        )
        return {
            "updated": True,
            "message": "Standings updated",
            "standings": self.get_standings(tournament_id),
            "skipped_matches": result.skipped_matches,
            "final_match_id": final.id if final is not None else None,
        }

    def _persist(self, tournament_id: str, records: List[TeamRecord]) -> None:
        """Find-or-create each team's overall row, drop rows of unregistered teams."""
        for record in records:
            row = self.standings.find_row(tournament_id, record.team_id)
            if row is None:
                row = self.standings.create(
                    tournament_id=tournament_id, team_id=record.team_id, group_name=None
                )
            row.matches_played = record.matches_played
            row.wins = record.wins
            row.draws = record.draws
            row.losses = record.losses
            row.goals_for = record.goals_for
            row.goals_against = record.goals_against
            row.goal_difference = record.goal_difference
            row.points = record.points

        registered = [record.team_id for record in records]
        self.standings.delete_where(
            TournamentStanding.tournament_id == tournament_id,
            TournamentStanding.group_name.is_(None),
            TournamentStanding.team_id.notin_(registered),
        )
        self.db.flush()

    def _maybe_generate_final(self, tournament: Tournament, records: List[TeamRecord]) -> Optional[Match]:
        """Schedule the final once every group-stage match is completed."""
        if tournament.type not in FINAL_ELIGIBLE_TYPES:
            return None
        group_stage = self.matches.find_by_round(tournament.id, ROUND_GROUP_STAGE)
        if not group_stage:
            return None
        if any(match.status != "completed" for match in group_stage):
            return None
        if self.matches.final_exists(tournament.id):
            return None
        if len(records) < 2:
            return None

        first, second = records[0], records[1]
        latest = self.matches.latest_date(tournament.id)
        final = self.matches.create(
            type="internal",
            date=latest + timedelta(days=1),
            status="scheduled",
            team_a_name=first.team_name,
            team_b_name=second.team_name,
            score_team_a=0,
            score_team_b=0,
            tournament_id=tournament.id,
            round=ROUND_FINAL,
            is_fixture=True,
            fixture_order=FINAL_FIXTURE_ORDER,
            created_by=self.matches.first_creator(tournament.id),
        )
        self.db.flush()
        self.matches.add_match_teams(final, first.team_name, second.team_name)
        self.db.flush()
        logger.info(
            "Scheduled tournament final",
            extra={"tournament_id": tournament.id, "team_a": first.team_name, "team_b": second.team_name},
        )
        return final

    def get_standings(self, tournament_id: str) -> List[Dict[str, Any]]:
        """Persisted overall table with 1-based positions."""
        if not tournament_id:
            raise InvalidRequestError("Tournament ID is required")
        try:
            rows = self.standings.find_ordered(tournament_id)
        except SQLAlchemyError as e:
            raise DataFetchError("Failed to fetch standings") from e
        return [standing_to_dict(row, position) for position, row in enumerate(rows, start=1)]

    def _get_tournament(self, tournament_id: str) -> Tournament:
        try:
            tournament = self.tournaments.find_by_id(tournament_id)
        except SQLAlchemyError as e:
            raise DataFetchError("Failed to fetch tournament") from e
        if tournament is None:
            raise NotFoundError("Tournament not found")
        return tournament

