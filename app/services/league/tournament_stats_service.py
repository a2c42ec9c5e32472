"""
Per-player tournament statistics.

Only completed matches of the tournament count. Goals, assists, own goals
and ratings come from stat rows; saves and clean sheets come from the event
log and always override any value stored on a stat row. Each player's
per-match side is mapped onto a registered team so prizes can be credited
to a team as well.
"""
import logging
from collections import OrderedDict, defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import MatchPlayer
from app.repositories.league import (
    MatchEventRepository,
    MatchRepository,
    RosterRepository,
    TournamentRepository,
)
from app.services.league.errors import DataFetchError, InvalidRequestError, NotFoundError
from app.services.league.name_normalizer import normalize_team_name
from app.services.league.scoring import DEFAULT_WEIGHTS, ScoringWeights, is_defender, unified_score

logger = logging.getLogger(__name__)


@dataclass
class TournamentPlayerStats:
    player_id: str
    name: Optional[str]
    position: Optional[str]
    team_id: Optional[str]
    team_name: Optional[str]
    is_defender: bool
    matches_played: int = 0
    goals: int = 0
    assists: int = 0
    own_goals: int = 0
    saves: int = 0
    clean_sheets: int = 0
    total_rating: float = 0.0
    rated_matches: int = 0
    unified_score: float = 0.0

    @property
    def average_rating(self) -> float:
        return self.total_rating / self.rated_matches if self.rated_matches else 0.0

    @property
    def goal_contributions(self) -> int:
        return self.goals + self.assists

    @property
    def goalkeeper_score(self) -> int:
        return self.saves + self.clean_sheets

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["average_rating"] = round(self.average_rating, 2)
        data["goal_contributions"] = self.goal_contributions
        data["goalkeeper_score"] = self.goalkeeper_score
        return data


class TournamentStatsService:
    """
    Gathers and scores per-player tournament statistics.

    Usage:
        players = TournamentStatsService(db).collect(tournament_id)
    """

    def __init__(self, db: Session, weights: ScoringWeights = DEFAULT_WEIGHTS):
        self.db = db
        self.weights = weights
        self.tournaments = TournamentRepository(db)
        self.matches = MatchRepository(db)
        self.roster = RosterRepository(db)
        self.events = MatchEventRepository(db)

    def collect(self, tournament_id: str) -> List[TournamentPlayerStats]:
        """Scored player stats in roster (join) order."""
        try:
            if self.tournaments.find_by_id(tournament_id) is None:
                raise NotFoundError("Tournament not found")
            completed = self.matches.find_completed_for_tournament(tournament_id)
            match_ids = [m.id for m in completed]
            registrations = self.tournaments.find_registered_teams(tournament_id)
            entries = self.roster.find_for_matches(match_ids)
            keeper_events = self.events.find_keeper_events(match_ids=match_ids)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch tournament player data for {tournament_id}: {e}")
            raise DataFetchError("Failed to fetch tournament player statistics") from e

        team_ids = OrderedDict()
        for registration in registrations:
            if registration.team is not None:
                team_ids.setdefault(normalize_team_name(registration.team.name), registration.team)

        saves = defaultdict(int)
        clean_sheets = defaultdict(int)
        for event in keeper_events:
            if not event.player_id:
                continue
            key = (event.match_id, event.player_id)
            if event.event_type == "save":
                saves[key] += 1
            else:
                clean_sheets[key] += 1

        players: "OrderedDict[str, TournamentPlayerStats]" = OrderedDict()
        for entry in entries:
            if entry.player is None:
                continue
            stats = players.get(entry.player_id)
            if stats is None:
                stats = players[entry.player_id] = self._new_stats(entry, team_ids)
            stats.matches_played += 1

            key = (entry.match_id, entry.player_id)
            stats.saves += saves.get(key, 0)
            stats.clean_sheets += clean_sheets.get(key, 0)

            stat = entry.stat
            if stat is not None:
                stats.goals += stat.goals or 0
                stats.assists += stat.assists or 0
                stats.own_goals += stat.own_goals or 0
                if stat.rating is not None:
                    stats.total_rating += stat.rating
                    stats.rated_matches += 1

        for stats in players.values():
            stats.unified_score = unified_score(
                goals=stats.goals,
                assists=stats.assists,
                saves=stats.saves,
                clean_sheets=stats.clean_sheets,
                own_goals=stats.own_goals,
                average_rating=stats.average_rating,
                defender=stats.is_defender,
                weights=self.weights,
            )
        return list(players.values())

    def _new_stats(self, entry: MatchPlayer, teams: Dict[str, Any]) -> TournamentPlayerStats:
        match_team = entry.team.name if entry.team else None
        team = teams.get(normalize_team_name(match_team)) if match_team else None
        position = entry.player.position
        return TournamentPlayerStats(
            player_id=entry.player_id,
            name=entry.player.display_name,
            position=position,
            team_id=team.id if team is not None else None,
            team_name=team.name if team is not None else match_team,
            is_defender=is_defender(position, self.weights),
        )

    def get_tournament_player_stats(self, tournament_id: str) -> List[Dict[str, Any]]:
        """Player stats sorted by goals, assists, average rating (descending)."""
        if not tournament_id:
            raise InvalidRequestError("Tournament ID is required")
        players = self.collect(tournament_id)
        players.sort(key=lambda p: (-p.goals, -p.assists, -p.average_rating))
        return [p.to_dict() for p in players]
