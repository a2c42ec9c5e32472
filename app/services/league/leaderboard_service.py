"""
League Aggregation Service

Builds every league-wide view from one aggregate map (player id -> totals):
- topScorers / topAssists (configurable limit)
- topPerformers (goals + assists), mostActive (minutes), mostCards
- topCleanSheets / topSaves (event-log sourced)
- goalsPerMatch (two or more matches)

Each view is sorted and truncated independently. Ties on the numeric key
are broken by display name so repeated calls return identical lists.
"""
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.metrics import track_engine
from app.models import Match, Player, Stat
from app.repositories.league import (
    MatchEventRepository,
    MatchRepository,
    PlayerRepository,
    StatRepository,
)
from app.services.league.errors import DataFetchError
from app.services.league.stat_defaults import merge_stat_defaults

logger = logging.getLogger(__name__)

TOP_PERFORMERS_LIMIT = 5
MOST_ACTIVE_LIMIT = 10
MOST_CARDS_LIMIT = 10
KEEPER_LIMIT = 5
GOALS_PER_MATCH_MIN_MATCHES = 2


def rank(
    players: List[Dict[str, Any]],
    key: Callable[[Dict[str, Any]], float],
    limit: Optional[int] = None,
    positive_only: bool = False,
) -> List[Dict[str, Any]]:
    """Sort by ``key`` descending then name ascending, optionally keep only key > 0."""
    rows = [p for p in players if key(p) > 0] if positive_only else list(players)
    rows.sort(key=lambda p: (-key(p), p.get("name") or ""))
    return rows[:limit] if limit is not None else rows


def _ratio(value: int, matches: int) -> float:
    return round(value / matches, 2) if matches else 0.0


def _match_summary(match: Match) -> Dict[str, Any]:
    return {
        "id": match.id,
        "date": match.date.isoformat() if match.date else None,
        "status": match.status,
        "type": match.type,
        "team_a_name": match.team_a_name,
        "team_b_name": match.team_b_name,
        "score_team_a": match.score_team_a,
        "score_team_b": match.score_team_b,
        "location": match.location,
        "tournament_id": match.tournament_id,
        "round": match.round,
        "teams": [{"id": t.id, "name": t.name, "color": t.color} for t in match.teams],
    }


class LeaderboardService:
    """
    Service for league-wide leaderboards and overview pages.

    Usage:
        service = LeaderboardService(db)
        boards = service.get_leaderboards(limit=10)
        overview = service.get_public_overview()
    """

    def __init__(self, db: Session):
        self.db = db
        self.stats = StatRepository(db)
        self.events = MatchEventRepository(db)
        self.players = PlayerRepository(db)
        self.matches = MatchRepository(db)

    # ========================================================================
    # Aggregation
    # ========================================================================

    def aggregate(self) -> "OrderedDict[str, Dict[str, Any]]":
        """
        Fold every stat row into per-player totals.

        Rows without a roster entry or player are skipped. Players appear in
        join order.
        """
        try:
            rows = self.stats.find_all_with_roster()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch stat rows: {e}")
            raise DataFetchError("Failed to fetch statistics") from e

        players: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for stat, entry, player in rows:
            if entry is None or player is None:
                continue
            record = players.get(player.id)
            if record is None:
                record = players[player.id] = self._empty_record(player)
            self._add_stat(record, stat)

        for record in players.values():
            record["goals_per_match"] = _ratio(record["goals"], record["matches_played"])
            record["assists_per_match"] = _ratio(record["assists"], record["matches_played"])
            record["goal_contributions"] = record["goals"] + record["assists"]
            record["total_cards"] = record["yellow_cards"] + record["red_cards"]
        return players

    @staticmethod
    def _empty_record(player: Player) -> Dict[str, Any]:
        return {
            "player_id": player.id,
            "name": player.display_name,
            "position": player.position,
            "photo_url": player.photo_url,
            "jersey_number": player.jersey_number,
            "goals": 0,
            "assists": 0,
            "yellow_cards": 0,
            "red_cards": 0,
            "total_minutes": 0,
            "matches_played": 0,
        }

    @staticmethod
    def _add_stat(record: Dict[str, Any], stat: Stat) -> None:
        values = merge_stat_defaults(stat)
        record["goals"] += values["goals"]
        record["assists"] += values["assists"]
        record["yellow_cards"] += values["yellow_cards"]
        record["red_cards"] += values["red_cards"]
        record["total_minutes"] += values["minutes_played"]
        record["matches_played"] += 1

    def keeper_totals(self) -> List[Dict[str, Any]]:
        """
        Per-player saves and clean sheets from the event log.

        A failed fetch degrades to an empty list.
        """
        try:
            events = self.events.find_keeper_events()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch keeper events, continuing without them: {e}")
            return []

        totals: "OrderedDict[str, Dict[str, int]]" = OrderedDict()
        for event in events:
            if not event.player_id:
                continue
            counts = totals.setdefault(event.player_id, {"saves": 0, "clean_sheets": 0})
            if event.event_type == "save":
                counts["saves"] += 1
            else:
                counts["clean_sheets"] += 1

        if not totals:
            return []
        try:
            players = {p.id: p for p in self.players.where(Player.id.in_(list(totals)))}
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch keeper players, continuing without them: {e}")
            return []

        result = []
        for player_id, counts in totals.items():
            player = players.get(player_id)
            if player is None:
                continue
            result.append({
                "player_id": player_id,
                "name": player.display_name,
                "position": player.position,
                "photo_url": player.photo_url,
                **counts,
            })
        return result

    # ========================================================================
    # Views
    # ========================================================================

    def get_leaderboards(self, limit: Optional[int] = None) -> Dict[str, List[Dict[str, Any]]]:
        """
        All leaderboard views.

        Args:
            limit: Length of the scorer and assist boards (LEADERBOARD_LIMIT)
        """
        limit = limit or settings.LEADERBOARD_LIMIT
        with track_engine("leaderboards"):
            players = list(self.aggregate().values())
            keepers = self.keeper_totals()

        return {
            "top_scorers": rank(players, lambda p: p["goals"], limit),
            "top_assists": rank(players, lambda p: p["assists"], limit),
            "top_performers": rank(
                players, lambda p: p["goal_contributions"], TOP_PERFORMERS_LIMIT, positive_only=True
            ),
            "most_active": rank(players, lambda p: p["total_minutes"], MOST_ACTIVE_LIMIT),
            "most_cards": rank(players, lambda p: p["total_cards"], MOST_CARDS_LIMIT, positive_only=True),
            "goals_per_match": rank(
                [p for p in players if p["matches_played"] >= GOALS_PER_MATCH_MIN_MATCHES],
                lambda p: p["goals_per_match"],
                limit,
                positive_only=True,
            ),
            "top_clean_sheets": rank(keepers, lambda p: p["clean_sheets"], KEEPER_LIMIT, positive_only=True),
            "top_saves": rank(keepers, lambda p: p["saves"], KEEPER_LIMIT, positive_only=True),
        }

    def get_public_overview(self, limit: Optional[int] = None) -> Dict[str, Any]:
        """
        Public stats page: short boards, league totals, recent and upcoming matches.
        """
        limit = limit or settings.PUBLIC_LEADERBOARD_LIMIT
        with track_engine("public_overview"):
            players = list(self.aggregate().values())
            keepers = self.keeper_totals()
            try:
                total_matches = self.matches.count()
                total_players = self.players.count()
                recent = self.matches.recent(settings.RECENT_MATCHES_LIMIT)
                upcoming = self.matches.upcoming(_now(), settings.RECENT_MATCHES_LIMIT)
            except SQLAlchemyError as e:
                logger.error(f"Failed to fetch overview counters: {e}")
                raise DataFetchError("Failed to fetch league overview") from e

        return {
            "top_scorers": rank(players, lambda p: p["goals"], limit, positive_only=True),
            "top_assists": rank(players, lambda p: p["assists"], limit, positive_only=True),
            "top_performers": rank(
                players, lambda p: p["goal_contributions"], TOP_PERFORMERS_LIMIT, positive_only=True
            ),
            "most_active": rank(players, lambda p: p["total_minutes"], MOST_ACTIVE_LIMIT),
            "most_cards": rank(players, lambda p: p["total_cards"], MOST_CARDS_LIMIT, positive_only=True),
            "top_clean_sheets": rank(keepers, lambda p: p["clean_sheets"], KEEPER_LIMIT, positive_only=True),
            "top_saves": rank(keepers, lambda p: p["saves"], KEEPER_LIMIT, positive_only=True),
            "overview": {
                "total_goals": sum(p["goals"] for p in players),
                "total_assists": sum(p["assists"] for p in players),
                "total_matches": total_matches,
                "total_players": total_players,
            },
            "recent_matches": [_match_summary(m) for m in recent],
            "upcoming_matches": [_match_summary(m) for m in upcoming],
        }

    def get_dashboard(self) -> Dict[str, Any]:
        """Totals, the current top scorer and the next scheduled matches."""
        with track_engine("dashboard"):
            try:
                total_players = self.players.count()
                total_matches = self.matches.count()
                completed_matches = self.matches.count_by_status("completed")
                total_goals = self.stats.total_goals()
                upcoming = self.matches.upcoming(_now(), settings.RECENT_MATCHES_LIMIT)
            except SQLAlchemyError as e:
                logger.error(f"Failed to fetch dashboard counters: {e}")
                raise DataFetchError("Failed to fetch dashboard") from e
            scorers = rank(list(self.aggregate().values()), lambda p: p["goals"], 1, positive_only=True)

        return {
            "total_players": total_players,
            "total_matches": total_matches,
            "completed_matches": completed_matches,
            "total_goals": total_goals,
            "top_scorer": scorers[0] if scorers else None,
            "upcoming_matches": [_match_summary(m) for m in upcoming],
        }


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
