"""
Player Aggregation Service

Career totals for one player across every match they were rostered for:
- Counters from stat rows, with the default-merge policy for missing rows
- Saves and clean sheets from the event log (keyed by resolved player id)
- Average rating over rated matches only
- A bounded, newest-first list of recent matches
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.metrics import track_engine
from app.models import Match, MatchPlayer, Player
from app.repositories.league import MatchEventRepository, PlayerRepository, RosterRepository
from app.services.league.errors import DataFetchError, InvalidRequestError, NotFoundError
from app.services.league.name_normalizer import normalize_team_name
from app.services.league.scoring import is_defender
from app.services.league.stat_defaults import merge_stat_defaults

logger = logging.getLogger(__name__)


def opponent_score(match: Match, team_name: Optional[str]) -> Optional[int]:
    """Goals conceded by ``team_name`` in ``match``; None if the side is unknown."""
    side = normalize_team_name(team_name)
    if not side:
        return None
    if side == normalize_team_name(match.team_a_name):
        return match.score_team_b
    if side == normalize_team_name(match.team_b_name):
        return match.score_team_a
    return None


def auto_clean_sheet(entry: MatchPlayer) -> int:
    """
    Historical policy: credit a defender whose side conceded nothing.

    Only applied when ``AUTO_CLEAN_SHEET_CREDIT`` is enabled.
    """
    match = entry.match
    if match is None or match.status != "completed":
        return 0
    position = entry.position or (entry.player.position if entry.player else None)
    if not is_defender(position):
        return 0
    team_name = entry.team.name if entry.team else None
    return 1 if opponent_score(match, team_name) == 0 else 0


class PlayerStatsService:
    """
    Service for single-player aggregates.

    Usage:
        stats = PlayerStatsService(db).get_player_stats(player_id)
        stats["total_goals"], stats["recent_matches"]
    """

    def __init__(self, db: Session):
        self.db = db
        self.players = PlayerRepository(db)
        self.roster = RosterRepository(db)
        self.events = MatchEventRepository(db)

    def get_player_stats(self, player_id: str) -> Dict[str, Any]:
        """
        Aggregate one player's statistics.

        Returns:
            Dictionary with:
            - total_goals, total_assists, total_yellow_cards, total_red_cards,
              total_own_goals, total_minutes, total_clean_sheets, total_saves
            - average_rating: Mean over rated matches (0 if none)
            - matches_played: Number of roster entries
            - recent_matches: Newest first, at most RECENT_MATCHES_LIMIT
        """
        if not player_id:
            raise InvalidRequestError("Player ID is required")

        with track_engine("player_stats"):
            try:
                player = self.players.find_with_profile(player_id)
                if player is None:
                    raise NotFoundError("Player not found")
                entries = self.roster.find_for_player(player_id)
            except SQLAlchemyError as e:
                logger.error(f"Failed to fetch roster entries for player {player_id}: {e}")
                raise DataFetchError("Failed to fetch player statistics") from e

            saves_by_match, clean_sheets_by_match = self._keeper_counts(player_id)
            return self._aggregate(player, entries, saves_by_match, clean_sheets_by_match)

    def _keeper_counts(self, player_id: str):
        """Per-match save and clean sheet counts; empty on a failed fetch."""
        saves = defaultdict(int)
        clean_sheets = defaultdict(int)
        try:
            events = self.events.find_keeper_events(player_id=player_id)
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to fetch keeper events, continuing without them: {e}",
                extra={"player_id": player_id},
            )
            return saves, clean_sheets

        for event in events:
            if event.event_type == "save":
                saves[event.match_id] += 1
            elif event.event_type == "clean_sheet":
                clean_sheets[event.match_id] += 1
        return saves, clean_sheets

    def _aggregate(
        self,
        player: Player,
        entries: List[MatchPlayer],
        saves_by_match: Dict[str, int],
        clean_sheets_by_match: Dict[str, int],
    ) -> Dict[str, Any]:
        totals = {
            "total_goals": 0,
            "total_assists": 0,
            "total_yellow_cards": 0,
            "total_red_cards": 0,
            "total_own_goals": 0,
            "total_minutes": 0,
            "total_clean_sheets": 0,
            "total_saves": 0,
        }
        rating_sum = 0.0
        rated_matches = 0
        processed = []

        for entry in entries:
            values = merge_stat_defaults(entry.stat)
            saves = saves_by_match.get(entry.match_id, 0)
            clean_sheets = clean_sheets_by_match.get(entry.match_id, 0)
            if settings.AUTO_CLEAN_SHEET_CREDIT and clean_sheets == 0:
                clean_sheets = auto_clean_sheet(entry)

            totals["total_goals"] += values["goals"]
            totals["total_assists"] += values["assists"]
            totals["total_yellow_cards"] += values["yellow_cards"]
            totals["total_red_cards"] += values["red_cards"]
            totals["total_own_goals"] += values["own_goals"]
            totals["total_minutes"] += values["minutes_played"]
            totals["total_saves"] += saves
            totals["total_clean_sheets"] += clean_sheets
            if values["rating"] is not None:
                rating_sum += values["rating"]
                rated_matches += 1

            match = entry.match
            processed.append({
                "match_id": entry.match_id,
                "date": match.date if match else None,
                "status": match.status if match else None,
                "team_a_name": match.team_a_name if match else None,
                "team_b_name": match.team_b_name if match else None,
                "score_team_a": match.score_team_a if match else None,
                "score_team_b": match.score_team_b if match else None,
                "team": entry.team.name if entry.team else None,
                "goals": values["goals"],
                "assists": values["assists"],
                "yellow_cards": values["yellow_cards"],
                "red_cards": values["red_cards"],
                "own_goals": values["own_goals"],
                "minutes_played": values["minutes_played"],
                "clean_sheets": clean_sheets,
                "saves": saves,
                "rating": values["rating"],
            })

        processed.sort(key=lambda m: m["date"] or datetime.min, reverse=True)
        recent = processed[:settings.RECENT_MATCHES_LIMIT]

        return {
            "player_id": player.id,
            "name": player.display_name,
            "position": player.position,
            "photo_url": player.photo_url,
            **totals,
            "average_rating": rating_sum / rated_matches if rated_matches else 0,
            "matches_played": len(entries),
            "recent_matches": [
                {**m, "date": m["date"].isoformat() if m["date"] else None} for m in recent
            ],
        }
