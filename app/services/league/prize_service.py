"""
Tournament Prize Service

Automatic awards, recomputed wholesale on every run:
- team_rank: Champion, Runner-up, Third Place (top 3 of the table)
- top_goals, top_assists, most_saves: every player tied at the maximum
- most_valuable_player: single best goals + assists
- player_of_tournament: best goals + assists with 2+ matches, preferring
  someone other than the MVP; never computed while a manual pick exists
- best_goalkeeper: saves + clean sheets, every player tied at the maximum
- top_performer: unified score, every player tied at the maximum

A manual Player of the Tournament row (description tagged "Manual Selection")
survives automatic runs and is only replaced by another manual pick.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.metrics import record_prize, track_engine
from app.models import TournamentPrize
from app.repositories.league import (
    MANUAL_SELECTION_TAG,
    PLAYER_OF_TOURNAMENT,
    PlayerRepository,
    PrizeRepository,
    StandingRepository,
    TournamentRepository,
)
from app.services.league.errors import (
    DataFetchError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from app.services.league.scoring import DEFAULT_WEIGHTS, ScoringWeights
from app.services.league.tournament_stats_service import TournamentPlayerStats, TournamentStatsService

logger = logging.getLogger(__name__)

TEAM_RANK_LABELS = {1: "Champion", 2: "Runner-up", 3: "Third Place"}
POT_MIN_MATCHES = 2


def format_number(value: float) -> str:
    """
    Render a count or score without a trailing ``.0``.

    Examples:
        >>> format_number(22.0)
        '22'
        >>> format_number(13.5)
        '13.5'
    """
    return f"{value:g}"


def _player_prize(tournament_id: str, category: str, player: TournamentPlayerStats, description: str) -> Dict[str, Any]:
    return {
        "tournament_id": tournament_id,
        "category": category,
        "rank": None,
        "recipient_type": "player",
        "recipient_team_id": player.team_id,
        "recipient_player_id": player.player_id,
        "prize_amount": None,
        "prize_description": description,
    }


def award_all_tied(
    tournament_id: str,
    category: str,
    players: List[TournamentPlayerStats],
    value: Callable[[TournamentPlayerStats], float],
    label: Callable[[TournamentPlayerStats, float], str],
) -> List[Dict[str, Any]]:
    """
    One prize per player sharing the maximum ``value``; nothing if the max is not > 0.

    Descriptions are prefixed with "Tied " when more than one player wins.
    """
    if not players:
        return []
    best = max(value(p) for p in players)
    if best <= 0:
        return []
    winners = [p for p in players if value(p) == best]
    prefix = "Tied " if len(winners) > 1 else ""
    return [
        _player_prize(tournament_id, category, w, f"{prefix}{label(w, best)}")
        for w in winners
    ]


def compute_player_prizes(
    tournament_id: str,
    players: List[TournamentPlayerStats],
    include_player_of_tournament: bool = True,
) -> List[Dict[str, Any]]:
    """Individual awards over the full player-stats set."""
    prizes: List[Dict[str, Any]] = []
    if not players:
        return prizes

    prizes += award_all_tied(
        tournament_id, "top_goals", players,
        lambda p: p.goals, lambda p, v: f"Top Goals ({format_number(v)} goals)",
    )
    prizes += award_all_tied(
        tournament_id, "top_assists", players,
        lambda p: p.assists, lambda p, v: f"Top Assists ({format_number(v)} assists)",
    )

    by_contribution = sorted(players, key=lambda p: -p.goal_contributions)
    mvp = by_contribution[0]
    if mvp.goal_contributions > 0:
        prizes.append(_player_prize(
            tournament_id, "most_valuable_player", mvp,
            f"Most Valuable Player ({mvp.goal_contributions} G+A)",
        ))
    else:
        mvp = None

    if include_player_of_tournament:
        eligible = [
            p for p in by_contribution
            if p.matches_played >= POT_MIN_MATCHES and p.goal_contributions > 0
        ]
        pot = next((p for p in eligible if mvp is None or p.player_id != mvp.player_id), None)
        if pot is None and eligible:
            pot = eligible[0]
        if pot is not None:
            prizes.append(_player_prize(
                tournament_id, PLAYER_OF_TOURNAMENT, pot,
                f"Player of the Tournament ({pot.goal_contributions} G+A)",
            ))

    prizes += award_all_tied(
        tournament_id, "most_saves", players,
        lambda p: p.saves, lambda p, v: f"Most Saves ({format_number(v)} saves)",
    )
    prizes += award_all_tied(
        tournament_id, "best_goalkeeper", players,
        lambda p: p.goalkeeper_score,
        lambda p, v: f"Best Goalkeeper ({p.saves} saves + {p.clean_sheets} clean sheets)",
    )
    prizes += award_all_tied(
        tournament_id, "top_performer", players,
        lambda p: p.unified_score,
        lambda p, v: f"Top Performer (Unified Score {format_number(p.unified_score)})",
    )
    return prizes


def prize_to_dict(prize: TournamentPrize) -> Dict[str, Any]:
    return {
        "id": prize.id,
        "tournament_id": prize.tournament_id,
        "category": prize.category,
        "rank": prize.rank,
        "recipient_type": prize.recipient_type,
        "recipient_team_id": prize.recipient_team_id,
        "recipient_player_id": prize.recipient_player_id,
        "recipient_team_name": prize.recipient_team.name if prize.recipient_team else None,
        "recipient_player_name": prize.recipient_player.display_name if prize.recipient_player else None,
        "prize_amount": prize.prize_amount,
        "prize_description": prize.prize_description,
        "awarded_at": prize.awarded_at.isoformat() if prize.awarded_at else None,
    }


class PrizeService:
    """
    Service for awarding and reading tournament prizes.

    Usage:
        service = PrizeService(db)
        result = service.calculate_prizes(tournament_id)
        service.set_player_of_tournament(tournament_id, player_id, team_id)
    """

    def __init__(self, db: Session, weights: ScoringWeights = DEFAULT_WEIGHTS):
        self.db = db
        self.tournaments = TournamentRepository(db)
        self.standings = StandingRepository(db)
        self.prizes = PrizeRepository(db)
        self.players = PlayerRepository(db)
        self.player_stats = TournamentStatsService(db, weights)

    def calculate_prizes(self, tournament_id: str) -> Dict[str, Any]:
        """
        Recompute every automatic prize of a tournament.

        Returns:
            Dictionary with prizes_awarded and the stored prize rows
            (including a surviving manual pick)
        """
        if not tournament_id:
            raise InvalidRequestError("Tournament ID is required")

        with track_engine("prizes"):
            players = self.player_stats.collect(tournament_id)
            try:
                table = self.standings.find_ordered(tournament_id, limit=len(TEAM_RANK_LABELS))
                manual = self.prizes.find_manual_player_of_tournament(tournament_id)
            except SQLAlchemyError as e:
                raise DataFetchError("Failed to fetch standings or prizes") from e

            computed = [
                {
                    "tournament_id": tournament_id,
                    "category": "team_rank",
                    "rank": position,
                    "recipient_type": "team",
                    "recipient_team_id": row.team_id,
                    "recipient_player_id": None,
                    "prize_amount": None,
                    "prize_description": TEAM_RANK_LABELS[position],
                }
                for position, row in enumerate(table, start=1)
                if row.team_id
            ]
            computed += compute_player_prizes(
                tournament_id, players, include_player_of_tournament=manual is None
            )

            try:
                self.prizes.delete_for_tournament(tournament_id, keep_id=manual.id if manual else None)
                self.prizes.create_many(computed)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to store prizes for tournament {tournament_id}: {e}")
                raise PersistenceError("Failed to award prizes") from e

        for prize in computed:
            record_prize(prize["category"])
        logger.info(
            "Awarded tournament prizes",
            extra={"tournament_id": tournament_id, "prizes": len(computed), "manual_kept": manual is not None},
        )
        stored = self.get_prizes(tournament_id)
        return {"prizes_awarded": len(stored), "prizes": stored}

    def set_player_of_tournament(
        self, tournament_id: str, player_id: str, team_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Replace any Player of the Tournament row with a manual pick."""
        if not tournament_id:
            raise InvalidRequestError("Tournament ID is required")
        if not player_id:
            raise InvalidRequestError("Player ID is required")

        try:
            if self.tournaments.find_by_id(tournament_id) is None:
                raise NotFoundError("Tournament not found")
            if self.players.find_by_id(player_id) is None:
                raise NotFoundError("Player not found")
        except SQLAlchemyError as e:
            raise DataFetchError("Failed to fetch player") from e

        try:
            self.prizes.delete_category(tournament_id, PLAYER_OF_TOURNAMENT)
            prize = self.prizes.create(
                tournament_id=tournament_id,
                category=PLAYER_OF_TOURNAMENT,
                rank=None,
                recipient_type="player",
                recipient_team_id=team_id or None,
                recipient_player_id=player_id,
                prize_amount=None,
                prize_description=f"Player of the Tournament ({MANUAL_SELECTION_TAG})",
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to set Player of the Tournament") from e

        record_prize(PLAYER_OF_TOURNAMENT)
        logger.info(
            "Manual Player of the Tournament set",
            extra={"tournament_id": tournament_id, "player_id": player_id},
        )
        return prize_to_dict(prize)

    def get_prizes(self, tournament_id: str) -> List[Dict[str, Any]]:
        """Stored prizes ordered by category then rank."""
        if not tournament_id:
            raise InvalidRequestError("Tournament ID is required")
        try:
            return [prize_to_dict(p) for p in self.prizes.find_for_tournament(tournament_id)]
        except SQLAlchemyError as e:
            raise DataFetchError("Failed to fetch prizes") from e
