"""
Tournament routes: standings, fixtures, player stats and prizes.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.league import (
    FixtureService,
    PrizeService,
    StandingsService,
    TournamentStatsService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tournaments", tags=["tournaments"])


class PlayerOfTournamentRequest(BaseModel):
    player_id: str
    team_id: Optional[str] = None


# ============================================================================
# STANDINGS & FIXTURES
# ============================================================================

@router.get("/{tournament_id}/standings")
async def get_standings(tournament_id: str, db: Session = Depends(get_db)):
    """Stored table ordered by points, goal difference, goals for."""
    standings = StandingsService(db).get_standings(tournament_id)
    return {"success": True, "standings": standings}


@router.post("/{tournament_id}/standings")
async def recalculate_standings(tournament_id: str, db: Session = Depends(get_db)):
    """
    Rebuild the table from completed matches.

    May schedule the final once the group stage of a round-robin tournament
    is complete.
    """
    result = StandingsService(db).recalculate_standings(tournament_id)
    return {"success": True, **result}


@router.post("/{tournament_id}/fixtures", status_code=201)
async def generate_fixtures(tournament_id: str, db: Session = Depends(get_db)):
    """Generate group-stage fixtures for every pair of registered teams."""
    result = FixtureService(db).generate_fixtures(tournament_id)
    return {"success": True, **result}


# ============================================================================
# PLAYER STATS & PRIZES
# ============================================================================

@router.get("/{tournament_id}/player-stats")
async def get_tournament_player_stats(tournament_id: str, db: Session = Depends(get_db)):
    """Per-player stats over completed matches, with unified score."""
    players = TournamentStatsService(db).get_tournament_player_stats(tournament_id)
    return {"success": True, "player_stats": players}


@router.get("/{tournament_id}/prizes")
async def get_prizes(tournament_id: str, db: Session = Depends(get_db)):
    prizes = PrizeService(db).get_prizes(tournament_id)
    return {"success": True, "prizes": prizes}


@router.post("/{tournament_id}/prizes")
async def calculate_prizes(tournament_id: str, db: Session = Depends(get_db)):
    """Recompute all automatic prizes; a manual Player of the Tournament is kept."""
    result = PrizeService(db).calculate_prizes(tournament_id)
    return {"success": True, **result}


@router.put("/{tournament_id}/prizes/player-of-tournament")
async def set_player_of_tournament(
    tournament_id: str,
    request: PlayerOfTournamentRequest,
    db: Session = Depends(get_db)
):
    """Manually choose the Player of the Tournament."""
    prize = PrizeService(db).set_player_of_tournament(tournament_id, request.player_id, request.team_id)
    logger.info(f"Player of the Tournament set manually for {tournament_id}")
    return {"success": True, "prize": prize}
