"""
Player routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.league import PlayerStatsService

router = APIRouter(prefix="/players", tags=["players"])


@router.get("/{player_id}/stats")
async def get_player_stats(player_id: str, db: Session = Depends(get_db)):
    """
    Career aggregate of one player.

    Returns:
        - total_goals, total_assists, total_yellow_cards, total_red_cards,
          total_own_goals, total_minutes, total_clean_sheets, total_saves
        - average_rating, matches_played
        - recent_matches: Newest first
    """
    stats = PlayerStatsService(db).get_player_stats(player_id)
    return {"success": True, "stats": stats}
