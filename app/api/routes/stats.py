"""
League-wide statistics routes: leaderboards, public stats page, dashboard.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.league import LeaderboardService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/leaderboards")
async def get_leaderboards(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Length of scorer/assist boards"),
    db: Session = Depends(get_db)
):
    """
    Every leaderboard view.

    Returns top_scorers, top_assists, top_performers, most_active,
    most_cards, goals_per_match, top_clean_sheets and top_saves.
    """
    boards = LeaderboardService(db).get_leaderboards(limit=limit)
    return {"success": True, **boards}


@router.get("/overview")
async def get_public_overview(
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Public stats page: short boards, league totals, recent and upcoming matches."""
    overview = LeaderboardService(db).get_public_overview(limit=limit)
    return {"success": True, **overview}


@router.get("/dashboard")
async def get_dashboard(db: Session = Depends(get_db)):
    """League totals, top scorer and next scheduled matches."""
    dashboard = LeaderboardService(db).get_dashboard()
    return {"success": True, **dashboard}
