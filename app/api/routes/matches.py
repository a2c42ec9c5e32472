"""
Match routes: event entry, stat recomputation, score and rating updates.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.repositories.league import MatchEventRepository
from app.services.league import MatchStatsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/matches", tags=["matches"])


# ============================================================================
# REQUEST MODELS
# ============================================================================

class GoalEvent(BaseModel):
    scorer: Optional[str] = None
    scorer_id: Optional[str] = None
    assist: Optional[str] = None
    assist_id: Optional[str] = None
    minute: Optional[int] = Field(None, ge=0)
    team: Optional[str] = None


class PlayerEvent(BaseModel):
    """Own goals reuse ``scorer``; cards, saves and clean sheets use ``player``."""
    player: Optional[str] = None
    player_id: Optional[str] = None
    scorer: Optional[str] = None
    scorer_id: Optional[str] = None
    minute: Optional[int] = Field(None, ge=0)
    team: Optional[str] = None


class CardEvent(PlayerEvent):
    card_type: str = Field(..., description="yellow or red")


class SubstitutionEvent(BaseModel):
    player_out: Optional[str] = None
    player_in: Optional[str] = None
    minute: Optional[int] = Field(None, ge=0)
    team: Optional[str] = None


class RecordEventsRequest(BaseModel):
    goals: List[GoalEvent] = []
    own_goals: List[PlayerEvent] = []
    cards: List[CardEvent] = []
    saves: List[PlayerEvent] = []
    clean_sheets: List[PlayerEvent] = []
    substitutions: List[SubstitutionEvent] = []
    match_summary: Optional[str] = None


class ScoreUpdateRequest(BaseModel):
    score_team_a: int
    score_team_b: int
    status: Optional[str] = None


class RatingRequest(BaseModel):
    player_id: str
    rating: Optional[float] = Field(None, description="0-10, null clears the rating")


# ============================================================================
# ROUTES
# ============================================================================

@router.post("/events/resolve-legacy")
async def resolve_legacy_events(
    limit: Optional[int] = Query(None, ge=1, description="Maximum events to examine"),
    db: Session = Depends(get_db)
):
    """Fill resolved player ids on events stored with names only."""
    result = MatchStatsService(db).resolve_legacy_events(limit=limit)
    return {"success": True, **result}


@router.get("/{match_id}/events")
async def get_match_events(match_id: str, db: Session = Depends(get_db)):
    """Event log of a match in minute order."""
    events = MatchEventRepository(db).find_for_match(match_id)
    return {
        "success": True,
        "events": [
            {
                "id": e.id,
                "event_type": e.event_type,
                "minute": e.minute,
                "team": e.team,
                "scorer": e.scorer,
                "assist": e.assist,
                "player": e.player,
                "card_type": e.card_type,
                "player_out": e.player_out,
                "player_in": e.player_in,
                "player_id": e.player_id,
                "assist_player_id": e.assist_player_id,
            }
            for e in events
        ],
    }


@router.post("/{match_id}/events")
async def record_match_events(
    match_id: str,
    request: RecordEventsRequest,
    db: Session = Depends(get_db)
):
    """
    Replace a match's event log and recompute its player stats.

    Players may be referenced by roster display name or by id.
    """
    result = MatchStatsService(db).record_match_events(
        match_id,
        goals=[g.model_dump() for g in request.goals],
        own_goals=[o.model_dump() for o in request.own_goals],
        cards=[c.model_dump() for c in request.cards],
        saves=[s.model_dump() for s in request.saves],
        clean_sheets=[c.model_dump() for c in request.clean_sheets],
        substitutions=[s.model_dump() for s in request.substitutions],
        match_summary=request.match_summary,
    )
    return {"success": True, **result}


@router.post("/{match_id}/stats/recompute")
async def recompute_match_stats(match_id: str, db: Session = Depends(get_db)):
    """Rebuild per-player stat rows from the stored event log (idempotent)."""
    result = MatchStatsService(db).recompute_match_stats(match_id)
    return {"success": True, **result}


@router.put("/{match_id}/score")
async def update_match_score(
    match_id: str,
    request: ScoreUpdateRequest,
    db: Session = Depends(get_db)
):
    """Update the result; completing a tournament match refreshes its standings."""
    result = MatchStatsService(db).update_match_score(
        match_id, request.score_team_a, request.score_team_b, request.status
    )
    return {"success": True, **result}


@router.put("/{match_id}/ratings")
async def set_player_rating(
    match_id: str,
    request: RatingRequest,
    db: Session = Depends(get_db)
):
    """Set a player's rating for one match."""
    result = MatchStatsService(db).set_player_rating(match_id, request.player_id, request.rating)
    return {"success": True, **result}
