"""
Match event log repository.

Usage:
    repo = MatchEventRepository(db)
    events = repo.find_for_match(match_id)
    keeper_events = repo.find_keeper_events(match_ids=[...])
"""
from typing import Optional, List, Iterable

from sqlalchemy import and_, or_

from app.models import MatchEvent
from app.repositories.base import BaseRepository

# Goalkeeping events are counted from the log, never from stat rows
KEEPER_EVENT_TYPES = ("save", "clean_sheet")


class MatchEventRepository(BaseRepository[MatchEvent]):
    """Repository for the per-match event log."""

    def __init__(self, db):
        super().__init__(MatchEvent, db)

    def find_for_match(self, match_id: str) -> List[MatchEvent]:
        """Events of one match in recording order."""
        return self.db.query(MatchEvent).filter(
            MatchEvent.match_id == match_id
        ).order_by(MatchEvent.minute, MatchEvent.created_at).all()

    def replace_for_match(self, match_id: str, events: List[MatchEvent]) -> List[MatchEvent]:
        """Delete the match's log and store ``events`` in its place."""
        self.delete_where(MatchEvent.match_id == match_id)
        self.db.add_all(events)
        return events

    def find_keeper_events(
        self,
        match_ids: Optional[Iterable[str]] = None,
        player_id: Optional[str] = None,
    ) -> List[MatchEvent]:
        """
        ``save`` and ``clean_sheet`` events, optionally narrowed to some
        matches and/or one resolved player.
        """
        query = self.db.query(MatchEvent).filter(MatchEvent.event_type.in_(KEEPER_EVENT_TYPES))
        if match_ids is not None:
            match_ids = list(match_ids)
            if not match_ids:
                return []
            query = query.filter(MatchEvent.match_id.in_(match_ids))
        if player_id is not None:
            query = query.filter(MatchEvent.player_id == player_id)
        return query.all()

    def find_unresolved(self, limit: Optional[int] = None) -> List[MatchEvent]:
        """Name-only events whose subject (or assist) id was never filled in."""
        query = self.db.query(MatchEvent).filter(
            MatchEvent.event_type != "substitution",
            or_(
                MatchEvent.player_id.is_(None),
                and_(
                    MatchEvent.event_type == "goal",
                    MatchEvent.assist.isnot(None),
                    MatchEvent.assist_player_id.is_(None),
                ),
            ),
        ).order_by(MatchEvent.match_id)
        if limit is not None:
            query = query.limit(limit)
        return query.all()
