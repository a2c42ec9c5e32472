"""
Roster and stat-row repositories.

A roster entry (``MatchPlayer``) links a player to one match; its optional
``Stat`` row is upserted keyed on the roster entry id.

Usage:
    roster = RosterRepository(db).find_for_match(match_id)
    StatRepository(db).upsert(entry.id, goals=1, assists=0, ...)
"""
from typing import Optional, List, Iterable, Tuple

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from app.models import MatchPlayer, Stat, Player
from app.repositories.base import BaseRepository


class RosterRepository(BaseRepository[MatchPlayer]):
    """Repository for match roster entries."""

    def __init__(self, db):
        super().__init__(MatchPlayer, db)

    def find_for_match(self, match_id: str) -> List[MatchPlayer]:
        """Roster of one match with each player's profile loaded."""
        return self.db.query(MatchPlayer).options(
            joinedload(MatchPlayer.player).joinedload(Player.user_profile),
        ).filter(MatchPlayer.match_id == match_id).all()

    def find_entry(self, match_id: str, player_id: str) -> Optional[MatchPlayer]:
        return self.where_first(MatchPlayer.match_id == match_id, MatchPlayer.player_id == player_id)

    def find_for_player(self, player_id: str) -> List[MatchPlayer]:
        """Every roster entry of a player joined to its match and stat row."""
        return self.db.query(MatchPlayer).options(
            joinedload(MatchPlayer.match),
            joinedload(MatchPlayer.stat),
            joinedload(MatchPlayer.team),
        ).filter(MatchPlayer.player_id == player_id).all()

    def find_for_matches(self, match_ids: Iterable[str]) -> List[MatchPlayer]:
        """Roster entries of several matches with stat, player and per-match team."""
        match_ids = list(match_ids)
        if not match_ids:
            return []
        return self.db.query(MatchPlayer).options(
            joinedload(MatchPlayer.stat),
            joinedload(MatchPlayer.team),
            joinedload(MatchPlayer.player).joinedload(Player.user_profile),
        ).filter(MatchPlayer.match_id.in_(match_ids)).order_by(
            MatchPlayer.created_at, MatchPlayer.id
        ).all()


class StatRepository(BaseRepository[Stat]):
    """Repository for per-roster-entry stat rows."""

    def __init__(self, db):
        super().__init__(Stat, db)

    def find_by_match_player(self, match_player_id: str) -> Optional[Stat]:
        return self.where_first(Stat.match_player_id == match_player_id)

    def upsert(self, match_player_id: str, **values) -> Stat:
        """
        Insert or replace the stat row of a roster entry.

        Values overwrite the stored ones; nothing is added to previous
        counters, so repeating an upsert with the same values is a no-op.
        """
        stat = self.find_by_match_player(match_player_id)
        if stat is None:
            stat = Stat(match_player_id=match_player_id, **values)
            self.db.add(stat)
        else:
            for key, value in values.items():
                setattr(stat, key, value)
        return stat

    def find_all_with_roster(self) -> List[Tuple[Stat, Optional[MatchPlayer], Optional[Player]]]:
        """
        Every stat row with its roster entry and player.

        Outer joins keep orphaned rows visible so the caller decides what to
        skip; missing join targets come back as ``None``.
        """
        return self.db.query(Stat, MatchPlayer, Player).outerjoin(
            MatchPlayer, Stat.match_player_id == MatchPlayer.id
        ).outerjoin(
            Player, MatchPlayer.player_id == Player.id
        ).order_by(Stat.created_at, Stat.id).all()

    def total_goals(self) -> int:
        return self.db.query(func.coalesce(func.sum(Stat.goals), 0)).scalar() or 0


class PlayerRepository(BaseRepository[Player]):
    """Repository for players."""

    def __init__(self, db):
        super().__init__(Player, db)

    def find_with_profile(self, player_id: str) -> Optional[Player]:
        return self.db.query(Player).options(
            joinedload(Player.user_profile)
        ).filter(Player.id == player_id).first()

