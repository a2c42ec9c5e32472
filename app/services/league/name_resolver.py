"""
Roster name resolution.

The event log historically names players by display name. Within one match
the roster is the only scope in which a name means anything, so resolution
is always done against a single match's roster.

Matching Strategy:
1. Explicit player id supplied by the caller (must be on the roster)
2. Exact display name, provided exactly one roster player carries it

A name shared by two roster players is ambiguous and resolves to nobody;
attributing it to either one would silently mis-credit stats.
"""
import logging
from typing import Dict, Iterable, Optional, Set

from app.core.metrics import record_unresolved
from app.models import MatchPlayer

logger = logging.getLogger(__name__)


class RosterNameResolver:
    """Name → player id lookup scoped to one match roster."""

    def __init__(self, match_id: str, roster: Iterable[MatchPlayer]):
        self.match_id = match_id
        self._by_name: Dict[str, str] = {}
        self._ambiguous: Set[str] = set()
        self._entry_by_player: Dict[str, MatchPlayer] = {}

        for entry in roster:
            self._entry_by_player[entry.player_id] = entry
            name = entry.player.display_name if entry.player else None
            if not name:
                continue
            if name in self._ambiguous:
                continue
            existing = self._by_name.get(name)
            if existing is not None and existing != entry.player_id:
                self._ambiguous.add(name)
                del self._by_name[name]
                logger.warning(
                    "Duplicate display name on match roster",
                    extra={"match_id": match_id, "player_name": name},
                )
                continue
            self._by_name[name] = entry.player_id

    @property
    def ambiguous_names(self) -> Set[str]:
        return set(self._ambiguous)

    def entry_for(self, player_id: str) -> Optional[MatchPlayer]:
        """Roster entry of ``player_id`` in this match, if any."""
        return self._entry_by_player.get(player_id)

    def resolve(self, name: Optional[str] = None, player_id: Optional[str] = None) -> Optional[str]:
        """
        Resolve a reference to a roster player id.

        Args:
            name: Display name as written in the event
            player_id: Explicit id; wins over ``name`` when it is on the roster

        Returns:
            The player id, or None when the reference cannot be resolved.
            Unresolved references are logged and counted, never raised.
        """
        if player_id:
            if player_id in self._entry_by_player:
                return player_id
            logger.warning(
                "Player id is not on the match roster",
                extra={"match_id": self.match_id, "player_id": player_id},
            )
            record_unresolved("player_id")
            return None

        if not name:
            return None

        resolved = self._by_name.get(name)
        if resolved is not None:
            return resolved

        kind = "ambiguous_name" if name in self._ambiguous else "player_name"
        logger.warning(
            "Event player name not resolved against roster",
            extra={"match_id": self.match_id, "player_name": name, "reason": kind},
        )
        record_unresolved(kind)
        return None
