"""
Per-Match Stat Service

Write path of the league engine:
- Replace a match's event log, resolving player names to ids once
- Fold the event log into per-player stat rows (idempotent upsert)
- Manual rating entry and score updates
- Backfill of player ids on legacy name-only events

Every public write runs in a single session transaction; on failure the
session is rolled back and nothing is partially written.
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.metrics import record_unresolved, stat_rows_written_total, track_engine
from app.models import MATCH_STATUSES, CARD_TYPES, Match, MatchEvent
from app.repositories.league import (
    MatchRepository,
    RosterRepository,
    StatRepository,
    MatchEventRepository,
)
from app.services.league.errors import (
    DataFetchError,
    InvalidRequestError,
    LeagueError,
    NotFoundError,
    PersistenceError,
)
from app.services.league.name_resolver import RosterNameResolver
from app.services.league.stat_defaults import COUNTER_FIELDS, empty_counters

logger = logging.getLogger(__name__)

MIN_RATING = 0.0
MAX_RATING = 10.0


def fold_events(events: List[MatchEvent]) -> "OrderedDict[str, Dict[str, Any]]":
    """
    Fold resolved events into per-player counters.

    Only ``player_id``/``assist_player_id`` are read; events whose subject
    was never resolved contribute nothing. Players are returned in the order
    they were first touched.

    Returns:
        player_id -> {goals, assists, yellow_cards, red_cards, own_goals,
        minutes_played, saves, clean_sheets}
    """
    counters: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

    def touch(player_id: str) -> Dict[str, Any]:
        if player_id not in counters:
            entry = empty_counters()
            entry["saves"] = 0
            entry["clean_sheets"] = 0
            counters[player_id] = entry
        return counters[player_id]

    for event in events:
        if event.event_type == "goal":
            if event.player_id:
                touch(event.player_id)["goals"] += 1
            if event.assist_player_id:
                touch(event.assist_player_id)["assists"] += 1
        elif event.event_type == "own_goal":
            if event.player_id:
                touch(event.player_id)["own_goals"] += 1
        elif event.event_type == "card":
            if not event.player_id:
                continue
            if event.card_type == "yellow":
                touch(event.player_id)["yellow_cards"] += 1
            elif event.card_type == "red":
                touch(event.player_id)["red_cards"] += 1
        elif event.event_type == "save":
            if event.player_id:
                touch(event.player_id)["saves"] += 1
        elif event.event_type == "clean_sheet":
            if event.player_id:
                touch(event.player_id)["clean_sheets"] += 1

    return counters


class MatchStatsService:
    """
    Service that keeps stat rows in line with the match event log.

    Usage:
        service = MatchStatsService(db)
        result = service.recompute_match_stats(match_id)
    """

    def __init__(self, db: Session):
        self.db = db
        self.matches = MatchRepository(db)
        self.roster = RosterRepository(db)
        self.stats = StatRepository(db)
        self.events = MatchEventRepository(db)

    # ========================================================================
    # Stat recomputation
    # ========================================================================

    def recompute_match_stats(self, match_id: str) -> Dict[str, Any]:
        """
        Rebuild the stat rows of one match from its event log.

        Args:
            match_id: Match to recompute

        Returns:
            Dictionary with:
            - match_id
            - players_updated: Number of stat rows written
            - stats: Per-player counters written, keyed by player id
        """
        if not match_id:
            raise InvalidRequestError("Match ID is required")

        with track_engine("match_stats"):
            match = self._get_match(match_id)
            try:
                written = self._recompute(match)
                self.db.commit()
            except DataFetchError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to write stats for match {match_id}: {e}")
                raise PersistenceError("Failed to update player statistics") from e

        stat_rows_written_total.inc(len(written))
        logger.info(
            "Recomputed match stats",
            extra={"match_id": match_id, "players_updated": len(written)},
        )
        return {"match_id": match_id, "players_updated": len(written), "stats": written}

    def _recompute(self, match: Match, fill_missing_ids: bool = True) -> Dict[str, Dict[str, Any]]:
        """
        Fold and upsert inside the caller's transaction.

        Pass ``fill_missing_ids=False`` when every event row was resolved in
        this request already, so unresolved names are not reported twice.
        """
        try:
            roster = self.roster.find_for_match(match.id)
            events = self.events.find_for_match(match.id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch roster/events for match {match.id}: {e}")
            raise DataFetchError("Failed to load match roster or events") from e

        resolver = RosterNameResolver(match.id, roster)
        if fill_missing_ids:
            self._fill_missing_ids(events, resolver)
        counters = fold_events(events)

        written: Dict[str, Dict[str, Any]] = {}
        for player_id, values in counters.items():
            entry = resolver.entry_for(player_id)
            if entry is None:
                # id recorded on an event but player since removed from the roster
                record_unresolved("player_id")
                logger.warning(
                    "Event player is no longer on the roster",
                    extra={"match_id": match.id, "player_id": player_id},
                )
                continue
            self.stats.upsert(entry.id, **values)
            written[player_id] = values

        # Untouched players keep minutes and rating but lose stale counters
        for entry in roster:
            if entry.player_id in written or entry.stat is None:
                continue
            reset = {field: 0 for field in COUNTER_FIELDS}
            reset.update(saves=0, clean_sheets=0)
            self.stats.upsert(entry.id, **reset)

        self.db.flush()
        return written

    def _fill_missing_ids(self, events: List[MatchEvent], resolver: RosterNameResolver) -> None:
        """Resolve ids once for events stored with names only."""
        for event in events:
            if event.event_type == "substitution":
                continue
            if event.player_id is None and event.subject_name:
                event.player_id = resolver.resolve(name=event.subject_name)
            if event.event_type == "goal" and event.assist_player_id is None and event.assist:
                event.assist_player_id = resolver.resolve(name=event.assist)

    # ========================================================================
    # Event ingestion
    # ========================================================================

    def record_match_events(
        self,
        match_id: str,
        goals: Optional[List[Dict[str, Any]]] = None,
        own_goals: Optional[List[Dict[str, Any]]] = None,
        cards: Optional[List[Dict[str, Any]]] = None,
        saves: Optional[List[Dict[str, Any]]] = None,
        clean_sheets: Optional[List[Dict[str, Any]]] = None,
        substitutions: Optional[List[Dict[str, Any]]] = None,
        match_summary: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Replace the event log of a match and recompute its stats.

        Each item may name its player (``scorer``/``assist``/``player``) or
        give the id directly (``scorer_id``/``assist_id``/``player_id``);
        ids win over names. Names are resolved against the roster here, once.

        Returns:
            Dictionary with events_recorded, unresolved, players_updated, stats
        """
        if not match_id:
            raise InvalidRequestError("Match ID is required")
        for card in cards or []:
            if card.get("card_type") not in CARD_TYPES:
                raise InvalidRequestError(f"Invalid card type: {card.get('card_type')}")

        with track_engine("record_events"):
            match = self._get_match(match_id)
            try:
                roster = self.roster.find_for_match(match_id)
            except SQLAlchemyError as e:
                raise DataFetchError("Failed to load match roster") from e

            resolver = RosterNameResolver(match_id, roster)
            names = {
                entry.player_id: entry.player.display_name
                for entry in roster if entry.player is not None
            }

            rows: List[MatchEvent] = []
            for item in goals or []:
                rows.append(self._build_event(
                    match_id, "goal", item, resolver, names,
                    name_key="scorer", id_key="scorer_id", name_column="scorer",
                ))
            for item in own_goals or []:
                item = {
                    **item,
                    "scorer": item.get("scorer") or item.get("player"),
                    "scorer_id": item.get("scorer_id") or item.get("player_id"),
                }
                rows.append(self._build_event(
                    match_id, "own_goal", item, resolver, names,
                    name_key="scorer", id_key="scorer_id", name_column="scorer",
                ))
            for item in cards or []:
                rows.append(self._build_event(match_id, "card", item, resolver, names))
            for item in saves or []:
                rows.append(self._build_event(match_id, "save", item, resolver, names))
            for item in clean_sheets or []:
                rows.append(self._build_event(match_id, "clean_sheet", item, resolver, names))
            for item in substitutions or []:
                rows.append(MatchEvent(
                    match_id=match_id,
                    event_type="substitution",
                    minute=item.get("minute"),
                    team=item.get("team"),
                    player_out=item.get("player_out"),
                    player_in=item.get("player_in"),
                ))

            try:
                self.events.replace_for_match(match_id, rows)
                if match_summary is not None:
                    match.match_summary = match_summary
                self.db.flush()
                written = self._recompute(match, fill_missing_ids=False)
                self.db.commit()
            except DataFetchError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to record events for match {match_id}: {e}")
                raise PersistenceError("Failed to save match events") from e

        unresolved = sum(
            1 for row in rows if row.event_type != "substitution" and row.player_id is None
        )
        stat_rows_written_total.inc(len(written))
        logger.info(
            "Recorded match events",
            extra={"match_id": match_id, "events": len(rows), "unresolved": unresolved},
        )
        return {
            "match_id": match_id,
            "events_recorded": len(rows),
            "unresolved": unresolved,
            "players_updated": len(written),
            "stats": written,
        }

    def _build_event(
        self,
        match_id: str,
        event_type: str,
        item: Dict[str, Any],
        resolver: RosterNameResolver,
        names: Dict[str, Optional[str]],
        name_key: str = "player",
        id_key: str = "player_id",
        name_column: str = "player",
    ) -> MatchEvent:
        player_id = resolver.resolve(name=item.get(name_key), player_id=item.get(id_key))
        event = MatchEvent(
            match_id=match_id,
            event_type=event_type,
            minute=item.get("minute"),
            team=item.get("team"),
            card_type=item.get("card_type") if event_type == "card" else None,
            player_id=player_id,
        )
        # Keep the display name readable for legacy consumers of the log
        setattr(event, name_column, item.get(name_key) or names.get(player_id))

        if event_type == "goal":
            assist_name = item.get("assist")
            assist_id = item.get("assist_id")
            if assist_name or assist_id:
                event.assist_player_id = resolver.resolve(name=assist_name, player_id=assist_id)
                event.assist = assist_name or names.get(event.assist_player_id)
        return event

    # ========================================================================
    # Manual edits
    # ========================================================================

    def set_player_rating(self, match_id: str, player_id: str, rating: Optional[float]) -> Dict[str, Any]:
        """Set (or clear, with None) a player's 0-10 rating for one match."""
        if not match_id or not player_id:
            raise InvalidRequestError("Match ID and player ID are required")
        if rating is not None and not (MIN_RATING <= rating <= MAX_RATING):
            raise InvalidRequestError("Rating must be between 0 and 10")

        try:
            entry = self.roster.find_entry(match_id, player_id)
        except SQLAlchemyError as e:
            raise DataFetchError("Failed to load roster entry") from e
        if entry is None:
            raise NotFoundError("Player is not on this match's roster")

        try:
            stat = self.stats.find_by_match_player(entry.id)
            if stat is None:
                stat = self.stats.upsert(entry.id, rating=rating, **empty_counters())
            else:
                stat.rating = rating
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to save rating") from e

        return {"match_id": match_id, "player_id": player_id, "rating": stat.rating}

    def update_match_score(
        self,
        match_id: str,
        score_team_a: int,
        score_team_b: int,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Update a match result; completing a tournament match refreshes standings.

        A standings failure is logged and reported, never raised: the score
        update itself has already been committed.
        """
        if not match_id:
            raise InvalidRequestError("Match ID is required")
        if score_team_a is None or score_team_b is None:
            raise InvalidRequestError("Both scores are required")
        if score_team_a < 0 or score_team_b < 0:
            raise InvalidRequestError("Scores cannot be negative")
        if status is not None and status not in MATCH_STATUSES:
            raise InvalidRequestError(f"Invalid match status: {status}")

        match = self._get_match(match_id)
        try:
            match.score_team_a = score_team_a
            match.score_team_b = score_team_b
            if status is not None:
                match.status = status
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to update match score") from e

        result: Dict[str, Any] = {
            "match_id": match.id,
            "score_team_a": match.score_team_a,
            "score_team_b": match.score_team_b,
            "status": match.status,
            "standings_updated": False,
        }

        if match.status == "completed" and match.tournament_id:
            from app.services.league.standings_service import StandingsService

            try:
                standings = StandingsService(self.db).recalculate_standings(match.tournament_id)
                result["standings_updated"] = standings["updated"]
                result["final_generated"] = standings.get("final_match_id")
            except (LeagueError, SQLAlchemyError) as e:
                logger.error(
                    f"Standings recalculation after score update failed: {e}",
                    extra={"match_id": match.id, "tournament_id": match.tournament_id},
                )
        return result

    # ========================================================================
    # Legacy backfill
    # ========================================================================

    def resolve_legacy_events(self, limit: Optional[int] = None) -> Dict[str, int]:
        """
        Fill ``player_id``/``assist_player_id`` on name-only events.

        Returns:
            Dictionary with examined, resolved and unresolved counts
        """
        with track_engine("resolve_legacy_events"):
            try:
                pending = self.events.find_unresolved(limit=limit)
            except SQLAlchemyError as e:
                raise DataFetchError("Failed to load legacy events") from e

            by_match: Dict[str, List[MatchEvent]] = OrderedDict()
            for event in pending:
                by_match.setdefault(event.match_id, []).append(event)

            resolved = 0
            try:
                for match_id, events in by_match.items():
                    resolver = RosterNameResolver(match_id, self.roster.find_for_match(match_id))
                    self._fill_missing_ids(events, resolver)
                    resolved += sum(1 for event in events if event.player_id is not None)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise PersistenceError("Failed to backfill legacy events") from e

        logger.info(
            "Backfilled legacy events",
            extra={"examined": len(pending), "resolved": resolved},
        )
        return {
            "examined": len(pending),
            "resolved": resolved,
            "unresolved": len(pending) - resolved,
        }

    def _get_match(self, match_id: str) -> Match:
        try:
            match = self.matches.find_by_id(match_id)
        except SQLAlchemyError as e:
            raise DataFetchError("Failed to load match") from e
        if match is None:
            raise NotFoundError("Match not found")
        return match
