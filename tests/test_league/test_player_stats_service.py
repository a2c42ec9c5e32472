"""Tests for the single-player career aggregate.

Test Coverage:
- Totals across several matches with and without stat rows
- Saves and clean sheets sourced from the event log by player id
- Average rating over rated matches only
- Recent matches newest first, bounded
- Optional automatic clean-sheet credit for defenders
- Degradation when keeper events cannot be fetched
"""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.repositories.league import MatchEventRepository
from app.services.league import (
    InvalidRequestError,
    MatchStatsService,
    NotFoundError,
    PlayerStatsService,
)


@pytest.fixture
def keeper_kim(league):
    """Kim keeps goal in three matches; the last one has no stat row."""
    kim = league.player("Kim", position="Goalkeeper", jersey_number=1)
    m1 = league.match(score_a=1, score_b=1)
    m2 = league.match(score_a=0, score_b=2)
    m3 = league.match(score_a=0, score_b=0)
    (e1,) = league.roster(m1, [kim], team="Red")
    (e2,) = league.roster(m2, [kim], team="Red")
    league.roster(m3, [kim], team="Red")
    league.stat(e1, goals=1, minutes_played=90, rating=8.0)
    league.stat(e2, own_goals=1, minutes_played=None, rating=6.0)
    league.event(m1, "save", player="Kim", player_id=kim.id)
    league.event(m1, "save", player="Kim", player_id=kim.id)
    league.event(m2, "save", player="Kim", player_id=kim.id)
    league.event(m2, "clean_sheet", player="Kim", player_id=kim.id)
    return {"kim": kim, "matches": [m1, m2, m3]}


class TestPlayerTotals:
    """Tests for get_player_stats() totals."""

    def test_totals(self, db_session, keeper_kim):
        stats = PlayerStatsService(db_session).get_player_stats(keeper_kim["kim"].id)

        assert stats["name"] == "Kim"
        assert stats["position"] == "Goalkeeper"
        assert stats["matches_played"] == 3
        assert stats["total_minutes"] == 270
        assert stats["total_goals"] == 1
        assert stats["total_own_goals"] == 1
        assert stats["total_saves"] == 3
        assert stats["total_clean_sheets"] == 1
        assert stats["average_rating"] == 7.0

    def test_recent_matches_newest_first(self, db_session, keeper_kim):
        stats = PlayerStatsService(db_session).get_player_stats(keeper_kim["kim"].id)

        m1, m2, m3 = keeper_kim["matches"]
        assert [m["match_id"] for m in stats["recent_matches"]] == [m3.id, m2.id, m1.id]
        newest = stats["recent_matches"][0]
        assert newest["minutes_played"] == 90
        assert newest["rating"] is None
        assert newest["team"] == "Red"
        assert stats["recent_matches"][2]["saves"] == 2

    def test_recent_matches_are_bounded(self, db_session, league):
        player = league.player("Busy")
        for _ in range(6):
            league.roster(league.match(), [player])

        stats = PlayerStatsService(db_session).get_player_stats(player.id)

        assert stats["matches_played"] == 6
        assert len(stats["recent_matches"]) == settings.RECENT_MATCHES_LIMIT

    def test_player_without_matches(self, db_session, league):
        player = league.player("Bench")

        stats = PlayerStatsService(db_session).get_player_stats(player.id)

        assert stats["matches_played"] == 0
        assert stats["average_rating"] == 0
        assert stats["recent_matches"] == []

    def test_unknown_player(self, db_session):
        with pytest.raises(NotFoundError):
            PlayerStatsService(db_session).get_player_stats("missing")

    def test_player_id_required(self, db_session):
        with pytest.raises(InvalidRequestError):
            PlayerStatsService(db_session).get_player_stats("")


class TestKeeperEvents:
    """Tests for event-log sourced saves and clean sheets."""

    def test_name_only_save_counts_after_backfill(self, db_session, league):
        kim = league.player("Kim", position="Goalkeeper")
        match = league.match()
        league.roster(match, [kim])
        league.event(match, "save", player="Kim")
        service = PlayerStatsService(db_session)

        assert service.get_player_stats(kim.id)["total_saves"] == 0

        MatchStatsService(db_session).resolve_legacy_events()

        assert service.get_player_stats(kim.id)["total_saves"] == 1

    def test_keeper_fetch_failure_degrades(self, db_session, keeper_kim, monkeypatch):
        def boom(self, *args, **kwargs):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(MatchEventRepository, "find_keeper_events", boom)

        stats = PlayerStatsService(db_session).get_player_stats(keeper_kim["kim"].id)

        assert stats["total_saves"] == 0
        assert stats["total_clean_sheets"] == 0
        assert stats["total_goals"] == 1


class TestAutoCleanSheet:
    """Tests for the switchable defender clean-sheet credit."""

    @pytest.fixture
    def defender_dan(self, league):
        dan = league.player("Dan", position="CB")
        match = league.match(team_a="Red", team_b="Blue", score_a=1, score_b=0)
        league.roster(match, [dan], team="Red")
        return dan

    def test_off_by_default(self, db_session, defender_dan):
        stats = PlayerStatsService(db_session).get_player_stats(defender_dan.id)
        assert stats["total_clean_sheets"] == 0

    def test_credit_when_enabled(self, db_session, defender_dan, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_CLEAN_SHEET_CREDIT", True)

        stats = PlayerStatsService(db_session).get_player_stats(defender_dan.id)

        assert stats["total_clean_sheets"] == 1

    def test_no_credit_when_side_conceded(self, db_session, league, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_CLEAN_SHEET_CREDIT", True)
        dan = league.player("Dan", position="CB")
        match = league.match(team_a="Red", team_b="Blue", score_a=1, score_b=1)
        league.roster(match, [dan], team="Red")

        stats = PlayerStatsService(db_session).get_player_stats(dan.id)

        assert stats["total_clean_sheets"] == 0
