"""Tests for the per-match stat write path.

Test Strategy:
- Folding the event log into stat rows (goals, assists, own goals, cards)
- Idempotent recomputation
- Unresolvable and ambiguous names are dropped, never raised
- Event ingestion replaces the log and resolves names once
- Manual ratings and score updates
- Backfill of ids on legacy name-only events
"""
import pytest
from prometheus_client import REGISTRY
from sqlalchemy.orm import Session

from app.models import MatchEvent, Stat
from app.repositories.league import RosterRepository, StandingRepository, StatRepository
from app.services.league import (
    InvalidRequestError,
    MatchStatsService,
    NotFoundError,
)
from app.services.league.name_resolver import RosterNameResolver


def stat_for(db: Session, match, player):
    entry = RosterRepository(db).find_entry(match.id, player.id)
    return StatRepository(db).find_by_match_player(entry.id)


def stat_values(stat):
    return (
        stat.goals, stat.assists, stat.yellow_cards, stat.red_cards,
        stat.own_goals, stat.minutes_played, stat.rating, stat.saves, stat.clean_sheets,
    )


class TestRecomputeMatchStats:
    """Tests for recompute_match_stats()."""

    def test_folds_events_into_stat_rows(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]

        result = MatchStatsService(db_session).recompute_match_stats(match.id)

        assert result["players_updated"] == 3
        alice = stat_for(db_session, match, alice_bob_carl["alice"])
        bob = stat_for(db_session, match, alice_bob_carl["bob"])
        carl = stat_for(db_session, match, alice_bob_carl["carl"])
        assert (alice.goals, alice.assists, alice.yellow_cards, alice.own_goals) == (1, 1, 0, 0)
        assert (bob.goals, bob.assists, bob.yellow_cards, bob.own_goals) == (1, 0, 1, 0)
        assert (carl.goals, carl.assists, carl.yellow_cards, carl.own_goals) == (0, 0, 0, 1)
        assert {alice.minutes_played, bob.minutes_played, carl.minutes_played} == {90}

    def test_own_goal_never_counts_as_goal_or_assist(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]
        MatchStatsService(db_session).recompute_match_stats(match.id)

        carl = stat_for(db_session, match, alice_bob_carl["carl"])
        assert carl.goals == 0
        assert carl.assists == 0
        assert carl.own_goals == 1

    def test_recompute_is_idempotent(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]
        service = MatchStatsService(db_session)

        service.recompute_match_stats(match.id)
        first = {p: stat_values(stat_for(db_session, match, alice_bob_carl[p])) for p in ("alice", "bob", "carl")}
        service.recompute_match_stats(match.id)
        second = {p: stat_values(stat_for(db_session, match, alice_bob_carl[p])) for p in ("alice", "bob", "carl")}

        assert first == second
        assert db_session.query(Stat).count() == 3

    def test_resolved_ids_are_stored_on_events(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]
        MatchStatsService(db_session).recompute_match_stats(match.id)

        goal = db_session.query(MatchEvent).filter_by(match_id=match.id, scorer="Bob").one()
        assert goal.player_id == alice_bob_carl["bob"].id
        assert goal.assist_player_id == alice_bob_carl["alice"].id

    def test_unknown_name_is_dropped(self, db_session, league, alice_bob_carl):
        match = alice_bob_carl["match"]
        league.event(match, "goal", scorer="Zed", minute=50)

        result = MatchStatsService(db_session).recompute_match_stats(match.id)

        assert result["players_updated"] == 3
        assert stat_for(db_session, match, alice_bob_carl["alice"]).goals == 1

    def test_missing_match(self, db_session):
        with pytest.raises(NotFoundError):
            MatchStatsService(db_session).recompute_match_stats("no-such-match")

    def test_match_id_required(self, db_session):
        with pytest.raises(InvalidRequestError):
            MatchStatsService(db_session).recompute_match_stats("")


class TestRosterNameResolver:
    """Tests for name resolution scoped to one roster."""

    def test_duplicate_names_resolve_to_nobody(self, db_session, league):
        first = league.player("Sam")
        second = league.player("Sam")
        match = league.match()
        entries = league.roster(match, [first, second])

        resolver = RosterNameResolver(match.id, entries)

        assert resolver.resolve(name="Sam") is None
        assert resolver.ambiguous_names == {"Sam"}
        assert resolver.resolve(player_id=second.id) == second.id

    def test_ambiguous_name_produces_no_stats(self, db_session, league):
        first = league.player("Sam")
        second = league.player("Sam")
        match = league.match()
        league.roster(match, [first, second])
        league.event(match, "goal", scorer="Sam")

        result = MatchStatsService(db_session).recompute_match_stats(match.id)

        assert result["players_updated"] == 0
        assert db_session.query(Stat).count() == 0

    def test_id_not_on_roster(self, db_session, league):
        player = league.player("Outsider")
        match = league.match()

        resolver = RosterNameResolver(match.id, [])

        assert resolver.resolve(player_id=player.id) is None


class TestRecordMatchEvents:
    """Tests for record_match_events()."""

    def test_replaces_log_and_clears_stale_counters(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]
        service = MatchStatsService(db_session)
        service.recompute_match_stats(match.id)

        result = service.record_match_events(
            match.id,
            goals=[{"scorer_id": alice_bob_carl["alice"].id, "assist": "Bob", "minute": 5}],
            cards=[{"player": "Carl", "card_type": "red", "minute": 80}],
        )

        assert result["events_recorded"] == 2
        assert result["unresolved"] == 0
        assert db_session.query(MatchEvent).filter_by(match_id=match.id).count() == 2
        alice = stat_for(db_session, match, alice_bob_carl["alice"])
        bob = stat_for(db_session, match, alice_bob_carl["bob"])
        carl = stat_for(db_session, match, alice_bob_carl["carl"])
        assert (alice.goals, alice.assists) == (1, 0)
        assert (bob.goals, bob.assists, bob.yellow_cards) == (0, 1, 0)
        assert (carl.own_goals, carl.red_cards) == (0, 1)

    def test_names_are_filled_for_id_only_events(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]

        MatchStatsService(db_session).record_match_events(
            match.id, goals=[{"scorer_id": alice_bob_carl["alice"].id}]
        )

        goal = db_session.query(MatchEvent).filter_by(match_id=match.id).one()
        assert goal.scorer == "Alice"
        assert goal.player_id == alice_bob_carl["alice"].id

    def test_keeper_events_and_substitutions(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]

        result = MatchStatsService(db_session).record_match_events(
            match.id,
            saves=[{"player": "Carl"}, {"player": "Carl"}],
            clean_sheets=[{"player": "Carl"}],
            substitutions=[{"player_out": "Bob", "player_in": "Dave", "minute": 60}],
        )

        assert result["events_recorded"] == 4
        carl = stat_for(db_session, match, alice_bob_carl["carl"])
        assert (carl.saves, carl.clean_sheets) == (2, 1)

    def test_unresolved_names_are_counted(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]

        result = MatchStatsService(db_session).record_match_events(
            match.id, goals=[{"scorer": "Nobody"}]
        )

        assert result["unresolved"] == 1
        assert result["players_updated"] == 0

    def test_unresolved_name_is_reported_once(self, db_session, alice_bob_carl):
        def unresolved():
            return REGISTRY.get_sample_value(
                "league_unresolved_references_total", {"kind": "player_name"}
            ) or 0

        before = unresolved()
        MatchStatsService(db_session).record_match_events(
            alice_bob_carl["match"].id, goals=[{"scorer": "Zed"}]
        )

        assert unresolved() == before + 1

    def test_invalid_card_type(self, db_session, alice_bob_carl):
        with pytest.raises(InvalidRequestError):
            MatchStatsService(db_session).record_match_events(
                alice_bob_carl["match"].id, cards=[{"player": "Bob", "card_type": "green"}]
            )


class TestManualEdits:
    """Tests for set_player_rating() and update_match_score()."""

    def test_rating_creates_row_with_defaults(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]

        MatchStatsService(db_session).set_player_rating(match.id, alice_bob_carl["alice"].id, 8.5)

        stat = stat_for(db_session, match, alice_bob_carl["alice"])
        assert stat.rating == 8.5
        assert stat.minutes_played == 90
        assert stat.goals == 0

    def test_rating_survives_recompute(self, db_session, alice_bob_carl):
        match = alice_bob_carl["match"]
        service = MatchStatsService(db_session)
        service.set_player_rating(match.id, alice_bob_carl["alice"].id, 8.5)

        service.recompute_match_stats(match.id)

        stat = stat_for(db_session, match, alice_bob_carl["alice"])
        assert stat.rating == 8.5
        assert stat.goals == 1

    @pytest.mark.parametrize("rating", [-1, 10.5])
    def test_rating_out_of_range(self, db_session, alice_bob_carl, rating):
        with pytest.raises(InvalidRequestError):
            MatchStatsService(db_session).set_player_rating(
                alice_bob_carl["match"].id, alice_bob_carl["alice"].id, rating
            )

    def test_rating_for_player_not_on_roster(self, db_session, league, alice_bob_carl):
        outsider = league.player("Outsider")
        with pytest.raises(NotFoundError):
            MatchStatsService(db_session).set_player_rating(alice_bob_carl["match"].id, outsider.id, 7)

    def test_negative_score_rejected(self, db_session, league):
        match = league.match(status="scheduled")
        with pytest.raises(InvalidRequestError):
            MatchStatsService(db_session).update_match_score(match.id, -1, 0)

    def test_unknown_status_rejected(self, db_session, league):
        match = league.match(status="scheduled")
        with pytest.raises(InvalidRequestError):
            MatchStatsService(db_session).update_match_score(match.id, 1, 0, status="abandoned")

    def test_completing_tournament_match_updates_standings(self, db_session, league):
        tournament = league.tournament(["Red", "Blue"])
        match = league.match(team_a="Red", team_b="Blue", status="scheduled", tournament=tournament)

        result = MatchStatsService(db_session).update_match_score(match.id, 3, 1, status="completed")

        assert result["standings_updated"] is True
        red = StandingRepository(db_session).find_row(tournament.id, league.team(tournament, "Red").id)
        assert red.points == 3
        assert red.goal_difference == 2

    def test_score_update_without_tournament(self, db_session, league):
        match = league.match(status="in_progress")

        result = MatchStatsService(db_session).update_match_score(match.id, 2, 2, status="completed")

        assert result["status"] == "completed"
        assert result["standings_updated"] is False


class TestResolveLegacyEvents:

    def test_backfills_ids(self, db_session, alice_bob_carl):
        result = MatchStatsService(db_session).resolve_legacy_events()

        assert result == {"examined": 4, "resolved": 4, "unresolved": 0}
        goal = db_session.query(MatchEvent).filter_by(scorer="Bob").one()
        assert goal.player_id == alice_bob_carl["bob"].id
        assert goal.assist_player_id == alice_bob_carl["alice"].id

    def test_unresolvable_events_stay_unresolved(self, db_session, league, alice_bob_carl):
        league.event(alice_bob_carl["match"], "save", player="Ghost")

        result = MatchStatsService(db_session).resolve_legacy_events()

        assert result["unresolved"] == 1
