"""Tests for tournament standings and the automatic final.

Test Coverage:
- Table replay from completed matches with configurable points
- Ordering by points, goal difference, then goals for
- Case-insensitive matching of match sides to registered teams
- Skipped matches for unresolved sides
- No completed matches, or no registered teams, leaves the stored table untouched
- Final scheduled once the group stage is complete, and only once
"""
from datetime import datetime

import pytest

from app.models import Match, PersistentTeam, TournamentStanding, ROUND_FINAL, ROUND_GROUP_STAGE
from app.repositories.league import StandingRepository
from app.services.league import InvalidRequestError, StandingsService
from app.services.league.standings_service import TeamRecord, table_order_key


def table(result):
    return [row["team_name"] for row in result["standings"]]


class TestOrdering:

    def test_goals_for_breaks_points_and_difference_tie(self):
        x = TeamRecord("x", "X", points=9, goals_for=9, goals_against=5)
        y = TeamRecord("y", "Y", points=9, goals_for=10, goals_against=6)
        assert sorted([x, y], key=table_order_key)[0] is y


class TestRecalculateStandings:
    """Tests for recalculate_standings()."""

    def test_table_order(self, db_session, league):
        tournament = league.tournament(["X", "Y", "Z", "W", "V"])
        for a, b, sa, sb in [
            ("X", "Z", 3, 1), ("X", "W", 3, 2), ("X", "V", 3, 2),
            ("Y", "Z", 4, 2), ("Y", "W", 3, 2), ("Y", "V", 3, 2),
        ]:
            league.match(team_a=a, team_b=b, score_a=sa, score_b=sb, tournament=tournament)

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert result["updated"] is True
        order = table(result)
        assert order[:2] == ["Y", "X"]
        assert order[-1] == "Z"
        assert len(order) == 5
        assert len(set(order)) == 5
        y = result["standings"][0]
        assert (y["position"], y["points"], y["goal_difference"], y["goals_for"]) == (1, 9, 4, 10)

    def test_recalculation_is_deterministic(self, db_session, league):
        tournament = league.tournament(["X", "Y", "Z"])
        league.match(team_a="X", team_b="Y", score_a=1, score_b=0, tournament=tournament)
        league.match(team_a="Y", team_b="Z", score_a=2, score_b=2, tournament=tournament)
        service = StandingsService(db_session)

        first = service.recalculate_standings(tournament.id)
        second = service.recalculate_standings(tournament.id)

        assert first["standings"] == second["standings"]
        assert db_session.query(TournamentStanding).count() == 3

    def test_team_names_match_case_insensitively(self, db_session, league):
        tournament = league.tournament(["Red", "Blue"])
        league.match(team_a=" red ", team_b="BLUE", score_a=2, score_b=0, tournament=tournament)

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert result["skipped_matches"] == []
        assert result["standings"][0]["team_name"] == "Red"
        assert result["standings"][0]["wins"] == 1

    def test_unknown_team_skips_match(self, db_session, league):
        tournament = league.tournament(["Red", "Blue"])
        kept = league.match(team_a="Red", team_b="Blue", score_a=1, score_b=1, tournament=tournament)
        skipped = league.match(team_a="Red", team_b="Ghosts", score_a=9, score_b=0, tournament=tournament)

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert result["skipped_matches"] == [skipped.id]
        red = result["standings"][0]
        assert (red["matches_played"], red["draws"], red["goals_for"]) == (1, 1, 1)
        assert kept.id not in result["skipped_matches"]

    def test_unplayed_teams_get_zero_rows(self, db_session, league):
        tournament = league.tournament(["Red", "Blue", "Green"])
        league.match(team_a="Red", team_b="Blue", score_a=1, score_b=0, tournament=tournament)

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert table(result) == ["Red", "Green", "Blue"]
        assert result["standings"][1]["matches_played"] == 0

    def test_no_completed_matches_leaves_table_untouched(self, db_session, league):
        tournament = league.tournament(["Red", "Blue"])
        league.match(team_a="Red", team_b="Blue", status="scheduled", tournament=tournament)
        red = league.team(tournament, "Red")
        db_session.add(TournamentStanding(tournament_id=tournament.id, team_id=red.id, points=7))
        db_session.commit()

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert result["updated"] is False
        assert result["standings"] == []
        assert StandingRepository(db_session).find_row(tournament.id, red.id).points == 7

    def test_no_registered_teams_leaves_table_untouched(self, db_session, league):
        tournament = league.tournament()
        league.match(team_a="Red", team_b="Blue", score_a=1, score_b=0, tournament=tournament)
        withdrawn = PersistentTeam(name="Withdrawn")
        db_session.add(withdrawn)
        db_session.flush()
        db_session.add(TournamentStanding(tournament_id=tournament.id, team_id=withdrawn.id, points=4))
        db_session.commit()

        with pytest.raises(InvalidRequestError, match="No teams found in tournament"):
            StandingsService(db_session).recalculate_standings(tournament.id)

        assert StandingRepository(db_session).find_row(tournament.id, withdrawn.id).points == 4

    def test_custom_point_weights(self, db_session, league):
        tournament = league.tournament(["Red", "Blue", "Green"], points_per_win=2, points_per_loss=1)
        league.match(team_a="Red", team_b="Blue", score_a=1, score_b=0, tournament=tournament)
        league.match(team_a="Green", team_b="Blue", score_a=1, score_b=1, tournament=tournament)

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        points = {row["team_name"]: row["points"] for row in result["standings"]}
        assert points == {"Red": 2, "Blue": 2, "Green": 1}

    def test_rows_of_unregistered_teams_are_removed(self, db_session, league):
        tournament = league.tournament(["Red", "Blue"])
        league.match(team_a="Red", team_b="Blue", score_a=1, score_b=0, tournament=tournament)
        gone = PersistentTeam(name="Withdrawn")
        db_session.add(gone)
        db_session.flush()
        db_session.add(TournamentStanding(tournament_id=tournament.id, team_id=gone.id, points=4))
        db_session.commit()

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert "Withdrawn" not in table(result)
        assert StandingRepository(db_session).find_row(tournament.id, gone.id) is None


class TestAutomaticFinal:
    """Tests for final generation after the group stage."""

    @staticmethod
    def play_group(league, tournament, last_status="completed"):
        league.match(team_a="A", team_b="B", score_a=2, score_b=0, tournament=tournament,
                     round=ROUND_GROUP_STAGE, date=datetime(2025, 3, 1, 18, 0))
        league.match(team_a="A", team_b="C", score_a=1, score_b=0, tournament=tournament,
                     round=ROUND_GROUP_STAGE, date=datetime(2025, 3, 2, 18, 0))
        league.match(team_a="B", team_b="C", score_a=2, score_b=1, tournament=tournament,
                     round=ROUND_GROUP_STAGE, date=datetime(2025, 3, 3, 18, 0), status=last_status)

    def test_final_between_top_two(self, db_session, league):
        tournament = league.tournament(["A", "B", "C"])
        self.play_group(league, tournament)

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        final = db_session.query(Match).filter_by(id=result["final_match_id"]).one()
        assert (final.team_a_name, final.team_b_name) == ("A", "B")
        assert final.round == ROUND_FINAL
        assert final.status == "scheduled"
        assert final.date == datetime(2025, 3, 4, 18, 0)
        assert final.fixture_order == 999
        assert final.is_fixture is True
        assert final.created_by == "admin-1"
        assert sorted(t.color for t in final.teams) == ["#3B82F6", "#EF4444"]

    def test_final_created_only_once(self, db_session, league):
        tournament = league.tournament(["A", "B", "C"])
        self.play_group(league, tournament)
        service = StandingsService(db_session)

        service.recalculate_standings(tournament.id)
        again = service.recalculate_standings(tournament.id)

        assert again["final_match_id"] is None
        assert db_session.query(Match).filter_by(tournament_id=tournament.id, round=ROUND_FINAL).count() == 1

    def test_no_final_while_group_stage_incomplete(self, db_session, league):
        tournament = league.tournament(["A", "B", "C"])
        self.play_group(league, tournament, last_status="scheduled")

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert result["final_match_id"] is None

    def test_no_final_for_knockout(self, db_session, league):
        tournament = league.tournament(["A", "B", "C"], type="knockout")
        self.play_group(league, tournament)

        result = StandingsService(db_session).recalculate_standings(tournament.id)

        assert result["final_match_id"] is None
