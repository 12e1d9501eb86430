"""Unit tests for pure result arithmetic.

Each test follows the pattern:
- Given: a score or a list of event records
- When: the delta helper is called
- Then: the returned counters match the league rules
"""
from types import SimpleNamespace

from futsal_league.models import MatchResult
from futsal_league.services.league.events import EventSide, MatchEventRecord
from futsal_league.services.league.results import (
    empty_stat_line,
    rebuild_team_totals,
    side_result,
    subtract_stat_line,
    sum_stat_lines,
    tally_player_events,
    team_deltas,
)


def _record(kind, side, player_id, **kwargs):
    return MatchEventRecord(type=kind, side=side, player_id=player_id, **kwargs)


class TestTeamDeltas:

    def test_home_win(self):
        home, away = team_deltas(3, 1)

        assert home.as_dict() == {
            "matches_played": 1, "wins": 1, "draws": 0, "losses": 0,
            "goals_for": 3, "goals_against": 1, "points": 3,
        }
        assert away.as_dict() == {
            "matches_played": 1, "wins": 0, "draws": 0, "losses": 1,
            "goals_for": 1, "goals_against": 3, "points": 0,
        }

    def test_draw_gives_one_point_each(self):
        home, away = team_deltas(2, 2)
        assert (home.draws, away.draws) == (1, 1)
        assert (home.points, away.points) == (1, 1)

    def test_points_always_follow_results(self):
        for home_score, away_score in [(0, 0), (5, 0), (0, 4), (7, 7), (2, 1)]:
            for delta in team_deltas(home_score, away_score):
                assert delta.points == 3 * delta.wins + delta.draws
                assert delta.wins + delta.draws + delta.losses == 1

    def test_side_result(self):
        assert side_result(EventSide.HOME, 1, 0) is MatchResult.WIN
        assert side_result(EventSide.AWAY, 1, 0) is MatchResult.LOSS
        assert side_result(EventSide.AWAY, 2, 2) is MatchResult.DRAW


class TestRebuildTeamTotals:

    def test_ignores_matches_of_other_teams(self):
        matches = [
            SimpleNamespace(home_team_id="a", away_team_id="b", home_score=3, away_score=1),
            SimpleNamespace(home_team_id="c", away_team_id="a", home_score=2, away_score=2),
            SimpleNamespace(home_team_id="b", away_team_id="c", home_score=1, away_score=0),
        ]

        totals = rebuild_team_totals("a", matches)

        assert totals == {
            "matches_played": 2, "wins": 1, "draws": 1, "losses": 0,
            "goals_for": 5, "goals_against": 3, "points": 4,
        }

    def test_no_matches_is_all_zero(self):
        assert set(rebuild_team_totals("a", []).values()) == {0}


class TestTallyPlayerEvents:

    def test_one_contribution_per_player(self):
        """Given two goals and an assist by one player, one contribution is produced."""
        events = [
            _record("goal", "home", "p1"),
            _record("assist", "home", "p2"),
            _record("goal", "home", "p1"),
            _record("yellow_card", "away", "p3"),
        ]

        contributions = tally_player_events(events)

        assert list(contributions) == ["p1", "p2", "p3"]
        assert contributions["p1"].goals == 2
        assert contributions["p2"].assists == 1
        assert contributions["p3"].yellow_cards == 1
        assert contributions["p3"].side is EventSide.AWAY

    def test_stat_delta_credits_one_appearance(self):
        contribution = tally_player_events([_record("goal", "home", "p1")] * 3)["p1"]

        delta = contribution.stat_delta(MatchResult.WIN, 40)

        assert delta["appearances"] == 1
        assert delta["goals"] == 3
        assert delta["minutes_played"] == 40
        assert (delta["wins"], delta["draws"], delta["losses"]) == (1, 0, 0)

    def test_administrative_events_are_skipped(self):
        events = [_record("goal", "home", None, administrative=True)]
        assert tally_player_events(events) == {}

    def test_conflicting_sides_are_flagged(self):
        """The first event decides the side; later events on the other side are flagged."""
        contributions = tally_player_events([
            _record("goal", "home", "p1"),
            _record("yellow_card", "away", "p1"),
        ])

        assert contributions["p1"].side is EventSide.HOME
        assert contributions["p1"].conflicting_sides == {EventSide.AWAY}
        assert contributions["p1"].yellow_cards == 1


class TestStatLines:

    def test_subtract_floors_at_zero_and_reports_clipping(self):
        target = SimpleNamespace(**empty_stat_line())
        target.goals = 1
        target.appearances = 1

        clipped = subtract_stat_line(target, {"goals": 3, "appearances": 1})

        assert target.goals == 0
        assert target.appearances == 0
        assert clipped == {"goals": 2}

    def test_subtract_without_clipping_returns_none(self):
        target = SimpleNamespace(**empty_stat_line())
        target.assists = 2
        assert subtract_stat_line(target, {"assists": 2}) is None

    def test_sum_stat_lines(self):
        rows = [SimpleNamespace(**{**empty_stat_line(), "goals": g, "appearances": 1}) for g in (1, 0, 2)]
        totals = sum_stat_lines(rows)
        assert totals["goals"] == 3
        assert totals["appearances"] == 3
