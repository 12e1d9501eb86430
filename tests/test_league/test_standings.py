"""Unit tests for the standings ranker.

Test Strategy:
1. Tie-break cascade, one criterion at a time
2. Head-to-head only between teams that have met
3. Fair play from cards and disciplinary records
4. Totality and input-order independence, including cyclic head-to-head
5. Monotonicity in points
"""
from itertools import permutations

from futsal_league.services.league.events import MatchEventRecord
from futsal_league.services.league.standings import (
    FairPlayRef,
    MatchResultRef,
    TeamRef,
    build_enhanced_stats,
    compare_teams,
    rank,
)

_ids = iter(range(1, 10_000))


def result(home, away, home_score, away_score, events=()):
    return MatchResultRef(
        id=f"m{next(_ids)}",
        home_team_id=home,
        away_team_id=away,
        home_score=home_score,
        away_score=away_score,
        events=tuple(events),
    )


def card(kind, side):
    return MatchEventRecord(type=kind, side=side, player_id="p")


def order(rows):
    return [row.team_id for row in rows]


class TestCascade:

    def test_points_first(self):
        teams = [TeamRef("a", "Alpha"), TeamRef("b", "Bravo")]
        rows = rank(teams, [result("b", "a", 1, 0)])

        assert order(rows) == ["b", "a"]
        assert rows[1].decided_by == "points"
        assert rows[0].decided_by is None

    def test_goal_difference_then_goals_for_then_goals_against(self):
        teams = [TeamRef(t, t.upper()) for t in "abcdef"]
        matches = [
            result("a", "x", 3, 0),  # a: 3 pts, gd +3
            result("b", "x", 2, 1),  # b: 3 pts, gd +1, gf 2
            result("c", "x", 1, 0),  # c: 3 pts, gd +1, gf 1, ga 0
            result("d", "x", 0, 0),  # d: 1 pt, gf 0, ga 0
            result("e", "x", 1, 1),  # e: 1 pt, gf 1, ga 1
        ]

        rows = rank(teams, matches)

        assert order(rows) == ["a", "b", "c", "e", "d", "f"]
        assert [row.decided_by for row in rows] == [
            None, "goal_difference", "goals_for", "points", "goals_for", "points",
        ]

    def test_name_is_the_last_criterion(self):
        """Teams with no matches sort alphabetically by name."""
        teams = [TeamRef("3", "Sporting"), TeamRef("1", "Benfica"), TeamRef("2", "Porto")]

        rows = rank(teams, [])

        assert [row.team_name for row in rows] == ["Benfica", "Porto", "Sporting"]
        assert [row.rank for row in rows] == [1, 2, 3]
        assert all(row.points == 0 and row.matches_played == 0 for row in rows)
        assert rows[1].decided_by == "name"

    def test_duplicate_names_fall_back_to_id(self):
        rows = rank([TeamRef("z", "Same"), TeamRef("y", "Same")], [])
        assert order(rows) == ["y", "z"]
        assert rows[1].decided_by == "team_id"


class TestHeadToHead:

    def test_scenario_head_to_head_decides_a_level_tie(self):
        """
        Given A and B level on 10 points, goal difference and goals for/against,
        and A beat B 2-0, A is ranked above B on head-to-head points.
        """
        teams = [TeamRef("a", "Zulu"), TeamRef("b", "Alpha")] + [TeamRef(t, t.upper()) for t in "cdef"]
        matches = [
            result("a", "b", 2, 0),
            result("a", "c", 2, 1),
            result("a", "d", 0, 0),
            result("a", "e", 2, 1),
            result("b", "c", 2, 0),
            result("b", "d", 2, 0),
            result("b", "e", 2, 0),
            result("b", "f", 0, 0),
        ]

        rows = rank(teams, matches)
        by_id = {row.team_id: row for row in rows}

        for team_id in ("a", "b"):
            row = by_id[team_id]
            assert (row.points, row.goal_difference, row.goals_for, row.goals_against) == (10, 4, 6, 2)
        assert order(rows)[:2] == ["a", "b"]
        assert by_id["b"].decided_by == "head_to_head_points"

    def test_head_to_head_goal_difference(self):
        """Level overall and on head-to-head points; head-to-head goal difference decides."""
        teams = [TeamRef("a", "Zulu"), TeamRef("b", "Alpha")]
        matches = [
            result("a", "b", 3, 0),
            result("b", "a", 1, 0),
            result("a", "x", 2, 0),
            result("y", "a", 3, 0),
            result("b", "x", 4, 0),
            result("b", "y", 0, 1),
        ]

        rows = rank(teams, matches)

        for row in rows:
            assert (row.points, row.goals_for, row.goals_against) == (6, 5, 4)
        assert order(rows) == ["a", "b"]
        assert rows[1].decided_by == "head_to_head_goal_difference"

    def test_level_head_to_head_falls_through(self):
        stats = build_enhanced_stats(
            [TeamRef("a", "Zulu"), TeamRef("b", "Alpha")],
            [result("a", "b", 3, 1), result("b", "a", 3, 1)],
        )

        assert compare_teams(stats["a"], stats["b"]) == (1, "name")

    def test_teams_that_never_met_skip_head_to_head(self):
        teams = [TeamRef("a", "Zulu"), TeamRef("b", "Alpha")]
        matches = [result("a", "x", 1, 0), result("b", "y", 1, 0)]

        rows = rank(teams, matches)

        assert order(rows) == ["b", "a"]
        assert rows[1].decided_by == "name"

    def test_cyclic_head_to_head_still_gives_a_total_order(self):
        """A beats B, B beats C, C beats A: the order is total and input-order independent."""
        teams = [TeamRef("a", "Alpha"), TeamRef("b", "Bravo"), TeamRef("c", "Charlie")]
        matches = [result("a", "b", 1, 0), result("b", "c", 1, 0), result("c", "a", 1, 0)]

        outcomes = set()
        for team_order in permutations(teams):
            for match_order in permutations(matches):
                rows = rank(list(team_order), list(match_order))
                assert sorted(row.rank for row in rows) == [1, 2, 3]
                assert len({row.team_id for row in rows}) == 3
                outcomes.add(tuple(order(rows)))

        assert len(outcomes) == 1


class TestFairPlay:

    def test_cards_count_against_the_carded_side(self):
        teams = [TeamRef("a", "Alpha"), TeamRef("b", "Bravo")]
        matches = [
            result("a", "x", 1, 0, events=[card("yellow_card", "home"), card("red_card", "home")]),
            result("y", "b", 0, 1, events=[card("yellow_card", "away")]),
        ]

        rows = rank(teams, matches)

        assert order(rows) == ["b", "a"]
        assert {row.team_id: row.fair_play_points for row in rows} == {"a": 4, "b": 1}
        assert rows[1].decided_by == "fair_play_points"

    def test_only_active_records_count(self):
        teams = [TeamRef("a", "Alpha"), TeamRef("b", "Bravo")]
        records = [
            FairPlayRef("a", 10),
            FairPlayRef("b", 5, status="appealed"),
            FairPlayRef("b", 3, status="overturned"),
            FairPlayRef("b", 2, status="reduced"),
        ]

        rows = rank(teams, [], records)

        assert order(rows) == ["b", "a"]
        assert {row.team_id: row.fair_play_points for row in rows} == {"a": 10, "b": 0}

    def test_fair_play_ranks_below_head_to_head(self):
        """Head-to-head is checked before fair play."""
        teams = [TeamRef("a", "Alpha"), TeamRef("b", "Bravo")]
        matches = [result("a", "b", 1, 0), result("x", "a", 1, 0), result("b", "y", 1, 0)]

        rows = rank(teams, matches, [FairPlayRef("a", 50)])

        assert order(rows) == ["a", "b"]
        assert rows[1].decided_by == "head_to_head_points"


class TestInputHandling:

    def test_self_match_is_ignored(self):
        rows = rank([TeamRef("a", "Alpha")], [result("a", "a", 5, 0)])
        assert rows[0].matches_played == 0

    def test_matches_against_unknown_teams_still_count_for_known_team(self):
        rows = rank([TeamRef("a", "Alpha")], [result("a", "gone", 2, 0)])
        assert (rows[0].points, rows[0].wins, rows[0].goals_for) == (3, 1, 2)

    def test_row_to_dict(self):
        row = rank([TeamRef("a", "Alpha")], [])[0]
        data = row.to_dict()
        assert data["team_id"] == "a"
        assert data["rank"] == 1
        assert data["goal_difference"] == 0
        assert data["decided_by"] is None


class TestMonotonicity:

    def test_more_points_never_lowers_rank(self):
        teams = [TeamRef(t, t.upper()) for t in "abcde"]
        base = [
            result("a", "b", 2, 1),
            result("c", "d", 0, 0),
            result("e", "a", 1, 1),
            result("b", "c", 3, 0),
            result("d", "e", 1, 2),
        ]
        before = {row.team_id: row.rank for row in rank(teams, base)}

        for team in teams:
            # A draw against an unranked opponent adds one point and leaves goal difference unchanged
            boosted = base + [result(team.id, "outsider", 0, 0)]
            after = {row.team_id: row.rank for row in rank(teams, boosted)}
            assert after[team.id] <= before[team.id]
