"""Tests for MatchResultApplier.

Test Strategy:
1. Team and player deltas for a completed match
2. Guard: applying twice, applying a non-completed match, reverting an unapplied one
3. Reversibility and conservation across several matches
4. Dangling player/team references are skipped and reported
5. Optimistic concurrency: two sessions racing to apply the same match

Each test follows the pattern:
- Given: a season with teams, players and matches
- When: apply() / revert() is called
- Then: team counters, player counters and match history match the rules
"""
import pytest
from prometheus_client import REGISTRY
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from futsal_league.core.exceptions import (
    AlreadyApplied,
    MatchNotCompleted,
    NotApplied,
    StatsConflictError,
)
from futsal_league.models import (
    Base,
    Match,
    Player,
    PlayerMatchHistory,
    STAT_FIELDS,
    Team,
)
from futsal_league.services.league.match_result_applier import MatchResultApplier, run_with_retry


def ev(kind, player, side, minute=10):
    return {"type": kind, "side": side, "player_id": player if isinstance(player, str) else player.id,
            "minute": minute}


def team_line(db: Session, team_id: str) -> dict:
    return db.get(Team, team_id).table_stats()


def player_lines(db: Session, player_id: str) -> dict:
    """Career and season lines; missing rows read as all zeros."""
    player = db.get(Player, player_id)
    zeros = {name: 0 for name in STAT_FIELDS}
    lines = {"career": player.career_stats.stat_line() if player.career_stats else dict(zeros)}
    for season_id, bucket in player.season_stats.items():
        if any(bucket.stat_line().values()):
            lines[season_id] = bucket.stat_line()
    lines["history"] = sorted(e.match_id for e in player.match_history)
    return lines


def snapshot(db: Session, team_ids, player_ids) -> dict:
    db.expire_all()
    return {
        "teams": {t: team_line(db, t) for t in team_ids},
        "players": {p: player_lines(db, p) for p in player_ids},
    }


def sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


@pytest.fixture
def scored_match(factory, season, teams, players):
    """Team A beats Team B 3-1 with goals, an assist and a card."""
    team_a, team_b = teams
    a1, a2, b1, b2 = players
    return factory.completed(season, team_a, team_b, 3, 1, events=[
        ev("goal", a1, "home", 5),
        ev("assist", a2, "home", 5),
        ev("goal", a1, "home", 17),
        ev("goal", b1, "away", 22),
        ev("yellow_card", b2, "away", 30),
        ev("goal", a2, "home", 38),
    ])


class TestApply:
    """Deltas written by apply()."""

    def test_scenario_home_win_team_stats(self, db_session, applier, teams, scored_match):
        """A beats B 3-1: A gets a win and 3 points, B a loss and 0 points."""
        team_a, team_b = teams

        applier.apply(scored_match.id)

        assert team_line(db_session, team_a.id) == {
            "matches_played": 1, "wins": 1, "draws": 0, "losses": 0,
            "goals_for": 3, "goals_against": 1, "points": 3,
        }
        assert team_line(db_session, team_b.id) == {
            "matches_played": 1, "wins": 0, "draws": 0, "losses": 1,
            "goals_for": 1, "goals_against": 3, "points": 0,
        }
        assert db_session.get(Team, team_a.id).goal_difference == 2

    def test_player_counters_and_single_appearance(self, db_session, applier, season, players, scored_match):
        a1, a2, b1, b2 = players

        report = applier.apply(scored_match.id)

        assert report.omissions == []
        assert sorted(report.players_credited) == sorted(p.id for p in players)

        career = db_session.get(Player, a1.id).career_stats
        assert career.appearances == 1
        assert career.goals == 2
        assert career.minutes_played == 40
        assert (career.wins, career.losses) == (1, 0)

        a2_career = db_session.get(Player, a2.id).career_stats
        assert (a2_career.goals, a2_career.assists, a2_career.appearances) == (1, 1, 1)

        b2_career = db_session.get(Player, b2.id).career_stats
        assert (b2_career.yellow_cards, b2_career.losses, b2_career.goals) == (1, 1, 0)

        season_bucket = db_session.get(Player, a1.id).season_stats[season.id]
        assert season_bucket.stat_line() == career.stat_line()

    def test_one_history_row_per_player(self, db_session, applier, players, scored_match):
        applier.apply(scored_match.id)

        rows = db_session.query(PlayerMatchHistory).filter_by(match_id=scored_match.id).all()
        assert len(rows) == 4
        by_player = {row.player_id: row for row in rows}
        a1, _, b1, _ = players
        assert by_player[a1.id].goals == 2
        assert by_player[a1.id].result == "win"
        assert by_player[a1.id].side == "home"
        assert by_player[b1.id].result == "loss"
        assert by_player[b1.id].opponent_id == scored_match.home_team_id

    def test_sets_guard(self, db_session, applier, scored_match):
        applier.apply(scored_match.id)
        db_session.expire_all()
        assert db_session.get(Match, scored_match.id).stats_updated is True

    def test_minutes_come_from_configuration(self, db_session, players, scored_match):
        applier = MatchResultApplier(db_session, 90)
        applier.apply(scored_match.id)

        a1 = players[0]
        assert db_session.get(Player, a1.id).career_stats.minutes_played == 90

    def test_duration_must_be_positive(self, db_session):
        with pytest.raises(ValueError):
            MatchResultApplier(db_session, 0)

    def test_own_goal_is_credited_to_the_scorer(self, db_session, applier, factory, season, teams, players):
        """An own goal by a home player counts as own_goals and an appearance, not a goal."""
        team_a, team_b = teams
        a1 = players[0]
        match = factory.completed(season, team_a, team_b, 0, 1, events=[ev("own_goal", a1, "home", 12)])

        applier.apply(match.id)

        career = db_session.get(Player, a1.id).career_stats
        assert (career.own_goals, career.goals, career.appearances, career.losses) == (1, 0, 1, 1)

    def test_administrative_events_credit_nobody(self, db_session, applier, factory, season, teams):
        team_a, team_b = teams
        match = factory.completed(season, team_a, team_b, 1, 0, events=[
            {"type": "goal", "side": "home", "player_id": None, "administrative": True},
        ])

        report = applier.apply(match.id)

        assert report.players_credited == []
        assert db_session.query(PlayerMatchHistory).count() == 0
        assert team_line(db_session, team_a.id)["wins"] == 1


class TestGuard:
    """Preconditions on the stats guard."""

    def test_second_apply_is_rejected_and_changes_nothing(self, db_session, applier, teams, players, scored_match):
        team_ids = [t.id for t in teams]
        player_ids = [p.id for p in players]
        applier.apply(scored_match.id)
        after_first = snapshot(db_session, team_ids, player_ids)

        with pytest.raises(AlreadyApplied):
            applier.apply(scored_match.id)

        assert snapshot(db_session, team_ids, player_ids) == after_first

    def test_apply_if_needed_is_a_no_op_when_applied(self, db_session, applier, teams, players, scored_match):
        team_ids = [t.id for t in teams]
        player_ids = [p.id for p in players]
        assert applier.apply_if_needed(scored_match.id) is not None
        after_first = snapshot(db_session, team_ids, player_ids)

        assert applier.apply_if_needed(scored_match.id) is None
        assert snapshot(db_session, team_ids, player_ids) == after_first

    def test_scheduled_match_cannot_be_applied(self, applier, factory, season, teams):
        match = factory.match(season, *teams)
        with pytest.raises(MatchNotCompleted):
            applier.apply(match.id)

    def test_revert_requires_applied_match(self, applier, scored_match):
        with pytest.raises(NotApplied):
            applier.revert(scored_match.id)


class TestRevert:

    def test_revert_restores_previous_state(self, db_session, applier, factory, season, teams, players, scored_match):
        """Given an earlier applied match, apply+revert of a second one leaves stats unchanged."""
        team_a, team_b = teams
        a1, a2, b1, b2 = players
        earlier = factory.completed(season, team_b, team_a, 2, 2, events=[
            ev("goal", b1, "home"), ev("goal", a1, "away"), ev("red_card", a2, "away"),
        ])
        applier.apply(earlier.id)

        team_ids = [team_a.id, team_b.id]
        player_ids = [p.id for p in players]
        before = snapshot(db_session, team_ids, player_ids)

        applier.apply(scored_match.id)
        assert snapshot(db_session, team_ids, player_ids) != before
        report = applier.revert(scored_match.id)

        assert snapshot(db_session, team_ids, player_ids) == before
        assert sorted(report.players_reverted) == sorted(player_ids)
        assert report.clipped == {}
        db_session.expire_all()
        assert db_session.get(Match, scored_match.id).stats_updated is False

    def test_revert_removes_empty_season_bucket(self, db_session, applier, season, players, scored_match):
        applier.apply(scored_match.id)
        applier.revert(scored_match.id)

        db_session.expire_all()
        player = db_session.get(Player, players[0].id)
        assert season.id not in player.season_stats
        assert player.match_history == []

    def test_revert_floors_counters_at_zero(self, db_session, applier, players, scored_match):
        """Counters already below the match contribution are floored and reported."""
        a1 = players[0]
        applier.apply(scored_match.id)
        career = db_session.get(Player, a1.id).career_stats
        career.goals = 0
        db_session.commit()

        report = applier.revert(scored_match.id)

        assert report.clipped[a1.id] == {"career.goals": 2}
        db_session.expire_all()
        assert db_session.get(Player, a1.id).career_stats.goals == 0

    def test_revert_rebuilds_teams_from_source(self, db_session, applier, teams, scored_match):
        """Drifted team counters are replaced by the rebuild, not subtracted from."""
        team_a, _ = teams
        applier.apply(scored_match.id)
        drifted = db_session.get(Team, team_a.id)
        drifted.points = 99
        db_session.commit()

        report = applier.revert(scored_match.id)

        assert report.team_stats[team_a.id]["points"] == 0
        assert team_line(db_session, team_a.id)["points"] == 0


class TestConservation:

    def test_career_and_season_equal_history_sums(
        self, db_session, applier, stats_service, factory, season, teams, players
    ):
        team_a, team_b = teams
        a1, a2, b1, b2 = players
        matches = [
            factory.completed(season, team_a, team_b, 2, 0, events=[ev("goal", a1, "home"), ev("goal", a1, "home")]),
            factory.completed(season, team_b, team_a, 1, 1, events=[ev("goal", b1, "home"), ev("goal", a2, "away"),
                                                                     ev("assist", a1, "away")]),
            factory.completed(season, team_a, team_b, 0, 3, events=[ev("own_goal", a2, "home"),
                                                                     ev("goal", b2, "away"),
                                                                     ev("yellow_card", a1, "home")]),
        ]
        for match in matches:
            applier.apply(match.id)
        applier.revert(matches[1].id)

        for player in players:
            assert stats_service.verify_player_conservation(player.id) == []

        db_session.expire_all()
        a1_career = db_session.get(Player, a1.id).career_stats
        assert (a1_career.appearances, a1_career.goals, a1_career.yellow_cards) == (2, 2, 1)


class TestDanglingReferences:

    def test_missing_player_is_skipped_and_reported(self, db_session, applier, factory, season, teams, players):
        """An event for a deleted player does not block the rest of the match."""
        team_a, team_b = teams
        a1 = players[0]
        match = factory.completed(season, team_a, team_b, 2, 0, events=[
            ev("goal", a1, "home"),
            ev("goal", "ghost-player", "home"),
            ev("yellow_card", "ghost-player", "home"),
        ])
        before = sample("stats_dangling_references_total", {"kind": "player"})

        report = applier.apply(match.id)

        assert len(report.omissions) == 1
        omission = report.omissions[0]
        assert (omission.kind, omission.reference_id) == ("player", "ghost-player")
        assert omission.event_types == ["goal", "yellow_card"]
        assert report.players_credited == [a1.id]
        assert team_line(db_session, team_a.id)["wins"] == 1
        assert sample("stats_dangling_references_total", {"kind": "player"}) == before + 1

    def test_missing_team_is_skipped_and_reported(self, db_session, applier, factory, season, teams):
        team_a, _ = teams
        match = factory.completed(season, team_a, "deleted-team", 1, 1)

        report = applier.apply(match.id)

        assert [(o.kind, o.reference_id) for o in report.omissions] == [("team", "deleted-team")]
        assert report.teams_updated == [team_a.id]
        assert team_line(db_session, team_a.id)["draws"] == 1

    def test_deleted_player_history_survives_revert_of_others(self, db_session, applier, players, scored_match):
        a1 = players[0]
        applier.apply(scored_match.id)
        db_session.delete(db_session.get(Player, a1.id))
        db_session.commit()

        report = applier.revert(scored_match.id)

        assert a1.id not in report.players_reverted
        assert len(report.players_reverted) == 3


class TestConcurrency:
    """Two sessions racing on the same match."""

    @pytest.fixture
    def file_db(self, tmp_path, make_factory):
        engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
        Base.metadata.create_all(bind=engine)
        Maker = sessionmaker(bind=engine, autoflush=False)

        setup = Maker()
        league = make_factory(setup)
        season = league.season()
        home, away = league.team(season, "Home"), league.team(season, "Away")
        scorer = league.player("Striker", home)
        match = league.completed(season, home, away, 2, 1, events=[ev("goal", scorer, "home")])
        ids = {"match": match.id, "home": home.id, "away": away.id, "scorer": scorer.id}
        setup.close()

        yield Maker, ids
        engine.dispose()

    def _race(self, applier_a, applier_b, match_id):
        """Let B apply the match after A has read it, once."""
        original = applier_a._apply_team_deltas
        fired = []

        def racing(match, report):
            if not fired:
                fired.append(True)
                applier_b.apply(match_id)
            return original(match, report)

        applier_a._apply_team_deltas = racing

    def test_losing_writer_gets_retryable_conflict(self, file_db):
        Maker, ids = file_db
        session_a, session_b = Maker(), Maker()
        applier_a = MatchResultApplier(session_a, 40)
        applier_b = MatchResultApplier(session_b, 40)
        self._race(applier_a, applier_b, ids["match"])
        conflicts_before = sample("stats_conflicts_total", {"operation": "apply"})

        with pytest.raises(StatsConflictError) as exc_info:
            applier_a.apply(ids["match"])

        assert exc_info.value.retryable is True
        assert sample("stats_conflicts_total", {"operation": "apply"}) == conflicts_before + 1

        check = Maker()
        assert check.get(Team, ids["home"]).points == 3
        assert check.get(Team, ids["home"]).matches_played == 1
        assert check.get(Player, ids["scorer"]).career_stats.goals == 1
        assert check.query(PlayerMatchHistory).count() == 1
        for session in (session_a, session_b, check):
            session.close()

    def test_retry_rereads_and_sees_the_guard(self, file_db):
        Maker, ids = file_db
        session_a, session_b = Maker(), Maker()
        applier_a = MatchResultApplier(session_a, 40)
        applier_b = MatchResultApplier(session_b, 40)
        self._race(applier_a, applier_b, ids["match"])

        with pytest.raises(AlreadyApplied):
            run_with_retry(lambda: applier_a.apply(ids["match"]), attempts=3)

        check = Maker()
        assert check.get(Team, ids["away"]).losses == 1
        assert check.get(Team, ids["away"]).matches_played == 1
        for session in (session_a, session_b, check):
            session.close()


class TestRunWithRetry:
    """Conflict retries re-run the whole operation; other errors are not retried."""

    def test_conflicts_are_retried_until_success(self):
        calls = []

        def operation():
            calls.append(1)
            if len(calls) < 3:
                raise StatsConflictError("lost the race")
            return "applied"

        assert run_with_retry(operation, attempts=3) == "applied"
        assert len(calls) == 3

    def test_last_conflict_is_raised_after_all_attempts(self):
        calls = []

        def operation():
            calls.append(1)
            raise StatsConflictError("lost the race")

        with pytest.raises(StatsConflictError):
            run_with_retry(operation, attempts=2)
        assert len(calls) == 2

    def test_precondition_errors_are_not_retried(self):
        calls = []

        def operation():
            calls.append(1)
            raise AlreadyApplied("already applied")

        with pytest.raises(AlreadyApplied):
            run_with_retry(operation, attempts=5)
        assert calls == [1]
