"""
Statistics maintenance: rebuild cached counters from their source records.

Team counters are a cache of the team's applied completed matches; player
career and season counters are a cache of the player's match-history rows.
Every operation here rebuilds the cache from source, compares it with what
is stored, logs and counts any drift, and persists the rebuilt values as
authoritative.

The read side (player profiles, team counters, top scorers, season
summaries) serves the stored counters as they are.

Typical use:
    service = StatsService(db, settings.MATCH_DURATION_MINUTES)
    result = service.recompute_team_stats(team_id)
    if result.drifted:
        ...
    service.rebuild_season(season_id)   # periodic reconciliation pass
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from futsal_league.core import metrics
from futsal_league.core.exceptions import DurationMismatchError
from futsal_league.models import MatchStatus, STAT_FIELDS, TEAM_STAT_FIELDS
from futsal_league.repositories.league import (
    MatchRepository,
    PlayerRepository,
    SeasonRepository,
    TeamRepository,
)
from futsal_league.services.league.results import rebuild_team_totals, sum_stat_lines

logger = logging.getLogger(__name__)


@dataclass
class TeamRecomputeResult:
    team_id: str
    season_id: str
    matches_counted: int
    previous: Dict[str, int]
    rebuilt: Dict[str, int]

    @property
    def drift(self) -> Dict[str, Dict[str, int]]:
        return {
            name: {"stored": self.previous[name], "rebuilt": self.rebuilt[name]}
            for name in TEAM_STAT_FIELDS
            if self.previous[name] != self.rebuilt[name]
        }

    @property
    def drifted(self) -> bool:
        return bool(self.drift)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["drift"] = self.drift
        return data


@dataclass
class PlayerRecomputeResult:
    player_id: str
    history_entries: int
    # bucket ('career' or a season id) -> counter -> {stored, rebuilt}
    drift: Dict[str, Dict[str, Dict[str, int]]] = field(default_factory=dict)

    @property
    def drifted(self) -> bool:
        return bool(self.drift)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SeasonRebuildResult:
    season_id: str
    teams: List[TeamRecomputeResult] = field(default_factory=list)
    players: List[PlayerRecomputeResult] = field(default_factory=list)

    @property
    def drifted_teams(self) -> List[str]:
        return [t.team_id for t in self.teams if t.drifted]

    @property
    def drifted_players(self) -> List[str]:
        return [p.player_id for p in self.players if p.drifted]

    def to_dict(self) -> dict:
        return {
            "season_id": self.season_id,
            "teams_checked": len(self.teams),
            "players_checked": len(self.players),
            "drifted_teams": self.drifted_teams,
            "drifted_players": self.drifted_players,
        }


def _diff(stored: Dict[str, int], rebuilt: Dict[str, int]) -> Dict[str, Dict[str, int]]:
    return {
        name: {"stored": stored.get(name, 0), "rebuilt": rebuilt[name]}
        for name in rebuilt
        if stored.get(name, 0) != rebuilt[name]
    }


class StatsService:
    """Rebuild-from-source and drift repair for team and player statistics."""

    def __init__(self, db: Session, match_duration_minutes: int):
        self.db = db
        self.match_duration_minutes = match_duration_minutes
        self.matches = MatchRepository(db)
        self.teams = TeamRepository(db)
        self.players = PlayerRepository(db)
        self.seasons = SeasonRepository(db)

    # ========================================================================
    # Teams
    # ========================================================================

    def recompute_team_stats(self, team_id: str, season_id: Optional[str] = None) -> TeamRecomputeResult:
        """Rebuild one team's table counters from its applied completed matches."""
        try:
            result = self._recompute_team(team_id, season_id)
            self.db.commit()
            return result
        except Exception:
            self.db.rollback()
            raise

    def _recompute_team(self, team_id: str, season_id: Optional[str]) -> TeamRecomputeResult:
        team = self.teams.lock_by_ids([team_id]).get(team_id) or self.teams.get(team_id)
        season_id = season_id or team.season_id
        source = self.matches.find_applied_for_team(team.id, season_id)
        rebuilt = rebuild_team_totals(team.id, source)

        result = TeamRecomputeResult(
            team_id=team.id,
            season_id=season_id,
            matches_counted=len(source),
            previous=team.table_stats(),
            rebuilt=rebuilt,
        )
        if result.drifted:
            metrics.record_drift("team")
            logger.warning(
                f"Team {team.name} ({team.id}) stats drifted from {len(source)} applied matches; "
                f"persisting rebuilt values",
                extra={"team_id": team.id, "season_id": season_id, "drift": result.drift},
            )
        self.teams.write_stats(team, rebuilt)
        self.db.flush()
        return result

    # ========================================================================
    # Players
    # ========================================================================

    def recompute_player_stats(self, player_id: str) -> PlayerRecomputeResult:
        """Rebuild a player's career and season counters from match history."""
        try:
            result = self._recompute_player(player_id)
            self.db.commit()
            return result
        except Exception:
            self.db.rollback()
            raise

    def _recompute_player(self, player_id: str) -> PlayerRecomputeResult:
        player = self.players.lock_by_ids([player_id]).get(player_id) or self.players.get(player_id)
        history = self.players.history_for_player(player.id)
        result = PlayerRecomputeResult(player_id=player.id, history_entries=len(history))

        career = self.players.career_stats(player)
        rebuilt_career = sum_stat_lines(history)
        career_drift = _diff(career.stat_line(), rebuilt_career)
        if career_drift:
            result.drift["career"] = career_drift
        self._write_stat_line(career, rebuilt_career)

        by_season: Dict[str, list] = {}
        for entry in history:
            by_season.setdefault(entry.season_id, []).append(entry)

        for season_id in list(player.season_stats.keys()):
            if season_id not in by_season:
                stale = player.season_stats[season_id].stat_line()
                if any(stale.values()):
                    result.drift[season_id] = _diff(stale, sum_stat_lines([]))
                del player.season_stats[season_id]

        for season_id, entries in by_season.items():
            bucket = self.players.season_stats(player, season_id)
            rebuilt = sum_stat_lines(entries)
            season_drift = _diff(bucket.stat_line(), rebuilt)
            if season_drift:
                result.drift[season_id] = season_drift
            self._write_stat_line(bucket, rebuilt)

        if result.drifted:
            metrics.record_drift("player")
            logger.warning(
                f"Player {player.name} ({player.id}) stats drifted from {len(history)} history entries; "
                f"persisting rebuilt values",
                extra={"player_id": player.id, "drift": result.drift},
            )
        self.db.flush()
        return result

    def verify_player_conservation(self, player_id: str) -> List[str]:
        """
        Counters that break career == sum(history) or season == sum(season history).

        Read only. Names are 'career.<counter>' or '<season_id>.<counter>'.
        """
        player = self.players.get(player_id)
        history = self.players.history_for_player(player.id)
        career = player.career_stats.stat_line() if player.career_stats else {}
        violations = [f"career.{name}" for name in _diff(career, sum_stat_lines(history))]

        season_ids = set(player.season_stats.keys()) | {e.season_id for e in history}
        for season_id in sorted(season_ids):
            bucket = player.season_stats.get(season_id)
            stored = bucket.stat_line() if bucket else {}
            rebuilt = sum_stat_lines(e for e in history if e.season_id == season_id)
            violations.extend(f"{season_id}.{name}" for name in _diff(stored, rebuilt))
        return violations

    # ========================================================================
    # Season-wide passes
    # ========================================================================

    def rebuild_season(self, season_id: str) -> SeasonRebuildResult:
        """Reconcile every team of the season and every player with history in it."""
        result = SeasonRebuildResult(season_id=season_id)
        try:
            for team in self.teams.find_by_season(season_id):
                result.teams.append(self._recompute_team(team.id, season_id))
            for player_id in self.players.player_ids_with_history_in_season(season_id):
                result.players.append(self._recompute_player(player_id))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Season {season_id} rebuilt: {len(result.teams)} teams, {len(result.players)} players, "
            f"{len(result.drifted_teams)} teams and {len(result.drifted_players)} players drifted",
            extra={"season_id": season_id},
        )
        return result

    def migrate_match_duration(self, new_minutes: Optional[int] = None) -> int:
        """
        Rewrite minutes_played so all history uses the configured match length.

        Run after MATCH_DURATION_MINUTES changes. ``new_minutes`` is only a
        confirmation of the configured value: any other length would leave
        history and later applies on different units, so it is rejected with
        DurationMismatchError. Career/season counters are rebuilt from history.
        Returns the number of history entries changed.
        """
        target = self.match_duration_minutes
        if new_minutes and new_minutes != target:
            raise DurationMismatchError(
                f"Cannot migrate to {new_minutes} minutes while MATCH_DURATION_MINUTES is {target}",
                {"requested": new_minutes, "configured": target},
            )

        changed = 0
        try:
            for player_id in self.players.player_ids_with_history():
                for entry in self.players.history_for_player(player_id):
                    expected = entry.appearances * target
                    if entry.minutes_played != expected:
                        entry.minutes_played = expected
                        changed += 1
                self.db.flush()
                self._recompute_player(player_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Migrated {changed} match history entries to {target} minutes per match")
        return changed

    # ========================================================================
    # Read side
    # ========================================================================

    def player_profile(self, player_id: str) -> dict:
        """A player's career line, season buckets and match history (oldest first)."""
        player = self.players.get(player_id)
        career = player.career_stats.stat_line() if player.career_stats else sum_stat_lines([])
        return {
            "id": player.id,
            "name": player.name,
            "current_team_id": player.current_team_id,
            "jersey_number": player.jersey_number,
            "career_stats": career,
            "season_stats": {
                season_id: bucket.stat_line()
                for season_id, bucket in sorted(player.season_stats.items())
            },
            "match_history": [
                {
                    "match_id": entry.match_id,
                    "season_id": entry.season_id,
                    "team_id": entry.team_id,
                    "opponent_id": entry.opponent_id,
                    "match_date": entry.match_date.isoformat(),
                    "side": entry.side,
                    "result": entry.result,
                    **entry.stat_line(),
                }
                for entry in self.players.history_for_player(player.id)
            ],
        }

    def team_stats(self, team_id: str) -> dict:
        """Stored table counters for a team, with goal difference."""
        team = self.teams.get(team_id)
        return {
            "id": team.id,
            "name": team.name,
            "season_id": team.season_id,
            **team.table_stats(),
            "goal_difference": team.goal_difference,
        }

    def top_scorers(self, season_id: Optional[str] = None, limit: int = 10) -> List[dict]:
        """Goal leaders by career totals, or by one season's buckets."""
        if season_id is not None:
            self.seasons.get(season_id)
        return [
            {
                "rank": position,
                "player_id": player.id,
                "name": player.name,
                "current_team_id": player.current_team_id,
                "goals": line.goals,
                "assists": line.assists,
                "appearances": line.appearances,
            }
            for position, (player, line) in enumerate(self.players.top_scorers(season_id, limit), start=1)
        ]

    def season_summary(self, season_id: Optional[str] = None, top: int = 5) -> dict:
        """
        Totals for a season (the active one when none is given).

        Goals come from completed match scores, so own goals and goals
        without a credited scorer are included.
        """
        season = self.seasons.resolve(season_id)
        by_status = self.matches.count_by_status(season.id)
        completed = self.matches.find_completed_by_season(season.id)
        total_matches = sum(by_status.values())
        total_goals = sum(m.home_score + m.away_score for m in completed)
        return {
            "season_id": season.id,
            "season_name": season.name,
            "teams": len(self.teams.find_by_season(season.id)),
            "total_matches": total_matches,
            "matches_by_status": {status.value: by_status.get(status.value, 0) for status in MatchStatus},
            "completion_rate": round(100 * len(completed) / total_matches) if total_matches else 0,
            "total_goals": total_goals,
            "avg_goals_per_match": round(total_goals / len(completed), 1) if completed else 0.0,
            "top_scorers": self.top_scorers(season.id, top),
        }

    @staticmethod
    def _write_stat_line(target, values: Dict[str, int]) -> None:
        for name in STAT_FIELDS:
            setattr(target, name, values.get(name, 0))
