"""
Match Result Applier.

Folds a completed match into team and player statistics exactly once, and
takes it back out again when the match is edited, reset or deleted.

Data Flow:
    Match (completed, events) -> results.team_deltas / tally_player_events
        -> Team counters, PlayerCareerStats, PlayerSeasonStats,
           PlayerMatchHistory -> Match.stats_updated = True

Guarantees:
- apply() and revert() each run as one transaction covering the match, both
  teams and every touched player. Any failure rolls the whole unit back.
- The stats_updated guard flips under optimistic concurrency control: the
  Match row is versioned, so if another writer changed it between our read
  and our write the flush fails, everything is rolled back and
  StatsConflictError tells the caller to re-read and retry.
- Team and player rows are read FOR UPDATE so increments for overlapping
  entities never interleave.
- A player or team that no longer exists does not block the match: its
  contribution is skipped and reported as an Omission.
- revert() subtracts each player's history row (floored at zero) and
  rebuilds both teams from their other applied matches instead of
  subtracting team deltas.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt

from futsal_league.core import metrics
from futsal_league.core.exceptions import (
    AlreadyApplied,
    MatchNotCompleted,
    NotApplied,
    StatsConflictError,
)
from futsal_league.models import Match, MatchStatus, STAT_FIELDS
from futsal_league.repositories.league import MatchRepository, PlayerRepository, TeamRepository
from futsal_league.services.league.events import EventSide, events_of
from futsal_league.services.league.results import (
    add_stat_line,
    rebuild_team_totals,
    side_result,
    subtract_stat_line,
    tally_player_events,
    team_deltas,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Omission:
    """A contribution skipped because the referenced record is gone."""
    kind: str  # 'player' or 'team'
    reference_id: str
    reason: str
    event_types: List[str] = field(default_factory=list)


@dataclass
class ApplyReport:
    """What apply() wrote."""
    match_id: str
    home_score: int
    away_score: int
    teams_updated: List[str] = field(default_factory=list)
    players_credited: List[str] = field(default_factory=list)
    omissions: List[Omission] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RevertReport:
    """What revert() undid."""
    match_id: str
    players_reverted: List[str] = field(default_factory=list)
    team_stats: Dict[str, Dict[str, int]] = field(default_factory=dict)
    clipped: Dict[str, Dict[str, int]] = field(default_factory=dict)
    omissions: List[Omission] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class MatchResultApplier:
    """
    Applies and reverts completed match results.

    Args:
        db: SQLAlchemy session; one apply/revert is one transaction on it
        match_duration_minutes: minutes credited per appearance, from
            configuration (MATCH_DURATION_MINUTES)
    """

    def __init__(self, db: Session, match_duration_minutes: int):
        if not match_duration_minutes or match_duration_minutes <= 0:
            raise ValueError("match_duration_minutes must be a positive number of minutes")
        self.db = db
        self.match_duration_minutes = match_duration_minutes
        self.matches = MatchRepository(db)
        self.teams = TeamRepository(db)
        self.players = PlayerRepository(db)

    # ========================================================================
    # Public operations
    # ========================================================================

    def apply(self, match_id: str) -> ApplyReport:
        """
        Apply a completed match's deltas.

        Raises:
            MatchNotCompleted: the match is not in completed state
            AlreadyApplied: the match's deltas are already applied
            StatsConflictError: another writer changed the match concurrently
        """
        report = self.in_transaction("apply", lambda: self.apply_in_session(match_id))
        self.record_applied(report)
        return report

    def record_applied(self, report: ApplyReport) -> None:
        """Metrics and log line for a committed apply."""
        metrics.match_results_applied_total.inc()
        metrics.record_omissions(report.omissions)
        logger.info(
            f"Applied match {report.match_id} ({report.home_score}-{report.away_score}): "
            f"{len(report.players_credited)} players credited, {len(report.omissions)} omissions",
            extra={"match_id": report.match_id, "omissions": len(report.omissions)},
        )

    def apply_if_needed(self, match_id: str) -> Optional[ApplyReport]:
        """Apply unless the guard says the match is already applied."""
        match = self.matches.get(match_id)
        if match.stats_updated:
            logger.debug(f"Match {match_id} already applied; nothing to do")
            return None
        return self.apply(match_id)

    def revert(self, match_id: str) -> RevertReport:
        """
        Revert a previously applied match.

        Raises:
            NotApplied: the match's deltas are not currently applied
            StatsConflictError: another writer changed the match concurrently
        """
        report = self.in_transaction("revert", lambda: self.revert_in_session(match_id))
        self.record_reverted(report)
        return report

    def record_reverted(self, report: RevertReport) -> None:
        """Metrics and log line for a committed revert."""
        metrics.match_results_reverted_total.inc()
        metrics.record_omissions(report.omissions)
        logger.info(
            f"Reverted match {report.match_id}: {len(report.players_reverted)} players, "
            f"{len(report.team_stats)} teams rebuilt",
            extra={"match_id": report.match_id},
        )

    # ========================================================================
    # Transaction handling
    # ========================================================================

    def in_transaction(self, operation: str, work: Callable[[], T]) -> T:
        """
        Run ``work`` as one unit of work: commit on success, roll back on any
        failure. A lost version check becomes StatsConflictError.
        """
        try:
            result = work()
            self.db.commit()
            return result
        except StaleDataError as e:
            self.db.rollback()
            metrics.record_conflict(operation)
            logger.warning(f"Concurrent modification during {operation}: {e}")
            raise StatsConflictError(
                f"Match was modified concurrently during {operation}; re-read and retry",
                {"operation": operation},
            ) from e
        except Exception:
            self.db.rollback()
            raise

    # ========================================================================
    # Apply
    # ========================================================================

    def apply_in_session(self, match_id: str) -> ApplyReport:
        """Apply without committing; the caller owns the transaction."""
        match = self.matches.get_for_update(match_id)
        if match.status != MatchStatus.COMPLETED.value:
            raise MatchNotCompleted(
                f"Cannot apply match {match_id} in status '{match.status}'",
                {"match_id": match_id, "status": match.status},
            )
        if match.stats_updated:
            raise AlreadyApplied(f"Match {match_id} statistics are already applied", {"match_id": match_id})

        report = ApplyReport(match_id=match.id, home_score=match.home_score, away_score=match.away_score)
        self._apply_team_deltas(match, report)
        self._apply_player_deltas(match, report)

        match.stats_updated = True
        # The versioned UPDATE of the match row is the compare-and-swap
        self.db.flush()
        return report

    def _apply_team_deltas(self, match: Match, report: ApplyReport) -> None:
        home_delta, away_delta = team_deltas(match.home_score, match.away_score)
        locked = self.teams.lock_by_ids(match.team_ids())

        for team_id, delta in ((match.home_team_id, home_delta), (match.away_team_id, away_delta)):
            team = locked.get(team_id)
            if team is None:
                report.omissions.append(Omission("team", team_id, "team not found"))
                logger.warning(
                    f"Team {team_id} of match {match.id} no longer exists; skipping its table update",
                    extra={"match_id": match.id, "team_id": team_id},
                )
                continue
            for name, value in delta.as_dict().items():
                setattr(team, name, getattr(team, name) + value)
            report.teams_updated.append(team_id)

    def _apply_player_deltas(self, match: Match, report: ApplyReport) -> None:
        events = events_of(match)
        contributions = tally_player_events(events)
        locked = self.players.lock_by_ids(contributions.keys())

        for player_id, contribution in contributions.items():
            player = locked.get(player_id)
            if player is None:
                event_types = [e.type.value for e in events if e.player_id == player_id]
                report.omissions.append(Omission("player", player_id, "player not found", event_types))
                logger.warning(
                    f"Player {player_id} referenced by match {match.id} no longer exists; "
                    f"skipping {len(event_types)} event(s)",
                    extra={"match_id": match.id, "player_id": player_id, "event_types": event_types},
                )
                continue

            if self.players.history_entry(player_id, match.id) is not None:
                # A stale history row means an earlier revert was incomplete
                logger.error(
                    f"Player {player_id} already has history for match {match.id}; not crediting twice",
                    extra={"match_id": match.id, "player_id": player_id},
                )
                continue

            if contribution.conflicting_sides:
                logger.warning(
                    f"Player {player_id} has events on both sides of match {match.id}; "
                    f"crediting to {contribution.side.value}",
                    extra={"match_id": match.id, "player_id": player_id},
                )

            side = contribution.side
            team_id, opponent_id = (
                (match.home_team_id, match.away_team_id)
                if side is EventSide.HOME
                else (match.away_team_id, match.home_team_id)
            )
            result = side_result(side, match.home_score, match.away_score)
            delta = contribution.stat_delta(result, self.match_duration_minutes)

            add_stat_line(self.players.career_stats(player), delta)
            add_stat_line(self.players.season_stats(player, match.season_id), delta)
            self.players.add_history(
                player,
                match_id=match.id,
                season_id=match.season_id,
                team_id=team_id,
                opponent_id=opponent_id,
                home_team_id=match.home_team_id,
                away_team_id=match.away_team_id,
                match_date=match.match_date,
                side=side.value,
                result=result.value,
                **delta,
            )
            report.players_credited.append(player_id)

    # ========================================================================
    # Revert
    # ========================================================================

    def revert_in_session(self, match_id: str) -> RevertReport:
        """Revert without committing; the caller owns the transaction."""
        match = self.matches.get_for_update(match_id)
        if not match.stats_updated:
            raise NotApplied(f"Match {match_id} statistics are not applied", {"match_id": match_id})

        report = RevertReport(match_id=match.id)
        self._revert_player_deltas(match, report)

        match.stats_updated = False
        self.db.flush()

        self._rebuild_teams(match, report)
        self.db.flush()
        return report

    def _revert_player_deltas(self, match: Match, report: RevertReport) -> None:
        entries = self.players.history_for_match(match.id)
        locked = self.players.lock_by_ids(entry.player_id for entry in entries)

        for entry in entries:
            player = locked.get(entry.player_id)
            if player is None:
                self.db.delete(entry)
                report.omissions.append(Omission("player", entry.player_id, "player not found"))
                continue

            delta = {name: getattr(entry, name) for name in STAT_FIELDS}
            clipped = {}
            career_clip = subtract_stat_line(self.players.career_stats(player), delta)
            if career_clip:
                clipped.update({f"career.{k}": v for k, v in career_clip.items()})

            bucket = self.players.season_stats(player, entry.season_id)
            season_clip = subtract_stat_line(bucket, delta)
            if season_clip:
                clipped.update({f"season.{k}": v for k, v in season_clip.items()})
            if not any(bucket.stat_line().values()):
                del player.season_stats[entry.season_id]

            if clipped:
                report.clipped[player.id] = clipped
                metrics.record_drift("player")
                logger.warning(
                    f"Player {player.id} counters were below match {match.id} contribution; floored at zero",
                    extra={"match_id": match.id, "player_id": player.id, "clipped": clipped},
                )

            self.players.remove_history(player, entry)
            report.players_reverted.append(player.id)

    def _rebuild_teams(self, match: Match, report: RevertReport) -> None:
        locked = self.teams.lock_by_ids(match.team_ids())
        for team_id in match.team_ids():
            team = locked.get(team_id)
            if team is None:
                report.omissions.append(Omission("team", team_id, "team not found"))
                logger.warning(
                    f"Team {team_id} of match {match.id} no longer exists; nothing to rebuild",
                    extra={"match_id": match.id, "team_id": team_id},
                )
                continue
            source = self.matches.find_applied_for_team(team.id, team.season_id, exclude_match_id=match.id)
            totals = rebuild_team_totals(team.id, source)
            self.teams.write_stats(team, totals)
            report.team_stats[team.id] = totals


def run_with_retry(operation: Callable[[], T], attempts: int = 3) -> T:
    """
    Run an apply/revert, re-running the whole operation on StatsConflictError.

    Each attempt re-reads everything, so partial results are never merged.
    Other errors, and the conflict of the last attempt, propagate unchanged.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max(attempts, 1)),
        retry=retry_if_exception_type(StatsConflictError),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
    return retrying(operation)
