"""
Match lifecycle transitions.

    scheduled -> live -> completed
    scheduled -> postponed -> scheduled
    scheduled | postponed -> cancelled
    completed -> scheduled              (reset: reverts applied statistics)

Every transition that completes a match applies its result in the same unit
of work, and every transition that takes a completed match back out reverts
it first, so statistics never reflect a match twice or a match that no
longer exists.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from futsal_league.core.exceptions import InvalidScoreError, InvalidTransition
from futsal_league.models import Match, MatchStatus
from futsal_league.repositories.league import MatchRepository
from futsal_league.services.league.events import EventPayload, MatchEventRecord
from futsal_league.services.league.match_result_applier import (
    ApplyReport,
    MatchResultApplier,
    RevertReport,
)
from futsal_league.utils.timezone import utc_now

logger = logging.getLogger(__name__)

EventInput = Union[MatchEventRecord, EventPayload, dict]


def _as_records(events: Optional[Iterable[EventInput]]) -> List[MatchEventRecord]:
    return [e if isinstance(e, MatchEventRecord) else MatchEventRecord.from_payload(e) for e in events or []]


def _check_score(home_score, away_score) -> None:
    for label, value in (("home_score", home_score), ("away_score", away_score)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidScoreError(f"{label} must be a non-negative integer, got {value!r}", {label: value})


class MatchLifecycleService:
    """
    Status changes for matches, wired to the result applier.

    Args:
        db: SQLAlchemy session shared with ``applier``
        applier: MatchResultApplier bound to the same session
    """

    def __init__(self, db: Session, applier: MatchResultApplier):
        self.db = db
        self.applier = applier
        self.matches = MatchRepository(db)

    @property
    def match_duration_minutes(self) -> int:
        return self.applier.match_duration_minutes

    def _require(self, match: Match, *allowed: MatchStatus, action: str) -> None:
        if match.status not in {s.value for s in allowed}:
            raise InvalidTransition(
                f"Cannot {action} match {match.id} in status '{match.status}'",
                {"match_id": match.id, "status": match.status, "action": action},
            )

    def _touch(self, match: Match) -> datetime:
        now = utc_now()
        match.last_update = now
        return now

    # ========================================================================
    # Live control
    # ========================================================================

    def start(self, match_id: str, current_minute: Optional[int] = None) -> Match:
        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, MatchStatus.SCHEDULED, action="start")
            now = self._touch(match)
            match.status = MatchStatus.LIVE.value
            match.is_live = True
            match.started_at = now
            match.current_minute = current_minute if current_minute is not None else 0
            self.db.flush()
            return match

        match = self.applier.in_transaction("start", work)
        logger.info(f"Match {match_id} started", extra={"match_id": match_id})
        return match

    def pause(self, match_id: str, current_minute: Optional[int] = None) -> Match:
        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, MatchStatus.LIVE, action="pause")
            if not match.is_live:
                raise InvalidTransition(f"Match {match_id} is already paused", {"match_id": match_id})
            now = self._touch(match)
            match.is_live = False
            match.paused_at = now
            if current_minute is not None:
                match.current_minute = current_minute
            self.db.flush()
            return match

        return self.applier.in_transaction("pause", work)

    def resume(self, match_id: str, current_minute: Optional[int] = None) -> Match:
        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, MatchStatus.LIVE, action="resume")
            if match.is_live:
                raise InvalidTransition(f"Match {match_id} is not paused", {"match_id": match_id})
            now = self._touch(match)
            match.is_live = True
            match.resumed_at = now
            if current_minute is not None:
                match.current_minute = current_minute
            self.db.flush()
            return match

        return self.applier.in_transaction("resume", work)

    def record_score(
        self,
        match_id: str,
        home_score: int,
        away_score: int,
        current_minute: Optional[int] = None,
        event: Optional[EventInput] = None,
    ) -> Match:
        """Update the running score, optionally appending one event."""
        _check_score(home_score, away_score)

        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, MatchStatus.SCHEDULED, MatchStatus.LIVE, action="update the score of")
            self._touch(match)
            match.home_score = home_score
            match.away_score = away_score
            if current_minute is not None:
                match.current_minute = current_minute
            if event is not None:
                record = event if isinstance(event, MatchEventRecord) else MatchEventRecord.from_payload(
                    event, default_minute=match.current_minute,
                )
                self.matches.append_event(match, record)
            self.db.flush()
            return match

        return self.applier.in_transaction("score", work)

    def stop(self, match_id: str, current_minute: Optional[int] = None) -> ApplyReport:
        """End a live match and apply its result."""
        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, MatchStatus.LIVE, action="stop")
            now = self._touch(match)
            match.status = MatchStatus.COMPLETED.value
            match.is_live = False
            match.ended_at = now
            match.current_minute = current_minute if current_minute is not None else self.match_duration_minutes
            return self.applier.apply_in_session(match_id)

        report = self.applier.in_transaction("apply", work)
        self.applier.record_applied(report)
        return report

    # ========================================================================
    # Results
    # ========================================================================

    def complete(
        self,
        match_id: str,
        home_score: int,
        away_score: int,
        events: Optional[Iterable[EventInput]] = None,
    ) -> ApplyReport:
        """Record a final result for a scheduled or live match and apply it."""
        _check_score(home_score, away_score)
        records = _as_records(events)

        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, MatchStatus.SCHEDULED, MatchStatus.LIVE, action="complete")
            self._write_result(match, home_score, away_score, records)
            match.is_live = False
            match.ended_at = match.last_update
            return self.applier.apply_in_session(match_id)

        report = self.applier.in_transaction("apply", work)
        self.applier.record_applied(report)
        return report

    def edit_result(
        self,
        match_id: str,
        home_score: int,
        away_score: int,
        events: Optional[Iterable[EventInput]] = None,
    ) -> ApplyReport:
        """
        Replace the result of a completed match.

        The old result is reverted and the new one applied in one unit of
        work; no committed state ever reflects both.
        """
        _check_score(home_score, away_score)
        records = _as_records(events)
        reverted: List[RevertReport] = []

        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, MatchStatus.COMPLETED, action="edit the result of")
            if match.stats_updated:
                reverted.append(self.applier.revert_in_session(match_id))
            self._write_result(match, home_score, away_score, records)
            return self.applier.apply_in_session(match_id)

        report = self.applier.in_transaction("edit", work)
        for revert_report in reverted:
            self.applier.record_reverted(revert_report)
        self.applier.record_applied(report)
        return report

    def _write_result(self, match: Match, home_score: int, away_score: int, records: List[MatchEventRecord]) -> None:
        self._touch(match)
        match.status = MatchStatus.COMPLETED.value
        match.home_score = home_score
        match.away_score = away_score
        self.matches.replace_events(match, records)

        scored = {"home": 0, "away": 0}
        for record in records:
            if record.benefiting_side is not None:
                scored[record.benefiting_side.value] += 1
        if any(scored.values()) and (scored["home"], scored["away"]) != (home_score, away_score):
            logger.warning(
                f"Match {match.id} score {home_score}-{away_score} does not match its goal events "
                f"({scored['home']}-{scored['away']}); the score is used for the table",
                extra={"match_id": match.id},
            )

    # ========================================================================
    # Reset / postpone / cancel / delete
    # ========================================================================

    def reset(self, match_id: str) -> Optional[RevertReport]:
        """Back to scheduled: revert if applied, zero the score, clear events and live state."""
        def work():
            match = self.matches.get_for_update(match_id)
            report = self.applier.revert_in_session(match_id) if match.stats_updated else None
            match.status = MatchStatus.SCHEDULED.value
            match.home_score = 0
            match.away_score = 0
            match.current_minute = 0
            match.is_live = False
            match.started_at = None
            match.paused_at = None
            match.resumed_at = None
            match.ended_at = None
            match.last_update = utc_now()
            self.matches.replace_events(match, [])
            self.db.flush()
            return report

        report = self.applier.in_transaction("reset", work)
        if report is not None:
            self.applier.record_reverted(report)
        logger.info(f"Match {match_id} reset to scheduled", extra={"match_id": match_id})
        return report

    def postpone(self, match_id: str) -> Match:
        return self._simple_transition(match_id, "postpone", MatchStatus.POSTPONED, MatchStatus.SCHEDULED)

    def reschedule(self, match_id: str, match_date: Optional[datetime] = None) -> Match:
        return self._simple_transition(
            match_id, "reschedule", MatchStatus.SCHEDULED, MatchStatus.POSTPONED, match_date=match_date
        )

    def cancel(self, match_id: str) -> Match:
        return self._simple_transition(
            match_id, "cancel", MatchStatus.CANCELLED, MatchStatus.SCHEDULED, MatchStatus.POSTPONED
        )

    def _simple_transition(self, match_id: str, action: str, target: MatchStatus, *allowed: MatchStatus,
                           match_date: Optional[datetime] = None) -> Match:
        def work():
            match = self.matches.get_for_update(match_id)
            self._require(match, *allowed, action=action)
            self._touch(match)
            match.status = target.value
            if match_date is not None:
                match.match_date = match_date
            self.db.flush()
            return match

        match = self.applier.in_transaction(action, work)
        logger.info(f"Match {match_id} {target.value}", extra={"match_id": match_id})
        return match

    def delete(self, match_id: str) -> Optional[RevertReport]:
        """Remove a match, reverting its statistics first when applied."""
        def work():
            match = self.matches.get_for_update(match_id)
            report = self.applier.revert_in_session(match_id) if match.stats_updated else None
            self.matches.delete(match)
            self.db.flush()
            return report

        report = self.applier.in_transaction("delete", work)
        if report is not None:
            self.applier.record_reverted(report)
        logger.info(f"Match {match_id} deleted", extra={"match_id": match_id})
        return report
