"""
Fair-play (disciplinary) records.

Records are independent of match events. Only ``active`` records count
toward the standings fair-play total; an appeal can move a record to
``appealed``, ``reduced`` (keeping ``original_points``) or ``overturned``,
and ``reinstate`` puts it back to ``active``.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, TypeVar

from sqlalchemy.orm import Session

from futsal_league.core.exceptions import InvalidFairPlayRecord, InvalidTransition
from futsal_league.models import FAIR_PLAY_ACTION_TYPES, FairPlayRecord, FairPlayStatus
from futsal_league.repositories.league import FairPlayRepository, TeamRepository
from futsal_league.utils.timezone import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_POINTS = 1
MAX_POINTS = 100


def _check_points(points) -> int:
    if not isinstance(points, int) or isinstance(points, bool) or not MIN_POINTS <= points <= MAX_POINTS:
        raise InvalidFairPlayRecord(
            f"Fair-play points must be an integer between {MIN_POINTS} and {MAX_POINTS}, got {points!r}",
            {"points": points},
        )
    return points


class FairPlayService:
    """Create fair-play records and move them through the appeal workflow."""

    def __init__(self, db: Session):
        self.db = db
        self.records = FairPlayRepository(db)
        self.teams = TeamRepository(db)

    def _commit(self, work: Callable[[], T]) -> T:
        try:
            result = work()
            self.db.commit()
            return result
        except Exception:
            self.db.rollback()
            raise

    def create(
        self,
        team_id: str,
        points: int = 5,
        action_type: str = "other",
        season_id: Optional[str] = None,
        match_id: Optional[str] = None,
        player_id: Optional[str] = None,
        custom_name: Optional[str] = None,
        is_official: bool = False,
        description: str = "",
        reference: Optional[str] = None,
        action_date: Optional[datetime] = None,
    ) -> FairPlayRecord:
        """
        Record a disciplinary action against a team.

        The season defaults to the team's season. ``custom_name`` names a
        subject who is not a registered player, such as a team official.
        """
        _check_points(points)
        if action_type not in FAIR_PLAY_ACTION_TYPES:
            raise InvalidFairPlayRecord(
                f"Unknown action type {action_type!r}",
                {"action_type": action_type, "allowed": list(FAIR_PLAY_ACTION_TYPES)},
            )
        if len(description or "") > 500:
            raise InvalidFairPlayRecord("Description must be at most 500 characters")

        def work():
            team = self.teams.get(team_id)
            record = self.records.create(
                team_id=team.id,
                season_id=season_id or team.season_id,
                match_id=match_id,
                player_id=player_id,
                custom_name=custom_name,
                is_official=is_official,
                action_type=action_type,
                points=points,
                description=description or "",
                reference=reference,
                action_date=action_date or utc_now(),
                status=FairPlayStatus.ACTIVE.value,
            )
            self.db.flush()
            return record

        record = self._commit(work)
        logger.info(
            f"Fair-play record {record.id}: {points} points against team {team_id} ({action_type})",
            extra={"team_id": team_id, "record_id": record.id},
        )
        return record

    # ========================================================================
    # Appeal workflow
    # ========================================================================

    def _transition(self, record_id: str, action: str, allowed, change: Callable[[FairPlayRecord], None]):
        def work():
            record = self.records.get(record_id)
            if record.status not in {s.value for s in allowed}:
                raise InvalidTransition(
                    f"Cannot {action} fair-play record {record_id} in status '{record.status}'",
                    {"record_id": record_id, "status": record.status, "action": action},
                )
            change(record)
            self.db.flush()
            return record

        record = self._commit(work)
        logger.info(f"Fair-play record {record_id} {action}: now {record.status} ({record.points} points)")
        return record

    def appeal(self, record_id: str, notes: str = "") -> FairPlayRecord:
        def change(record):
            record.status = FairPlayStatus.APPEALED.value
            record.appeal_date = utc_now()
            record.appeal_notes = notes

        return self._transition(
            record_id, "appeal", (FairPlayStatus.ACTIVE, FairPlayStatus.REDUCED), change
        )

    def reduce(self, record_id: str, new_points: int) -> FairPlayRecord:
        """Lower a record's points; the first reduction keeps the original in original_points."""
        _check_points(new_points)

        def change(record):
            baseline = record.original_points or record.points
            if new_points >= baseline:
                raise InvalidFairPlayRecord(
                    f"Reduced points must be below the original {baseline}, got {new_points}",
                    {"record_id": record.id, "points": new_points},
                )
            if record.original_points is None:
                record.original_points = record.points
            record.points = new_points
            record.status = FairPlayStatus.REDUCED.value

        return self._transition(
            record_id,
            "reduce",
            (FairPlayStatus.ACTIVE, FairPlayStatus.APPEALED, FairPlayStatus.REDUCED),
            change,
        )

    def overturn(self, record_id: str) -> FairPlayRecord:
        def change(record):
            record.status = FairPlayStatus.OVERTURNED.value

        return self._transition(
            record_id,
            "overturn",
            (FairPlayStatus.ACTIVE, FairPlayStatus.APPEALED, FairPlayStatus.REDUCED),
            change,
        )

    def reinstate(self, record_id: str) -> FairPlayRecord:
        """Back to active, with the original points if they were reduced."""
        def change(record):
            if record.original_points is not None:
                record.points = record.original_points
                record.original_points = None
            record.status = FairPlayStatus.ACTIVE.value

        return self._transition(
            record_id,
            "reinstate",
            (FairPlayStatus.APPEALED, FairPlayStatus.REDUCED, FairPlayStatus.OVERTURNED),
            change,
        )

    # ========================================================================
    # Reporting
    # ========================================================================

    def team_summary(self, team_id: str, season_id: Optional[str] = None) -> Dict[str, Any]:
        team = self.teams.get(team_id)
        season_id = season_id or team.season_id
        by_status = {status.value: {"count": 0, "points": 0} for status in FairPlayStatus}
        records = self.records.find_by_team(team.id, season_id)
        for record in records:
            bucket = by_status.setdefault(record.status, {"count": 0, "points": 0})
            bucket["count"] += 1
            bucket["points"] += record.points
        return {
            "team_id": team.id,
            "season_id": season_id,
            "records": len(records),
            "by_status": by_status,
            "active_points": sum(record.effective_points for record in records),
        }
