"""
Error taxonomy for the statistics engine.

- PreconditionViolation: programming errors (applying a match that is not
  completed, reverting one that was never applied). Surfaced, never retried.
- StatsConflictError: a concurrent writer won the race on the stats guard.
  Retryable by re-reading and re-running the whole operation.
- NotFoundError: the record an operation targets does not exist.

Dangling references inside a match (an event pointing at a deleted player)
and drift found during recompute are not exceptions; they are reported on the
operation's result and logged.
"""
from typing import Any, Optional


class LeagueError(Exception):
    """Base class for engine errors, with a stable machine-readable code."""

    code = "LEAGUE_ERROR"
    retryable = False

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            **({"details": self.details} if self.details is not None else {}),
        }


class NotFoundError(LeagueError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class PreconditionViolation(LeagueError):
    code = "PRECONDITION_VIOLATION"


class MatchNotCompleted(PreconditionViolation):
    code = "MATCH_NOT_COMPLETED"


class AlreadyApplied(PreconditionViolation):
    code = "STATS_ALREADY_APPLIED"


class NotApplied(PreconditionViolation):
    code = "STATS_NOT_APPLIED"


class InvalidTransition(PreconditionViolation):
    code = "INVALID_TRANSITION"


class DurationMismatchError(PreconditionViolation):
    """Migration target differs from the configured match length."""

    code = "MATCH_DURATION_MISMATCH"


class StatsConflictError(LeagueError):
    """Another writer changed the match between our read and our write."""

    code = "STATS_CONFLICT"
    retryable = True


class InvalidEventError(LeagueError, ValueError):
    code = "INVALID_EVENT"


class InvalidFairPlayRecord(LeagueError, ValueError):
    code = "INVALID_FAIR_PLAY_RECORD"


class InvalidScoreError(LeagueError, ValueError):
    code = "INVALID_SCORE"
