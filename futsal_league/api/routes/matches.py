"""
Match API routes.

Provides endpoints for:
- Applying and reverting a completed match's statistics
- Live control (start, pause, resume, stop)
- Running score updates and final results (complete or edit)
- Reset, postpone, reschedule, cancel and delete

Base path: /api/matches
"""
import logging
from enum import Enum
from typing import Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from futsal_league.api.dependencies import get_applier, get_lifecycle
from futsal_league.api.rate_limit import limit_writes
from futsal_league.api.routes.schemas import (
    LiveControlRequest,
    RescheduleRequest,
    ResultRequest,
    ScoreRequest,
    match_to_dict,
)
from futsal_league.core.config import settings
from futsal_league.core.database import get_db
from futsal_league.models import MatchStatus
from futsal_league.repositories.league import MatchRepository
from futsal_league.services.league.match_lifecycle import MatchLifecycleService
from futsal_league.services.league.match_result_applier import MatchResultApplier, run_with_retry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matches", tags=["matches"])


class LiveAction(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"


@router.get("/{match_id}")
def get_match(match_id: str, db: Session = Depends(get_db)) -> Dict:
    return match_to_dict(MatchRepository(db).get(match_id))


# ==================== STATISTICS ====================

@router.post("/{match_id}/apply")
@limit_writes
def apply_match(
    request: Request,
    match_id: str,
    if_needed: bool = Query(False, description="Return applied=false instead of 409 when already applied"),
    applier: MatchResultApplier = Depends(get_applier),
) -> Dict:
    """
    Apply a completed match's result to team and player statistics.

    Concurrent-modification conflicts are retried up to STATS_CONFLICT_RETRIES
    times before a retryable 409 is returned.
    """
    operation = applier.apply_if_needed if if_needed else applier.apply
    report = run_with_retry(lambda: operation(match_id), settings.STATS_CONFLICT_RETRIES)
    if report is None:
        return {"applied": False, "match_id": match_id}
    return {"applied": True, **report.to_dict()}


@router.post("/{match_id}/revert")
@limit_writes
def revert_match(
    request: Request,
    match_id: str,
    applier: MatchResultApplier = Depends(get_applier),
) -> Dict:
    report = run_with_retry(lambda: applier.revert(match_id), settings.STATS_CONFLICT_RETRIES)
    return {"reverted": True, **report.to_dict()}


# ==================== LIVE CONTROL ====================

@router.post("/{match_id}/live/{action}")
@limit_writes
def control_live_match(
    request: Request,
    match_id: str,
    action: LiveAction,
    body: Optional[LiveControlRequest] = Body(None),
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    """Start, pause, resume or stop a match. Stopping completes and applies it."""
    current_minute = body.current_minute if body else None
    if action is LiveAction.START:
        match = lifecycle.start(match_id, current_minute)
    elif action is LiveAction.PAUSE:
        match = lifecycle.pause(match_id, current_minute)
    elif action is LiveAction.RESUME:
        match = lifecycle.resume(match_id, current_minute)
    else:
        report = lifecycle.stop(match_id, current_minute)
        match = lifecycle.matches.get(match_id)
        return {"match": match_to_dict(match), "stats": report.to_dict()}
    logger.info(f"Match {match_id} {action.value}: status {match.status}")
    return {"match": match_to_dict(match)}


@router.post("/{match_id}/score")
@limit_writes
def update_score(
    request: Request,
    match_id: str,
    body: ScoreRequest,
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    match = lifecycle.record_score(
        match_id,
        body.home_score,
        body.away_score,
        current_minute=body.current_minute,
        event=body.event,
    )
    return {"match": match_to_dict(match), "current_score": f"{match.home_score}-{match.away_score}"}


# ==================== RESULTS ====================

@router.post("/{match_id}/result")
@limit_writes
def save_result(
    request: Request,
    match_id: str,
    body: ResultRequest,
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    """
    Record a final result.

    A scheduled or live match is completed; an already completed match has
    its old result reverted and the new one applied.
    """
    events = body.events
    match = lifecycle.matches.get(match_id)
    if match.status == MatchStatus.COMPLETED.value:
        report = lifecycle.edit_result(match_id, body.home_score, body.away_score, events)
    else:
        report = lifecycle.complete(match_id, body.home_score, body.away_score, events)
    return {"match": match_to_dict(lifecycle.matches.get(match_id)), "stats": report.to_dict()}


@router.post("/{match_id}/reset")
@limit_writes
def reset_match(
    request: Request,
    match_id: str,
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    report = lifecycle.reset(match_id)
    return {
        "match": match_to_dict(lifecycle.matches.get(match_id)),
        "reverted": report.to_dict() if report else None,
    }


# ==================== SCHEDULING ====================

@router.post("/{match_id}/postpone")
@limit_writes
def postpone_match(
    request: Request,
    match_id: str,
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    return {"match": match_to_dict(lifecycle.postpone(match_id))}


@router.post("/{match_id}/reschedule")
@limit_writes
def reschedule_match(
    request: Request,
    match_id: str,
    body: Optional[RescheduleRequest] = Body(None),
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    match = lifecycle.reschedule(match_id, body.match_date if body else None)
    return {"match": match_to_dict(match)}


@router.post("/{match_id}/cancel")
@limit_writes
def cancel_match(
    request: Request,
    match_id: str,
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    return {"match": match_to_dict(lifecycle.cancel(match_id))}


@router.delete("/{match_id}")
@limit_writes
def delete_match(
    request: Request,
    match_id: str,
    lifecycle: MatchLifecycleService = Depends(get_lifecycle),
) -> Dict:
    report = lifecycle.delete(match_id)
    return {"deleted": True, "match_id": match_id, "reverted": report.to_dict() if report else None}
