"""
Fair-play API routes.

Provides endpoints for:
- Recording disciplinary actions against teams
- The appeal workflow (appeal, reduce, overturn, reinstate)

Base path: /api/fair-play
"""
from typing import Dict

from fastapi import APIRouter, Depends, Request

from futsal_league.api.dependencies import get_fair_play_service
from futsal_league.api.rate_limit import limit_writes
from futsal_league.api.routes.schemas import (
    AppealRequest,
    FairPlayCreateRequest,
    ReduceRequest,
    fair_play_to_dict,
)
from futsal_league.services.league.fair_play_service import FairPlayService

router = APIRouter(prefix="/api/fair-play", tags=["fair-play"])


@router.post("", status_code=201)
@limit_writes
def create_record(
    request: Request,
    body: FairPlayCreateRequest,
    fair_play: FairPlayService = Depends(get_fair_play_service),
) -> Dict:
    return fair_play_to_dict(fair_play.create(**body.model_dump()))


@router.post("/{record_id}/appeal")
@limit_writes
def appeal_record(
    request: Request,
    record_id: str,
    body: AppealRequest,
    fair_play: FairPlayService = Depends(get_fair_play_service),
) -> Dict:
    return fair_play_to_dict(fair_play.appeal(record_id, body.notes))


@router.post("/{record_id}/reduce")
@limit_writes
def reduce_record(
    request: Request,
    record_id: str,
    body: ReduceRequest,
    fair_play: FairPlayService = Depends(get_fair_play_service),
) -> Dict:
    return fair_play_to_dict(fair_play.reduce(record_id, body.points))


@router.post("/{record_id}/overturn")
@limit_writes
def overturn_record(
    request: Request,
    record_id: str,
    fair_play: FairPlayService = Depends(get_fair_play_service),
) -> Dict:
    return fair_play_to_dict(fair_play.overturn(record_id))


@router.post("/{record_id}/reinstate")
@limit_writes
def reinstate_record(
    request: Request,
    record_id: str,
    fair_play: FairPlayService = Depends(get_fair_play_service),
) -> Dict:
    return fair_play_to_dict(fair_play.reinstate(record_id))
