"""
Mapping of engine exceptions to HTTP responses.

    NotFoundError          -> 404
    PreconditionViolation  -> 409
    StatsConflictError     -> 409 (retryable: true)
    invalid input          -> 422
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from futsal_league.core.exceptions import (
    InvalidEventError,
    InvalidFairPlayRecord,
    InvalidScoreError,
    LeagueError,
    NotFoundError,
    PreconditionViolation,
    StatsConflictError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (StatsConflictError, 409),
    (PreconditionViolation, 409),
    (InvalidEventError, 422),
    (InvalidFairPlayRecord, 422),
    (InvalidScoreError, 422),
)


def status_for(exc: LeagueError) -> int:
    for error_cls, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code
    return 400


async def league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}",
        extra={"path": request.url.path, "status": status_code, "code": exc.code},
    )
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INTERNAL_ERROR", "message": "Internal server error", "retryable": False}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LeagueError, league_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
