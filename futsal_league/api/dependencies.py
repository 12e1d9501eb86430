"""
FastAPI dependencies wiring request sessions to the engine services.

Every service for one request shares the request's session, so a lifecycle
transition and the apply it triggers are one unit of work.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from futsal_league.core.config import settings
from futsal_league.core.database import get_db
from futsal_league.services.league.fair_play_service import FairPlayService
from futsal_league.services.league.match_lifecycle import MatchLifecycleService
from futsal_league.services.league.match_result_applier import MatchResultApplier
from futsal_league.services.league.standings_service import StandingsService
from futsal_league.services.league.stats_service import StatsService


def get_applier(db: Session = Depends(get_db)) -> MatchResultApplier:
    return MatchResultApplier(db, settings.MATCH_DURATION_MINUTES)


def get_lifecycle(
    db: Session = Depends(get_db),
    applier: MatchResultApplier = Depends(get_applier),
) -> MatchLifecycleService:
    return MatchLifecycleService(db, applier)


def get_stats_service(db: Session = Depends(get_db)) -> StatsService:
    return StatsService(db, settings.MATCH_DURATION_MINUTES)


def get_standings_service(db: Session = Depends(get_db)) -> StandingsService:
    return StandingsService(db)


def get_fair_play_service(db: Session = Depends(get_db)) -> FairPlayService:
    return FairPlayService(db)
