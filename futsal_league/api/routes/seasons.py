"""
Season API routes.

Provides endpoints for:
- Season summary (match counts, goals, top scorers)
- Season-wide reconciliation of team and player statistics
- Migrating minutes played to the configured match length

Base path: /api/seasons
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from futsal_league.api.dependencies import get_stats_service
from futsal_league.api.rate_limit import limit_writes
from futsal_league.api.routes.schemas import MigrateMinutesRequest
from futsal_league.services.league.stats_service import StatsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/seasons", tags=["seasons"])


@router.get("/summary")
def season_summary(
    season_id: Optional[str] = Query(None, description="Season to summarise (default: the active season)"),
    top: int = Query(5, ge=0, le=50, description="Number of top scorers to include"),
    stats: StatsService = Depends(get_stats_service),
) -> Dict:
    """Match counts by status, goal totals and the season's top scorers."""
    return stats.season_summary(season_id, top)


@router.post("/{season_id}/rebuild")
@limit_writes
def rebuild_season(
    request: Request,
    season_id: str,
    stats: StatsService = Depends(get_stats_service),
) -> Dict:
    return stats.rebuild_season(season_id).to_dict()


@router.post("/migrate-minutes")
@limit_writes
def migrate_minutes(
    request: Request,
    body: MigrateMinutesRequest,
    stats: StatsService = Depends(get_stats_service),
) -> Dict:
    """
    Rewrite minutes played across all match history to MATCH_DURATION_MINUTES.

    Change the setting first; a ``minutes`` that differs from it is a 409.
    """
    changed = stats.migrate_match_duration(body.minutes)
    return {"minutes": stats.match_duration_minutes, "history_entries_updated": changed}
