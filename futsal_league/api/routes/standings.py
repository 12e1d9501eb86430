"""
Standings API routes.

Base path: /api/standings
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from futsal_league.api.dependencies import get_standings_service
from futsal_league.services.league.standings_service import StandingsService

router = APIRouter(prefix="/api/standings", tags=["standings"])


@router.get("")
def get_standings(
    season_id: Optional[str] = Query(None, description="Season id (default: the active season)"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    standings: StandingsService = Depends(get_standings_service),
) -> Dict:
    """League table ranked by points, goal difference, goals, head-to-head, fair play and name."""
    rows = standings.compute_standings(season_id, limit)
    return {"count": len(rows), "standings": [row.to_dict() for row in rows]}
