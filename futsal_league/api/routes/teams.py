"""
Team API routes.

Provides endpoints for:
- Stored table counters for a team
- Rebuilding a team's table counters from its applied matches (drift repair)
- Fair-play summary for a team

Base path: /api/teams
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from futsal_league.api.dependencies import get_fair_play_service, get_stats_service
from futsal_league.api.rate_limit import limit_writes
from futsal_league.services.league.fair_play_service import FairPlayService
from futsal_league.services.league.stats_service import StatsService

router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.get("/{team_id}")
def get_team(team_id: str, stats: StatsService = Depends(get_stats_service)) -> Dict:
    return stats.team_stats(team_id)


@router.post("/{team_id}/recompute")
@limit_writes
def recompute_team(
    request: Request,
    team_id: str,
    season_id: Optional[str] = Query(None, description="Season to rebuild from (default: the team's season)"),
    stats: StatsService = Depends(get_stats_service),
) -> Dict:
    """
    Rebuild a team's counters from source.

    Drift between stored and rebuilt counters is reported and the rebuilt
    values are persisted.
    """
    return stats.recompute_team_stats(team_id, season_id).to_dict()


@router.get("/{team_id}/fair-play")
def team_fair_play(
    team_id: str,
    season_id: Optional[str] = Query(None),
    fair_play: FairPlayService = Depends(get_fair_play_service),
) -> Dict:
    return fair_play.team_summary(team_id, season_id)
