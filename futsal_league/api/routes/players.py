"""
Player API routes.

Provides endpoints for:
- Player profile (career, per-season and per-match statistics)
- Top scorers, career-wide or for one season
- Rebuilding and checking a player's counters against match history

Base path: /api/players
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from futsal_league.api.dependencies import get_stats_service
from futsal_league.api.rate_limit import limit_writes
from futsal_league.services.league.stats_service import StatsService

router = APIRouter(prefix="/api/players", tags=["players"])


@router.get("/top-scorers")
def top_scorers(
    season_id: Optional[str] = Query(None, description="Season to rank (default: career totals)"),
    limit: int = Query(10, ge=1, le=100),
    stats: StatsService = Depends(get_stats_service),
) -> List[Dict]:
    return stats.top_scorers(season_id, limit)


@router.get("/{player_id}")
def get_player(player_id: str, stats: StatsService = Depends(get_stats_service)) -> Dict:
    return stats.player_profile(player_id)


@router.post("/{player_id}/recompute")
@limit_writes
def recompute_player(
    request: Request,
    player_id: str,
    stats: StatsService = Depends(get_stats_service),
) -> Dict:
    """Rebuild career and season counters from match history."""
    return stats.recompute_player_stats(player_id).to_dict()


@router.get("/{player_id}/conservation")
def check_conservation(player_id: str, stats: StatsService = Depends(get_stats_service)) -> Dict:
    """Counters that disagree with the sum of the player's match history."""
    violations = stats.verify_player_conservation(player_id)
    return {"player_id": player_id, "consistent": not violations, "violations": violations}
