"""
Repository layer for data access.

Usage:
    from futsal_league.repositories import MatchRepository, TeamRepository
    from futsal_league.core.database import SessionLocal

    db = SessionLocal()
    match = MatchRepository(db).get(match_id)
    db.close()
"""

from futsal_league.repositories.base import BaseRepository

from futsal_league.repositories.league.match_repository import MatchRepository
from futsal_league.repositories.league.team_repository import TeamRepository
from futsal_league.repositories.league.player_repository import PlayerRepository
from futsal_league.repositories.league.fair_play_repository import FairPlayRepository
from futsal_league.repositories.league.season_repository import SeasonRepository

__all__ = [
    "BaseRepository",
    "MatchRepository",
    "TeamRepository",
    "PlayerRepository",
    "FairPlayRepository",
    "SeasonRepository",
]
