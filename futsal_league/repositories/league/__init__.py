"""
League repository module.

This module contains the repositories the statistics engine reads and writes
through.
"""

from futsal_league.repositories.league.match_repository import MatchRepository
from futsal_league.repositories.league.team_repository import TeamRepository
from futsal_league.repositories.league.player_repository import PlayerRepository
from futsal_league.repositories.league.fair_play_repository import FairPlayRepository
from futsal_league.repositories.league.season_repository import SeasonRepository

__all__ = [
    "MatchRepository",
    "TeamRepository",
    "PlayerRepository",
    "FairPlayRepository",
    "SeasonRepository",
]
