"""
Database models for the league statistics engine.

Usage:
    from futsal_league.models import Match, Team, Player
"""

from futsal_league.models.models import (
    Base,
    Season,
    Team,
    Player,
    PlayerCareerStats,
    PlayerSeasonStats,
    PlayerMatchHistory,
    Match,
    MatchEvent,
    FairPlayRecord,
    MatchStatus,
    MatchResult,
    FairPlayStatus,
    FAIR_PLAY_ACTION_TYPES,
    POINTS_FOR_WIN,
    POINTS_FOR_DRAW,
    STAT_FIELDS,
    TEAM_STAT_FIELDS,
)

__all__ = [
    "Base",
    "Season",
    "Team",
    "Player",
    "PlayerCareerStats",
    "PlayerSeasonStats",
    "PlayerMatchHistory",
    "Match",
    "MatchEvent",
    "FairPlayRecord",
    "MatchStatus",
    "MatchResult",
    "FairPlayStatus",
    "FAIR_PLAY_ACTION_TYPES",
    "POINTS_FOR_WIN",
    "POINTS_FOR_DRAW",
    "STAT_FIELDS",
    "TEAM_STAT_FIELDS",
]
