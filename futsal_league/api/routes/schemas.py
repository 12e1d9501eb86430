"""
Request and response models shared by the league routes.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from futsal_league.services.league.events import EventPayload


class ResultRequest(BaseModel):
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)
    events: List[EventPayload] = Field(default_factory=list)


class ScoreRequest(BaseModel):
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)
    current_minute: Optional[int] = Field(None, ge=0)
    event: Optional[EventPayload] = None


class LiveControlRequest(BaseModel):
    current_minute: Optional[int] = Field(None, ge=0)


class RescheduleRequest(BaseModel):
    match_date: Optional[datetime] = None


class MigrateMinutesRequest(BaseModel):
    minutes: Optional[int] = Field(
        None, ge=1, le=200, description="Must equal MATCH_DURATION_MINUTES when given",
    )


class FairPlayCreateRequest(BaseModel):
    team_id: str
    points: int = Field(5, ge=1, le=100)
    action_type: str = "other"
    season_id: Optional[str] = None
    match_id: Optional[str] = None
    player_id: Optional[str] = None
    custom_name: Optional[str] = None
    is_official: bool = False
    description: str = Field("", max_length=500)
    reference: Optional[str] = None
    action_date: Optional[datetime] = None


class AppealRequest(BaseModel):
    notes: str = Field("", max_length=500)


class ReduceRequest(BaseModel):
    points: int = Field(..., ge=1, le=100)


def match_to_dict(match) -> dict:
    return {
        "id": match.id,
        "season_id": match.season_id,
        "home_team_id": match.home_team_id,
        "away_team_id": match.away_team_id,
        "match_date": match.match_date.isoformat() if match.match_date else None,
        "status": match.status,
        "home_score": match.home_score,
        "away_score": match.away_score,
        "stats_updated": match.stats_updated,
        "live": {
            "is_live": match.is_live,
            "current_minute": match.current_minute,
            "started_at": match.started_at.isoformat() if match.started_at else None,
            "ended_at": match.ended_at.isoformat() if match.ended_at else None,
        },
        "events": [
            {
                "type": e.type,
                "side": e.side,
                "player_id": e.player_id,
                "minute": e.minute,
                "administrative": e.administrative,
                "description": e.description,
            }
            for e in match.events
        ],
    }


def fair_play_to_dict(record) -> dict:
    return {
        "id": record.id,
        "team_id": record.team_id,
        "season_id": record.season_id,
        "match_id": record.match_id,
        "player_id": record.player_id,
        "custom_name": record.custom_name,
        "is_official": record.is_official,
        "action_type": record.action_type,
        "points": record.points,
        "original_points": record.original_points,
        "effective_points": record.effective_points,
        "status": record.status,
        "description": record.description,
        "reference": record.reference,
        "action_date": record.action_date.isoformat() if record.action_date else None,
        "appeal_date": record.appeal_date.isoformat() if record.appeal_date else None,
        "appeal_notes": record.appeal_notes,
    }
