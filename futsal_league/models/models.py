"""
Database models for the futsal league statistics engine.

Cumulative counters (team stats, player career and season stats) are caches.
The per-match rows they summarise (completed matches for teams,
PlayerMatchHistory for players) are the source of truth, and the stats
service can rebuild every counter from them.

Event and match references to players and teams are plain indexed columns
rather than foreign keys: a player or team may be deleted after a match was
recorded, and the engine treats such dangling references as recoverable.
"""
import uuid
from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Boolean, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base, attribute_keyed_dict

from futsal_league.utils.timezone import utc_now

Base = declarative_base()

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1

# Counters shared by career, season and match-history rows
STAT_FIELDS = (
    "appearances",
    "goals",
    "own_goals",
    "assists",
    "yellow_cards",
    "red_cards",
    "minutes_played",
    "wins",
    "draws",
    "losses",
)

TEAM_STAT_FIELDS = (
    "matches_played",
    "wins",
    "draws",
    "losses",
    "goals_for",
    "goals_against",
    "points",
)


def new_id() -> str:
    return str(uuid.uuid4())


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class MatchResult(str, Enum):
    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"


class FairPlayStatus(str, Enum):
    ACTIVE = "active"
    APPEALED = "appealed"
    OVERTURNED = "overturned"
    REDUCED = "reduced"


FAIR_PLAY_ACTION_TYPES = (
    "violent_conduct",
    "serious_foul_play",
    "offensive_language",
    "dissent_by_word_action",
    "unsporting_behavior",
    "referee_abuse",
    "crowd_trouble",
    "administrative_breach",
    "misconduct_off_field",
    "suspended_player_participated",
    "other",
)


class StatLineMixin:
    """Player counters; every field starts at zero."""

    appearances = Column(Integer, nullable=False, default=0)
    goals = Column(Integer, nullable=False, default=0)
    own_goals = Column(Integer, nullable=False, default=0)
    assists = Column(Integer, nullable=False, default=0)
    yellow_cards = Column(Integer, nullable=False, default=0)
    red_cards = Column(Integer, nullable=False, default=0)
    minutes_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)

    def __init__(self, **kwargs):
        for field in STAT_FIELDS:
            kwargs.setdefault(field, 0)
        super().__init__(**kwargs)

    def stat_line(self) -> dict:
        return {field: getattr(self, field) for field in STAT_FIELDS}


# =============================================================================
# SEASONS AND TEAMS
# =============================================================================

class Season(Base):
    """A league season; exactly one is normally active."""
    __tablename__ = "seasons"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    teams = relationship("Team", back_populates="season")


class Team(Base):
    """
    Team registered for one season, with cumulative table counters.

    goal_difference is always derived from goals_for/goals_against.
    """
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False, index=True)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    matches_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    goals_for = Column(Integer, nullable=False, default=0)
    goals_against = Column(Integer, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    season = relationship("Season", back_populates="teams")

    __table_args__ = (
        UniqueConstraint("season_id", "name", name="uq_teams_season_name"),
    )

    def __init__(self, **kwargs):
        for field in TEAM_STAT_FIELDS:
            kwargs.setdefault(field, 0)
        super().__init__(**kwargs)

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def table_stats(self) -> dict:
        return {field: getattr(self, field) for field in TEAM_STAT_FIELDS}


# =============================================================================
# PLAYERS AND STATISTICS
# =============================================================================

class Player(Base):
    """Registered player with career, per-season and per-match statistics."""
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False, index=True)
    current_team_id = Column(String(36), nullable=True, index=True)
    jersey_number = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    career_stats = relationship(
        "PlayerCareerStats",
        uselist=False,
        back_populates="player",
        cascade="all, delete-orphan",
    )
    # season_id -> PlayerSeasonStats
    season_stats = relationship(
        "PlayerSeasonStats",
        collection_class=attribute_keyed_dict("season_id"),
        back_populates="player",
        cascade="all, delete-orphan",
    )
    match_history = relationship(
        "PlayerMatchHistory",
        order_by="PlayerMatchHistory.match_date",
        back_populates="player",
        cascade="all, delete-orphan",
    )


class PlayerCareerStats(StatLineMixin, Base):
    """Career totals; one row per player."""
    __tablename__ = "player_career_stats"

    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), primary_key=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    player = relationship("Player", back_populates="career_stats")


class PlayerSeasonStats(StatLineMixin, Base):
    """Season bucket keyed by (player, season)."""
    __tablename__ = "player_season_stats"

    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), primary_key=True)
    season_id = Column(String(36), primary_key=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    player = relationship("Player", back_populates="season_stats")


class PlayerMatchHistory(StatLineMixin, Base):
    """
    One player's contribution to one match.

    At most one row per (player, match); appearances is always 1.
    """
    __tablename__ = "player_match_history"

    id = Column(String(36), primary_key=True, default=new_id)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    match_id = Column(String(36), nullable=False, index=True)
    season_id = Column(String(36), nullable=False, index=True)
    team_id = Column(String(36), nullable=False)
    opponent_id = Column(String(36), nullable=False)
    home_team_id = Column(String(36), nullable=False)
    away_team_id = Column(String(36), nullable=False)
    match_date = Column(DateTime, nullable=False)
    side = Column(String(4), nullable=False)  # home, away
    result = Column(String(4), nullable=False)  # win, draw, loss
    created_at = Column(DateTime, nullable=False, default=utc_now)

    player = relationship("Player", back_populates="match_history")

    __table_args__ = (
        UniqueConstraint("player_id", "match_id", name="uq_player_match_history_player_match"),
        Index("ix_player_match_history_player_season", "player_id", "season_id"),
    )


# =============================================================================
# MATCHES
# =============================================================================

class Match(Base):
    """
    Scheduled fixture, its result, its events and the stats guard.

    ``version`` is bumped on every UPDATE of the row and checked in the
    WHERE clause, so two writers racing on ``stats_updated`` cannot both win.
    """
    __tablename__ = "matches"

    id = Column(String(36), primary_key=True, default=new_id)
    home_team_id = Column(String(36), nullable=False, index=True)
    away_team_id = Column(String(36), nullable=False, index=True)
    season_id = Column(String(36), nullable=False, index=True)
    match_date = Column(DateTime, nullable=False, index=True)
    venue = Column(String(200), nullable=False, default="")
    round = Column(String(100), nullable=False, default="Regular Season")
    status = Column(String(20), nullable=False, default=MatchStatus.SCHEDULED.value, index=True)
    home_score = Column(Integer, nullable=False, default=0)
    away_score = Column(Integer, nullable=False, default=0)
    stats_updated = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False)

    # Live control
    current_minute = Column(Integer, nullable=False, default=0)
    is_live = Column(Boolean, nullable=False, default=False)
    started_at = Column(DateTime, nullable=True)
    paused_at = Column(DateTime, nullable=True)
    resumed_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    last_update = Column(DateTime, nullable=True)

    referee = Column(String(100), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    events = relationship(
        "MatchEvent",
        order_by="MatchEvent.position",
        back_populates="match",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_matches_season_status", "season_id", "status"),
    )

    def team_ids(self) -> tuple:
        return self.home_team_id, self.away_team_id


class MatchEvent(Base):
    """Goal, own goal, assist or card recorded against a match."""
    __tablename__ = "match_events"

    id = Column(String(36), primary_key=True, default=new_id)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)
    side = Column(String(4), nullable=False)  # side of the involved player's team
    player_id = Column(String(36), nullable=True, index=True)
    minute = Column(Integer, nullable=False, default=0)
    administrative = Column(Boolean, nullable=False, default=False)
    description = Column(String(500), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utc_now)

    match = relationship("Match", back_populates="events")


# =============================================================================
# FAIR PLAY
# =============================================================================

class FairPlayRecord(Base):
    """
    Disciplinary entry against a team, independent of match events.

    Only ``active`` records count toward standings. ``original_points`` keeps
    the points as first recorded once an appeal reduces them.
    """
    __tablename__ = "fair_play_records"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), nullable=False, index=True)
    season_id = Column(String(36), nullable=False, index=True)
    match_id = Column(String(36), nullable=True)
    player_id = Column(String(36), nullable=True, index=True)
    custom_name = Column(String(100), nullable=True)  # officials and other non-players
    is_official = Column(Boolean, nullable=False, default=False)
    action_type = Column(String(40), nullable=False, default="other")
    points = Column(Integer, nullable=False, default=5)
    original_points = Column(Integer, nullable=True)
    description = Column(String(500), nullable=False, default="")
    reference = Column(String(100), nullable=True)
    action_date = Column(DateTime, nullable=False, default=utc_now)
    status = Column(String(20), nullable=False, default=FairPlayStatus.ACTIVE.value, index=True)
    appeal_date = Column(DateTime, nullable=True)
    appeal_notes = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ix_fair_play_records_team_season", "team_id", "season_id"),
    )

    @property
    def effective_points(self) -> int:
        if self.status == FairPlayStatus.ACTIVE.value:
            return self.points
        return 0
