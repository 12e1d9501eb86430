"""
Pure delta arithmetic for match results.

Nothing here touches the database: the applier and the stats service feed
scores and event records in and write the returned deltas out, so the same
functions produce the incremental update and the rebuild-from-source.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Tuple

from futsal_league.models.models import (
    MatchResult,
    POINTS_FOR_DRAW,
    POINTS_FOR_WIN,
    STAT_FIELDS,
    TEAM_STAT_FIELDS,
)
from futsal_league.services.league.events import EVENT_STAT_FIELD, EventSide, MatchEventRecord

logger = logging.getLogger(__name__)


def outcome_for(goals_for: int, goals_against: int) -> MatchResult:
    if goals_for > goals_against:
        return MatchResult.WIN
    if goals_for < goals_against:
        return MatchResult.LOSS
    return MatchResult.DRAW


def points_for(result: MatchResult) -> int:
    if result is MatchResult.WIN:
        return POINTS_FOR_WIN
    if result is MatchResult.DRAW:
        return POINTS_FOR_DRAW
    return 0


@dataclass(frozen=True)
class TeamDelta:
    """What one completed match adds to one team's table counters."""
    goals_for: int
    goals_against: int
    result: MatchResult
    matches_played: int = 1

    @property
    def wins(self) -> int:
        return int(self.result is MatchResult.WIN)

    @property
    def draws(self) -> int:
        return int(self.result is MatchResult.DRAW)

    @property
    def losses(self) -> int:
        return int(self.result is MatchResult.LOSS)

    @property
    def points(self) -> int:
        return points_for(self.result)

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in TEAM_STAT_FIELDS}


def team_deltas(home_score: int, away_score: int) -> Tuple[TeamDelta, TeamDelta]:
    """(home delta, away delta) for a final score."""
    home_score = home_score or 0
    away_score = away_score or 0
    return (
        TeamDelta(home_score, away_score, outcome_for(home_score, away_score)),
        TeamDelta(away_score, home_score, outcome_for(away_score, home_score)),
    )


def side_result(side: EventSide, home_score: int, away_score: int) -> MatchResult:
    """Match result from the point of view of one side."""
    if side is EventSide.HOME:
        return outcome_for(home_score or 0, away_score or 0)
    return outcome_for(away_score or 0, home_score or 0)


def empty_team_totals() -> Dict[str, int]:
    return {name: 0 for name in TEAM_STAT_FIELDS}


def add_team_delta(totals: Dict[str, int], delta: TeamDelta) -> Dict[str, int]:
    for name, value in delta.as_dict().items():
        totals[name] += value
    return totals


def rebuild_team_totals(team_id: str, matches: Iterable) -> Dict[str, int]:
    """
    Table counters for a team rebuilt from completed matches.

    ``matches`` are objects with home_team_id/away_team_id/home_score/away_score;
    matches the team did not play are ignored.
    """
    totals = empty_team_totals()
    for match in matches:
        home, away = team_deltas(match.home_score, match.away_score)
        if match.home_team_id == team_id:
            add_team_delta(totals, home)
        elif match.away_team_id == team_id:
            add_team_delta(totals, away)
    return totals


# =============================================================================
# PLAYER CONTRIBUTIONS
# =============================================================================

@dataclass
class PlayerContribution:
    """One player's events in one match, grouped."""
    player_id: str
    side: EventSide
    goals: int = 0
    own_goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    event_count: int = 0
    conflicting_sides: set = field(default_factory=set)

    def add(self, event: MatchEventRecord) -> None:
        if event.side is not self.side:
            self.conflicting_sides.add(event.side)
        counter = EVENT_STAT_FIELD[event.type]
        setattr(self, counter, getattr(self, counter) + 1)
        self.event_count += 1

    def stat_delta(self, result: MatchResult, match_duration_minutes: int) -> Dict[str, int]:
        """Stat line added to career, season and history for this match."""
        return {
            "appearances": 1,
            "goals": self.goals,
            "own_goals": self.own_goals,
            "assists": self.assists,
            "yellow_cards": self.yellow_cards,
            "red_cards": self.red_cards,
            "minutes_played": match_duration_minutes,
            "wins": int(result is MatchResult.WIN),
            "draws": int(result is MatchResult.DRAW),
            "losses": int(result is MatchResult.LOSS),
        }


def tally_player_events(events: Iterable[MatchEventRecord]) -> Dict[str, PlayerContribution]:
    """
    Group attributable events by player, in order of first involvement.

    A player's side is the side of their first event; events recorded on the
    other side still count but are flagged on ``conflicting_sides``.
    """
    contributions: Dict[str, PlayerContribution] = {}
    for event in events:
        if not event.attributable:
            continue
        contribution = contributions.get(event.player_id)
        if contribution is None:
            contribution = PlayerContribution(player_id=event.player_id, side=event.side)
            contributions[event.player_id] = contribution
        contribution.add(event)
    return contributions


def empty_stat_line() -> Dict[str, int]:
    return {name: 0 for name in STAT_FIELDS}


def add_stat_line(target, delta: Mapping[str, int]) -> None:
    """Increment a stat-line model (career, season or history row) in place."""
    for name in STAT_FIELDS:
        setattr(target, name, (getattr(target, name) or 0) + delta.get(name, 0))


def subtract_stat_line(target, delta: Mapping[str, int]) -> Optional[Dict[str, int]]:
    """
    Decrement a stat-line model in place, flooring every counter at zero.

    Returns the counters that would have gone negative (the amount clipped),
    or None when nothing was clipped.
    """
    clipped = {}
    for name in STAT_FIELDS:
        current = getattr(target, name) or 0
        remaining = current - delta.get(name, 0)
        if remaining < 0:
            clipped[name] = -remaining
            remaining = 0
        setattr(target, name, remaining)
    return clipped or None


def sum_stat_lines(rows: Iterable) -> Dict[str, int]:
    totals = empty_stat_line()
    for row in rows:
        for name in STAT_FIELDS:
            totals[name] += getattr(row, name) or 0
    return totals
