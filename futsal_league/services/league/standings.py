"""
League table ranking.

rank() is a pure function over plain value objects: it replays completed
matches into per-team EnhancedStats (never trusting the cached Team
counters) and orders teams with the tie-break cascade:

    1. points                      (desc)
    2. goal difference             (desc)
    3. goals for                   (desc)
    4. goals against               (asc)
    5. head-to-head points, then head-to-head goal difference
       (pairwise only, and only when the two teams have met)
    6. fair-play points            (asc)
    7. team name                   (asc)

The last step never ties for distinct names, so the order is total.
"""
import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from futsal_league.models.models import FairPlayStatus
from futsal_league.services.league.events import EventSide, EventType, MatchEventRecord, events_of
from futsal_league.services.league.results import team_deltas

logger = logging.getLogger(__name__)

YELLOW_CARD_FAIR_PLAY_POINTS = 1
RED_CARD_FAIR_PLAY_POINTS = 3


# =============================================================================
# INPUTS
# =============================================================================

@dataclass(frozen=True)
class TeamRef:
    id: str
    name: str


@dataclass(frozen=True)
class MatchResultRef:
    """A completed match as the ranker sees it."""
    id: str
    home_team_id: str
    away_team_id: str
    home_score: int
    away_score: int
    events: Tuple[MatchEventRecord, ...] = ()

    @classmethod
    def from_model(cls, match) -> "MatchResultRef":
        return cls(
            id=match.id,
            home_team_id=match.home_team_id,
            away_team_id=match.away_team_id,
            home_score=match.home_score or 0,
            away_score=match.away_score or 0,
            events=tuple(events_of(match)),
        )


@dataclass(frozen=True)
class FairPlayRef:
    team_id: str
    points: int
    status: str = FairPlayStatus.ACTIVE.value

    @property
    def counts(self) -> bool:
        return self.status == FairPlayStatus.ACTIVE.value


# =============================================================================
# DERIVED STATS
# =============================================================================

@dataclass
class HeadToHead:
    """One team's record against one opponent."""
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against


@dataclass
class EnhancedStats:
    team_id: str
    team_name: str
    matches_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0
    fair_play_points: int = 0
    head_to_head: Dict[str, HeadToHead] = field(default_factory=dict)

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def add_result(self, opponent_id: str, delta) -> None:
        self.matches_played += delta.matches_played
        self.wins += delta.wins
        self.draws += delta.draws
        self.losses += delta.losses
        self.points += delta.points
        self.goals_for += delta.goals_for
        self.goals_against += delta.goals_against

        record = self.head_to_head.setdefault(opponent_id, HeadToHead())
        record.points += delta.points
        record.goals_for += delta.goals_for
        record.goals_against += delta.goals_against


@dataclass(frozen=True)
class StandingRow:
    team_id: str
    team_name: str
    rank: int
    points: int
    goal_difference: int
    goals_for: int
    goals_against: int
    fair_play_points: int
    matches_played: int
    wins: int
    draws: int
    losses: int
    # criterion that placed this team below the one ranked directly above it
    decided_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "rank": self.rank,
            "points": self.points,
            "goal_difference": self.goal_difference,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "fair_play_points": self.fair_play_points,
            "matches_played": self.matches_played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "decided_by": self.decided_by,
        }


def card_fair_play_points(event: MatchEventRecord) -> int:
    if event.type is EventType.YELLOW_CARD:
        return YELLOW_CARD_FAIR_PLAY_POINTS
    if event.type is EventType.RED_CARD:
        return RED_CARD_FAIR_PLAY_POINTS
    return 0


def build_enhanced_stats(
    teams: Iterable[TeamRef],
    completed_matches: Iterable[MatchResultRef],
    fair_play_records: Iterable[FairPlayRef] = (),
) -> Dict[str, EnhancedStats]:
    """Replay matches and disciplinary records into per-team stats."""
    stats = {team.id: EnhancedStats(team_id=team.id, team_name=team.name) for team in teams}

    for match in completed_matches:
        if match.home_team_id == match.away_team_id:
            logger.warning(f"Match {match.id} has the same team on both sides; ignored for standings")
            continue
        home_delta, away_delta = team_deltas(match.home_score, match.away_score)
        home = stats.get(match.home_team_id)
        away = stats.get(match.away_team_id)
        if home is not None:
            home.add_result(match.away_team_id, home_delta)
        if away is not None:
            away.add_result(match.home_team_id, away_delta)

        for event in match.events:
            points = card_fair_play_points(event)
            if not points:
                continue
            target = home if event.side is EventSide.HOME else away
            if target is not None:
                target.fair_play_points += points

    for record in fair_play_records:
        target = stats.get(record.team_id)
        if target is not None and record.counts:
            target.fair_play_points += record.points

    return stats


# =============================================================================
# COMPARATOR
# =============================================================================

def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def compare_teams(a: EnhancedStats, b: EnhancedStats) -> Tuple[int, Optional[str]]:
    """
    (-1 | 0 | 1, deciding criterion). Negative means ``a`` ranks higher.

    Returns 0 only when both sides are the same team.
    """
    if a.points != b.points:
        return _sign(b.points - a.points), "points"
    if a.goal_difference != b.goal_difference:
        return _sign(b.goal_difference - a.goal_difference), "goal_difference"
    if a.goals_for != b.goals_for:
        return _sign(b.goals_for - a.goals_for), "goals_for"
    if a.goals_against != b.goals_against:
        return _sign(a.goals_against - b.goals_against), "goals_against"

    a_vs_b = a.head_to_head.get(b.team_id)
    b_vs_a = b.head_to_head.get(a.team_id)
    if a_vs_b is not None and b_vs_a is not None:
        if a_vs_b.points != b_vs_a.points:
            return _sign(b_vs_a.points - a_vs_b.points), "head_to_head_points"
        if a_vs_b.goal_difference != b_vs_a.goal_difference:
            return _sign(b_vs_a.goal_difference - a_vs_b.goal_difference), "head_to_head_goal_difference"

    if a.fair_play_points != b.fair_play_points:
        return _sign(a.fair_play_points - b.fair_play_points), "fair_play_points"

    if a.team_name != b.team_name:
        return (-1 if a.team_name < b.team_name else 1), "name"
    # Same name is a data problem; fall back to id so the order stays total
    if a.team_id != b.team_id:
        return (-1 if a.team_id < b.team_id else 1), "team_id"
    return 0, None


def _cmp(a: EnhancedStats, b: EnhancedStats) -> int:
    return compare_teams(a, b)[0]


def rank(
    teams: Sequence[TeamRef],
    completed_matches: Iterable[MatchResultRef],
    fair_play_records: Iterable[FairPlayRef] = (),
) -> List[StandingRow]:
    """
    Order teams by the tie-break cascade.

    Teams without matches rank with all-zero stats. Input order does not
    affect the result: teams are pre-sorted by name so that cyclic
    head-to-head ties resolve the same way every time.
    """
    stats = build_enhanced_stats(teams, completed_matches, fair_play_records)
    ordered = sorted(
        sorted(stats.values(), key=lambda s: (s.team_name, s.team_id)),
        key=cmp_to_key(_cmp),
    )

    rows = []
    previous = None
    for position, team in enumerate(ordered, start=1):
        decided_by = None
        if previous is not None:
            _, decided_by = compare_teams(previous, team)
            logger.debug(f"{previous.team_name} above {team.team_name} on {decided_by}")
        rows.append(StandingRow(
            team_id=team.team_id,
            team_name=team.team_name,
            rank=position,
            points=team.points,
            goal_difference=team.goal_difference,
            goals_for=team.goals_for,
            goals_against=team.goals_against,
            fair_play_points=team.fair_play_points,
            matches_played=team.matches_played,
            wins=team.wins,
            draws=team.draws,
            losses=team.losses,
            decided_by=decided_by,
        ))
        previous = team
    return rows
