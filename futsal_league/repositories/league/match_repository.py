"""
Match Repository for fixture and result data access.

Usage:
    repo = MatchRepository(db)
    match = repo.get(match_id)
    applied = repo.find_applied_for_team(team_id, season_id)
"""
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload

from futsal_league.models import Match, MatchEvent, MatchStatus
from futsal_league.repositories.base import BaseRepository
from futsal_league.services.league.events import MatchEventRecord


class MatchRepository(BaseRepository[Match]):
    """Repository for matches and their events."""

    entity_name = "Match"

    def __init__(self, db):
        super().__init__(Match, db)

    def get_for_update(self, match_id: str) -> Match:
        """Load a match with its events, re-reading the row inside the transaction."""
        self.db.flush()
        match = (
            self.db.query(Match)
            .options(selectinload(Match.events))
            .filter(Match.id == match_id)
            .populate_existing()
            .first()
        )
        if match is None:
            return self.get(match_id)
        return match

    # ========================================================================
    # Season / team queries
    # ========================================================================

    def find_completed_by_season(self, season_id: str) -> List[Match]:
        """Completed matches of a season with their events eagerly loaded."""
        return (
            self.db.query(Match)
            .options(selectinload(Match.events))
            .filter(Match.season_id == season_id, Match.status == MatchStatus.COMPLETED.value)
            .order_by(Match.match_date, Match.id)
            .all()
        )

    def count_by_status(self, season_id: str) -> Dict[str, int]:
        """Number of matches per status in a season; statuses with no matches are absent."""
        rows = (
            self.db.query(Match.status, func.count(Match.id))
            .filter(Match.season_id == season_id)
            .group_by(Match.status)
            .all()
        )
        return {status: count for status, count in rows}

    def find_applied_for_team(
        self,
        team_id: str,
        season_id: Optional[str] = None,
        exclude_match_id: Optional[str] = None,
    ) -> List[Match]:
        """
        Completed matches whose deltas are currently applied, for one team.

        These are the source the team's cached counters must agree with.
        """
        query = self.db.query(Match).filter(
            or_(Match.home_team_id == team_id, Match.away_team_id == team_id),
            Match.status == MatchStatus.COMPLETED.value,
            Match.stats_updated.is_(True),
        )
        if season_id:
            query = query.filter(Match.season_id == season_id)
        if exclude_match_id:
            query = query.filter(Match.id != exclude_match_id)
        return query.order_by(Match.match_date).all()

    # ========================================================================
    # Events
    # ========================================================================

    def replace_events(self, match: Match, events: List[MatchEventRecord]) -> None:
        """Replace a match's events with the given records, keeping their order."""
        match.events.clear()
        self.db.flush()
        for position, record in enumerate(events):
            match.events.append(self._event_row(match, position, record))

    def append_event(self, match: Match, record: MatchEventRecord) -> MatchEvent:
        row = self._event_row(match, len(match.events), record)
        match.events.append(row)
        return row

    @staticmethod
    def _event_row(match: Match, position: int, record: MatchEventRecord) -> MatchEvent:
        return MatchEvent(
            match_id=match.id,
            position=position,
            type=record.type.value,
            side=record.side.value,
            player_id=record.player_id,
            minute=record.minute,
            administrative=record.administrative,
            description=record.description,
        )
