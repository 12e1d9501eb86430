"""
Standings Service - loads a season snapshot and ranks it.

All reads for one computation happen inside a single transaction so a match
cannot be counted for one team and missing for its opponent. The session is
not written to.
"""
import logging
import time
from typing import List, Optional

from sqlalchemy.orm import Session

from futsal_league.core import metrics
from futsal_league.repositories.league import (
    FairPlayRepository,
    MatchRepository,
    SeasonRepository,
    TeamRepository,
)
from futsal_league.services.league.standings import (
    FairPlayRef,
    MatchResultRef,
    StandingRow,
    TeamRef,
    rank,
)

logger = logging.getLogger(__name__)


class StandingsService:
    """League table for a season."""

    def __init__(self, db: Session):
        self.db = db
        self.seasons = SeasonRepository(db)
        self.teams = TeamRepository(db)
        self.matches = MatchRepository(db)
        self.fair_play = FairPlayRepository(db)

    def compute_standings(self, season_id: Optional[str] = None, limit: Optional[int] = None) -> List[StandingRow]:
        """
        Ranked table for a season (the active season when none is given).

        Raises:
            NotFoundError: the season does not exist, or none is active
        """
        started = time.perf_counter()
        owns_transaction = not self.db.in_transaction()
        if owns_transaction:
            self._begin_snapshot()
        try:
            season = self.seasons.resolve(season_id)
            season_ref = (season.id, season.name)
            teams = [TeamRef(id=t.id, name=t.name) for t in self.teams.find_by_season(season.id)]
            matches = [MatchResultRef.from_model(m) for m in self.matches.find_completed_by_season(season.id)]
            records = [
                FairPlayRef(team_id=r.team_id, points=r.points, status=r.status)
                for r in self.fair_play.find_by_season(season.id)
            ]
        finally:
            if owns_transaction:
                self.db.rollback()

        rows = rank(teams, matches, records)
        if limit is not None:
            rows = rows[:max(limit, 0)]

        elapsed = time.perf_counter() - started
        metrics.standings_computation_seconds.observe(elapsed)
        logger.info(
            f"Standings for season {season_ref[1]}: {len(teams)} teams, {len(matches)} completed matches "
            f"in {elapsed * 1000:.1f}ms",
            extra={"season_id": season_ref[0]},
        )
        return rows

    def _begin_snapshot(self) -> None:
        # SQLite transactions are already serializable
        if self.db.get_bind().dialect.name != "sqlite":
            self.db.connection(execution_options={"isolation_level": "REPEATABLE READ"})
