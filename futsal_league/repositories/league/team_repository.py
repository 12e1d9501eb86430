"""
Team Repository for team and table-counter data access.
"""
from typing import Dict, List

from futsal_league.models import Team, TEAM_STAT_FIELDS
from futsal_league.repositories.base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    """Repository for teams."""

    entity_name = "Team"

    def __init__(self, db):
        super().__init__(Team, db)

    def find_by_season(self, season_id: str) -> List[Team]:
        return self.db.query(Team).filter(Team.season_id == season_id).order_by(Team.name).all()

    @staticmethod
    def write_stats(team: Team, totals: Dict[str, int]) -> None:
        """Overwrite a team's table counters."""
        for name in TEAM_STAT_FIELDS:
            setattr(team, name, totals.get(name, 0))
