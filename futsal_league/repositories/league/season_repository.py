"""
Season Repository.
"""
from typing import Optional

from futsal_league.core.exceptions import NotFoundError
from futsal_league.models import Season
from futsal_league.repositories.base import BaseRepository


class SeasonRepository(BaseRepository[Season]):
    """Repository for seasons."""

    entity_name = "Season"

    def __init__(self, db):
        super().__init__(Season, db)

    def find_active(self) -> Optional[Season]:
        return self.where_first(Season.is_active.is_(True))

    def resolve(self, season_id: Optional[str] = None) -> Season:
        """The given season, or the active one when no id is given."""
        if season_id:
            return self.get(season_id)
        season = self.find_active()
        if season is None:
            raise NotFoundError("Season", "active")
        return season
