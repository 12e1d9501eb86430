"""
Fair Play Repository for disciplinary records.
"""
from typing import List, Optional

from futsal_league.models import FairPlayRecord
from futsal_league.repositories.base import BaseRepository


class FairPlayRepository(BaseRepository[FairPlayRecord]):
    """Repository for fair-play records."""

    entity_name = "FairPlayRecord"

    def __init__(self, db):
        super().__init__(FairPlayRecord, db)

    def find_by_season(self, season_id: str) -> List[FairPlayRecord]:
        return (
            self.db.query(FairPlayRecord)
            .filter(FairPlayRecord.season_id == season_id)
            .order_by(FairPlayRecord.action_date.desc())
            .all()
        )

    def find_by_team(self, team_id: str, season_id: Optional[str] = None) -> List[FairPlayRecord]:
        query = self.db.query(FairPlayRecord).filter(FairPlayRecord.team_id == team_id)
        if season_id:
            query = query.filter(FairPlayRecord.season_id == season_id)
        return query.order_by(FairPlayRecord.action_date.desc()).all()
