"""
Base repository class for data access layer.

Repositories keep query logic out of the engine services: the applier,
the stats service and the standings service only talk to the session through
them, which also makes row locking (``FOR UPDATE``) a repository concern.

Example:
    class TeamRepository(BaseRepository[Team]):
        def find_by_season(self, season_id: str) -> List[Team]:
            return self.db.query(Team).filter(Team.season_id == season_id).all()
"""
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, Dict, Iterable

from sqlalchemy.orm import Session

from futsal_league.core.exceptions import NotFoundError

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    #: Name used in NotFoundError messages
    entity_name = "Record"

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # Lookups
    # ========================================================================

    def find_by_id(self, id: str) -> Optional[T]:
        """Find a single record by ID."""
        return self.db.get(self.model_type, id)

    def get(self, id: str) -> T:
        """Find a record by ID or raise NotFoundError."""
        instance = self.find_by_id(id)
        if instance is None:
            raise NotFoundError(self.entity_name, id)
        return instance

    def lock_by_ids(self, ids: Iterable[str]) -> Dict[str, T]:
        """
        Map of id -> record for the ids that exist, row-locked for the rest
        of the transaction.

        Rows are locked in id order so two transactions touching the same
        rows cannot deadlock. Backends without row locks ignore FOR UPDATE.
        """
        ids = sorted({i for i in ids if i})
        if not ids:
            return {}
        self.db.flush()
        rows = (
            self.db.query(self.model_type)
            .filter(self.model_type.id.in_(ids))
            .order_by(self.model_type.id)
            .with_for_update()
            .populate_existing()
            .all()
        )
        return {row.id: row for row in rows}

    # ========================================================================
    # Create / Delete
    # ========================================================================

    def create(self, **kwargs) -> T:
        """Create a new record (not yet committed to database)."""
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        return instance

    def delete(self, instance: T) -> None:
        self.db.delete(instance)

    # ========================================================================
    # Query Builders
    # ========================================================================

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.db.query(self.model_type).filter(*criterion).first()
