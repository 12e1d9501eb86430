"""Shared pytest fixtures for futsal-league-engine tests."""
import os
import sys
from pathlib import Path
from datetime import datetime, timedelta
from typing import AsyncGenerator, Generator, List, Optional

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

MATCH_DURATION = 40
SEASON_START = datetime(2025, 9, 1, 19, 0)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from futsal_league.models import Base

    # StaticPool keeps one connection, so TestClient worker threads see the same data
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


# =============================================================================
# FACTORIES
# =============================================================================

class LeagueFactory:
    """Builds committed league records for tests."""

    def __init__(self, db: Session):
        self.db = db
        self._match_count = 0

    def season(self, name: str = "2025/26", is_active: bool = True):
        from futsal_league.models import Season

        season = Season(name=name, is_active=is_active, start_date=SEASON_START)
        self.db.add(season)
        self.db.commit()
        return season

    def team(self, season, name: str, **stats):
        from futsal_league.models import Team

        team = Team(name=name, season_id=season.id, **stats)
        self.db.add(team)
        self.db.commit()
        return team

    def player(self, name: str, team=None, jersey_number: Optional[int] = None):
        from futsal_league.models import Player

        player = Player(name=name, current_team_id=team.id if team else None, jersey_number=jersey_number)
        self.db.add(player)
        self.db.commit()
        return player

    def match(
        self,
        season,
        home,
        away,
        home_score: int = 0,
        away_score: int = 0,
        status: str = "scheduled",
        events: Optional[List[dict]] = None,
        match_date: Optional[datetime] = None,
    ):
        from futsal_league.models import Match, MatchEvent

        self._match_count += 1
        match = Match(
            season_id=season.id,
            home_team_id=home.id if hasattr(home, "id") else home,
            away_team_id=away.id if hasattr(away, "id") else away,
            match_date=match_date or SEASON_START + timedelta(days=7 * self._match_count),
            status=status,
            home_score=home_score,
            away_score=away_score,
        )
        for position, event in enumerate(events or []):
            match.events.append(MatchEvent(
                position=position,
                type=event["type"],
                side=event["side"],
                player_id=event.get("player_id"),
                minute=event.get("minute", 0),
                administrative=event.get("administrative", False),
                description=event.get("description", ""),
            ))
        self.db.add(match)
        self.db.commit()
        return match

    def completed(self, season, home, away, home_score: int, away_score: int, events=None, **kwargs):
        return self.match(season, home, away, home_score, away_score, status="completed", events=events, **kwargs)

    def fair_play(self, team, points: int, status: str = "active", **kwargs):
        from futsal_league.models import FairPlayRecord

        record = FairPlayRecord(
            team_id=team.id,
            season_id=team.season_id,
            points=points,
            status=status,
            **kwargs,
        )
        self.db.add(record)
        self.db.commit()
        return record


@pytest.fixture
def factory(db_session: Session) -> LeagueFactory:
    return LeagueFactory(db_session)


@pytest.fixture
def make_factory():
    """LeagueFactory constructor, for tests that manage their own sessions."""
    return LeagueFactory


@pytest.fixture
def season(factory):
    return factory.season()


@pytest.fixture
def teams(factory, season):
    """Two teams, A and B, in the active season."""
    return factory.team(season, "Team A"), factory.team(season, "Team B")


@pytest.fixture
def players(factory, teams):
    """Two players per team: (a1, a2, b1, b2)."""
    team_a, team_b = teams
    return (
        factory.player("Alice Alves", team_a, 7),
        factory.player("Andre Amaral", team_a, 9),
        factory.player("Bruno Borges", team_b, 10),
        factory.player("Bea Batista", team_b, 4),
    )


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def applier(db_session: Session):
    from futsal_league.services.league.match_result_applier import MatchResultApplier
    return MatchResultApplier(db_session, MATCH_DURATION)


@pytest.fixture
def stats_service(db_session: Session):
    from futsal_league.services.league.stats_service import StatsService
    return StatsService(db_session, MATCH_DURATION)


@pytest.fixture
def lifecycle(db_session: Session, applier):
    from futsal_league.services.league.match_lifecycle import MatchLifecycleService
    return MatchLifecycleService(db_session, applier)


@pytest.fixture
def standings_service(db_session: Session):
    from futsal_league.services.league.standings_service import StandingsService
    return StandingsService(db_session)


@pytest.fixture
def fair_play_service(db_session: Session):
    from futsal_league.services.league.fair_play_service import FairPlayService
    return FairPlayService(db_session)


# =============================================================================
# HTTP CLIENTS
# =============================================================================

@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient bound to the test session."""
    from futsal_league.main import app
    from futsal_league.core.database import get_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def async_client(db_session: Session) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing FastAPI endpoints."""
    from futsal_league.main import app
    from futsal_league.core.database import get_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
