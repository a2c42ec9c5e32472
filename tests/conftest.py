"""Shared pytest fixtures for league-stats-api tests."""
import sys
from pathlib import Path
from datetime import datetime, timedelta
from typing import AsyncGenerator, Generator, Iterable, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from app.models import Base

    # One connection shared by every thread: TestClient runs requests in a
    # worker thread, and each new :memory: connection would be a new database.
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


class LeagueFactory:
    """
    Builds league rows for tests.

    Usage:
        alice = league.player("Alice", position="CB")
        match = league.match(team_a="Red", team_b="Blue", status="completed")
        league.roster(match, [alice], team="Red")
    """

    def __init__(self, db: Session):
        self.db = db
        self._day = datetime(2025, 3, 1, 18, 0)

    def player(self, name: str, position: Optional[str] = None, jersey_number: Optional[int] = None):
        from app.models import Player, UserProfile

        profile = UserProfile(name=name, position=position)
        self.db.add(profile)
        self.db.flush()
        player = Player(user_id=profile.id, jersey_number=jersey_number)
        self.db.add(player)
        self.db.commit()
        return player

    def match(
        self,
        team_a: str = "Red",
        team_b: str = "Blue",
        score_a: int = 0,
        score_b: int = 0,
        status: str = "completed",
        tournament=None,
        round: Optional[str] = None,
        date: Optional[datetime] = None,
    ):
        from app.models import Match, MatchTeam

        if date is None:
            date = self._day
            self._day = self._day + timedelta(days=1)
        match = Match(
            date=date,
            status=status,
            team_a_name=team_a,
            team_b_name=team_b,
            score_team_a=score_a,
            score_team_b=score_b,
            tournament_id=tournament.id if tournament is not None else None,
            round=round,
            created_by="admin-1",
        )
        self.db.add(match)
        self.db.flush()
        self.db.add_all([
            MatchTeam(match_id=match.id, name=team_a, color="#3B82F6"),
            MatchTeam(match_id=match.id, name=team_b, color="#EF4444"),
        ])
        self.db.commit()
        return match

    def roster(self, match, players: Iterable, team: Optional[str] = None, position: Optional[str] = None):
        """Put players on a match roster, optionally on the side named ``team``."""
        from app.models import MatchPlayer

        side = None
        if team is not None:
            side = next(t for t in match.teams if t.name == team)
        entries = []
        for player in players:
            entry = MatchPlayer(
                match_id=match.id,
                player_id=player.id,
                team_id=side.id if side is not None else None,
                position=position,
            )
            self.db.add(entry)
            entries.append(entry)
        self.db.commit()
        return entries

    def stat(self, entry, **values):
        from app.models import Stat

        stat = Stat(match_player_id=entry.id, **values)
        self.db.add(stat)
        self.db.commit()
        return stat

    def event(self, match, event_type: str, **fields):
        """Append a raw (legacy-style) event row."""
        from app.models import MatchEvent

        event = MatchEvent(match_id=match.id, event_type=event_type, **fields)
        self.db.add(event)
        self.db.commit()
        return event

    def tournament(self, team_names: Iterable[str] = (), type: str = "round_robin", **fields):
        from app.models import PersistentTeam, Tournament, TournamentTeam

        tournament = Tournament(name=fields.pop("name", "Spring Cup"), type=type, **fields)
        self.db.add(tournament)
        self.db.flush()
        for offset, name in enumerate(team_names):
            team = PersistentTeam(name=name)
            self.db.add(team)
            self.db.flush()
            self.db.add(TournamentTeam(
                tournament_id=tournament.id,
                team_id=team.id,
                registered_at=datetime(2025, 1, 1) + timedelta(minutes=offset),
            ))
        self.db.commit()
        return tournament

    def team(self, tournament, name: str):
        return next(r.team for r in tournament.registrations if r.team.name == name)


@pytest.fixture
def league(db_session: Session) -> LeagueFactory:
    return LeagueFactory(db_session)


@pytest.fixture
def alice_bob_carl(league: LeagueFactory):
    """
    Completed match with roster Alice, Bob, Carl and the events:
    goal Alice; goal Bob (assist Alice); own goal Carl; yellow card Bob.
    """
    alice = league.player("Alice", position="Forward")
    bob = league.player("Bob", position="Midfielder")
    carl = league.player("Carl", position="CB")
    match = league.match(team_a="Red", team_b="Blue", score_a=2, score_b=1)
    league.roster(match, [alice, bob], team="Red")
    league.roster(match, [carl], team="Blue")
    league.event(match, "goal", scorer="Alice", team="Red", minute=10)
    league.event(match, "goal", scorer="Bob", assist="Alice", team="Red", minute=20)
    league.event(match, "own_goal", scorer="Carl", team="Blue", minute=30)
    league.event(match, "card", player="Bob", card_type="yellow", team="Red", minute=40)
    return {"match": match, "alice": alice, "bob": bob, "carl": carl}


# =============================================================================
# FASTAPI TEST CLIENT FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def test_client(db_session):
    """
    Create FastAPI TestClient with a fresh database for each test.

    Note: We don't use context manager (with TestClient) because it conflicts
    with Prometheus middleware that's added during app module initialization.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/v1/stats/leaderboards")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from app.main import app
    from app.core.database import get_db

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def async_client(db_session: Session) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing FastAPI endpoints."""
    from app.main import app
    from app.core.database import get_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
