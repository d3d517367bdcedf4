from typing import Callable, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from courtside.auth import Caller
from courtside.config import Settings
from courtside.database import get_engine
from courtside.main import app
from courtside.models.competition import Competition, CompetitionKind, GameType
from courtside.models.participant import Participant
from courtside.services.competition_service import CompetitionService
from courtside.services.notifications import Event, get_dispatcher
from courtside.services.transaction import TransactionCoordinator

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models are imported in tests/__init__.py before create_all()
# 4. App engine dependency overridden to use test_engine (see client_fixture)
# 5. Tables are dropped after every test so ids and unique keys start clean
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

ADMIN = Caller(user_id="admin-1", role="admin")


class RecordingDispatcher:
    """Collects events instead of delivering them."""

    def __init__(self):
        self.events: List[Event] = []

    def dispatch(self, event: Event) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [e.type for e in self.events]


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on freshly created tables"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return Settings(database_url=TEST_DATABASE_URL)


@pytest.fixture(name="coordinator")
def coordinator_fixture(session: Session, settings: Settings) -> TransactionCoordinator:
    return TransactionCoordinator.for_engine(test_engine, max_attempts=settings.transaction_max_attempts)


@pytest.fixture(name="dispatcher")
def dispatcher_fixture() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture(name="service")
def service_fixture(
    coordinator: TransactionCoordinator, settings: Settings, dispatcher: RecordingDispatcher
) -> CompetitionService:
    return CompetitionService(coordinator, settings, dispatcher)


@pytest.fixture(name="make_competition")
def make_competition_fixture(service: CompetitionService) -> Callable[..., Competition]:
    """Create a competition and register players p1..pN (teams pair p1/p1b, ...)."""

    def _make(
        n: int,
        kind: CompetitionKind = CompetitionKind.league,
        game_type: GameType = GameType.singles,
        club_id: Optional[str] = None,
        auto_playoffs: bool = False,
    ) -> Competition:
        competition = service.create_competition(
            ADMIN, f"{kind.value} of {n}", kind, game_type=game_type, club_id=club_id, auto_playoffs=auto_playoffs
        )
        for i in range(1, n + 1):
            partner = f"p{i}b" if game_type != GameType.singles else None
            service.register_participant(ADMIN, competition.id, f"p{i}", f"Player {i}", partner_player_id=partner)
        return competition

    return _make


@pytest.fixture(name="participants_of")
def participants_of_fixture(service: CompetitionService) -> Callable[[int], List[Participant]]:
    return service.list_participants


@pytest.fixture(name="client")
def client_fixture(session: Session, dispatcher: RecordingDispatcher):
    """Provide a test client with the engine and dispatcher overridden

    Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_engine] = lambda: test_engine
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
