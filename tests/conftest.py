"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import certification.db.models  # noqa: F401  register mappers
from certification.core.workflow.models import Actor
from certification.core.workflow.orchestrator import WorkflowOrchestrator
from certification.core.workflow.statuses import ActorRole
from certification.db.base import Base
from certification.db.store import SqlWorkflowStore


class FakeClock:
    """Deterministic clock advancing one minute per reading."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(minutes=1)
        return current


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(session_factory):
    return SqlWorkflowStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def orchestrator(store, clock):
    return WorkflowOrchestrator(store, clock=clock)


@pytest.fixture
def applicant():
    return Actor(id="farmer-1", role=ActorRole.APPLICANT)


@pytest.fixture
def reviewer():
    return Actor(id="reviewer-1", role=ActorRole.REVIEWER)


@pytest.fixture
def auditor():
    return Actor(id="auditor-1", role=ActorRole.AUDITOR)


@pytest.fixture
def admin():
    return Actor(id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def system():
    return Actor(id="system", role=ActorRole.SYSTEM)


@pytest.fixture
def client(store, session_factory, orchestrator):
    """API client wired to the in-memory database."""
    from certification.api import deps
    from certification.api.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_orchestrator] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
