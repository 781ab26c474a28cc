"""Shared fixtures: a fresh database per test, a seeded organization and the services."""

import pytest

from idea_ledger.services import (
    AuditRecorder,
    DashboardAggregator,
    IdeaStore,
    NotificationWriter,
    VoteLedger,
)

from .factories import create_schema, make_engine, make_session_factory, seed_world


@pytest.fixture
async def engine():
    engine = make_engine()
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def world(session):
    return await seed_world(session)


@pytest.fixture
def audit(session_factory):
    return AuditRecorder(session_factory=session_factory, enabled=True)


@pytest.fixture
def notifications(session_factory):
    return NotificationWriter(session_factory=session_factory)


@pytest.fixture
def store(session, audit, notifications):
    return IdeaStore(session, audit=audit, notifications=notifications)


@pytest.fixture
def ledger(session, audit):
    return VoteLedger(session, audit=audit)


@pytest.fixture
def dashboard(session):
    return DashboardAggregator(session)
