"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from app.config import Settings
from app.core.security import create_access_token, get_password_hash
from app.database import build_engine, build_session_factory
from app.main import create_app
from app.models import Base, User, UserRole
from app.monitoring import realtime_connections, realtime_events_total, realtime_send_failures_total

DEFAULT_PASSWORD = "secret123"


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_realtime_metrics() -> Iterator[None]:
    for metric in (realtime_connections, realtime_events_total, realtime_send_failures_total):
        metric.reset()
    yield
    for metric in (realtime_connections, realtime_events_total, realtime_send_failures_total):
        metric.reset()


@pytest.fixture()
def realtime_caplog(caplog) -> Iterator[pytest.LogCaptureFixture]:
    """``caplog`` that also sees the non-propagating ``huddle.realtime`` logger."""

    logger = logging.getLogger("huddle.realtime")
    logger.addHandler(caplog.handler)
    try:
        yield caplog
    finally:
        logger.removeHandler(caplog.handler)


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        jwt_secret_key="test-secret",
        token_revocation_url=None,
        websocket_keepalive_timeout_seconds=30.0,
        websocket_keepalive_ping_interval_seconds=25.0,
    )


@pytest.fixture()
def test_engine(test_settings) -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = build_engine(test_settings.database_url, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return build_session_factory(test_engine)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def app(test_settings, session_factory) -> FastAPI:
    return create_app(settings=test_settings, session_factory=session_factory)


@pytest.fixture()
def client(app) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient running the application lifespan."""

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_user(session_factory, test_settings):
    """Create a user directly in the database and return ``(user_id, token)``."""

    def factory(username: str, *, role: UserRole = UserRole.USER, **fields: Any) -> tuple[str, str]:
        with session_factory() as session:
            user = User(
                username=username,
                hashed_password=get_password_hash(DEFAULT_PASSWORD),
                role=role,
                **fields,
            )
            session.add(user)
            session.commit()
            user_id = user.id
        return user_id, create_access_token({"sub": user_id}, settings=test_settings)

    return factory



@pytest.fixture()
def published(app, monkeypatch) -> list:
    """Record every event the application broadcasts."""

    registry = app.state.connections
    events: list = []
    original = registry.broadcast

    async def recording_broadcast(event):
        events.append(event)
        return await original(event)

    monkeypatch.setattr(registry, "broadcast", recording_broadcast)
    return events
