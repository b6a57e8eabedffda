"""Shared fixtures: a throwaway SQLite database per test and a wired TestClient."""

from __future__ import annotations

import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from collections.abc import Iterator
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from usage_analytics import models  # noqa: F401
from usage_analytics.database import Base, get_db
from usage_analytics.main import app
from usage_analytics.middleware.rate_limiter import RateLimiter
from usage_analytics.services.authenticator import LastUsedRecorder
from usage_analytics.utils.security import create_access_token


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def session_factory(tmp_path) -> Iterator[sessionmaker]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'analytics.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def recorder(session_factory) -> Iterator[LastUsedRecorder]:
    recorder = LastUsedRecorder(session_factory, max_workers=1)
    yield recorder
    recorder.shutdown(wait_for_pending=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock) -> RateLimiter:
    return RateLimiter(limit=100, window_seconds=60, clock=clock)


@pytest.fixture
def client(session_factory, rate_limiter, recorder) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    previous_limiter = app.state.rate_limiter
    previous_recorder = app.state.usage_recorder
    app.dependency_overrides[get_db] = override_get_db
    app.state.rate_limiter = rate_limiter
    app.state.usage_recorder = recorder
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.rate_limiter = previous_limiter
        app.state.usage_recorder = previous_recorder


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build bearer headers for a caller identity."""

    def _headers(caller_id: str = "owner-1") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(caller_id)}"}

    return _headers


@pytest.fixture
def registered_app(client, auth_headers) -> dict:
    """An app owned by `owner-1` with its first API key."""
    response = client.post(
        "/apps",
        json={"name": "Docs Site", "domain": "docs.example.com"},
        headers=auth_headers("owner-1"),
    )
    assert response.status_code == 200
    return response.json()
