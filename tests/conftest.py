"""
Pytest configuration and shared fixtures.
"""
from typing import Callable, List, Optional

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from formd_scout.core.config import reset_settings
from formd_scout.core.pacing import reset_pacing_gate
from formd_scout.core.models import Base
from formd_scout.sources.sec_form_d import models as form_d_models  # noqa: F401

USER_AGENT = "FormD Scout Tests tests@example.com"


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "SEC_USER_AGENT",
        "SEC_RATE_LIMIT_DELAY",
        "MAX_RETRIES",
        "INITIAL_BACKOFF",
        "REQUEST_TIMEOUT",
        "BACKFILL_DAYS",
        "LOG_LEVEL",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    reset_settings()
    reset_pacing_gate()

    yield

    reset_settings()
    reset_pacing_gate()


@pytest.fixture(scope="function")
def test_db():
    """
    Create an in-memory SQLite database for testing.

    Fresh database for each test.
    """
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


class FakeClock:
    """Manual clock; sleeping advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


class RecordingSleep:
    """Async sleep stand-in that only records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


class RecordingTransport:
    """
    httpx.MockTransport wrapper that records every request and serves
    scripted responses in order (the last one repeats).
    """

    def __init__(self, responses: List[Callable[[httpx.Request], httpx.Response]]):
        self.requests: List[httpx.Request] = []
        self._responses = list(responses)
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self._responses) - 1)
        return self._responses[index](request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)


def respond(status_code: int = 200, json: Optional[object] = None, content: bytes = b""):
    """Build a scripted response factory."""

    def _factory(request: httpx.Request) -> httpx.Response:
        if json is not None:
            return httpx.Response(status_code, json=json)
        return httpx.Response(status_code, content=content)

    return _factory


def fail_with(exc_type=httpx.ConnectError, message: str = "connection refused"):
    """Scripted transport failure."""

    def _factory(request: httpx.Request) -> httpx.Response:
        raise exc_type(message, request=request)

    return _factory
