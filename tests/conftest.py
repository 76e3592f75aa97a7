"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from techpulse.core.database import init_database, seed_settings
from techpulse.core.models import AppConfig, AuthConfig, RateLimitSettings, UserRole
from techpulse.db.repository import Repository
from techpulse.ratelimit.limiter import RateLimiter
from techpulse.web.app import create_app
from techpulse.web.security import hash_password

ADMIN_PASSWORD = "correct horse battery staple"


class FakeClock:
    """Controllable stand-in for time.time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "techpulse.db")
    init_database(path)
    seed_settings(path)
    return path


@pytest.fixture
def repo(db_path) -> Repository:
    return Repository(db_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_settings() -> RateLimitSettings:
    return RateLimitSettings()


@pytest.fixture
def limiter(repo, clock, rate_settings) -> RateLimiter:
    # rng pinned high so probabilistic cleanup never fires mid-test
    return RateLimiter(repo, rate_settings, clock=clock, rng=lambda: 1.0)


@pytest.fixture(scope="session")
def admin_hash() -> str:
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture
def config(db_path, admin_hash) -> AppConfig:
    return AppConfig(
        db_path=db_path,
        auth=AuthConfig(secret_key="test-secret-key", admin_hash=admin_hash),
    )


@pytest.fixture
def app(config, repo, limiter):
    return create_app(config=config, repo=repo, limiter=limiter)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def _bearer(app, role: UserRole) -> dict[str, str]:
    token = app.state.tokens.issue(f"test-{role.value}", role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(app) -> dict[str, str]:
    return _bearer(app, UserRole.ADMIN)


@pytest.fixture
def publisher_headers(app) -> dict[str, str]:
    return _bearer(app, UserRole.PUBLISHER)


@pytest.fixture
def reader_headers(app) -> dict[str, str]:
    return _bearer(app, UserRole.READER)


@pytest.fixture
def admin_password() -> str:
    return ADMIN_PASSWORD
