"""
Shared fixtures: a throwaway SQLite file per test, a controllable clock,
the service objects wired to both, and a TestClient with the same wiring.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from accounts.auth.reset import ResetTokenService
from accounts.auth.service import IdentityResolver
from accounts.billing.service import EntitlementEngine
from accounts.main import app
from accounts.sessions.issuer import SessionIssuer
from accounts.shared.config import settings
from accounts.shared.db import get_clock, get_sessions, init_store, make_session_factory
from accounts.shared.mailer import get_reset_sender


class Clock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    # cheapest cost bcrypt accepts; keeps the suite quick
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def clock():
    # anchored to real time so session tokens pass expiry checks
    return Clock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def sessions(tmp_path):
    factory = make_session_factory(f"sqlite:///{(tmp_path / 'accounts.db').as_posix()}")
    init_store(factory)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def resolver(sessions, clock):
    return IdentityResolver(sessions, clock)


@pytest.fixture
def resets(sessions, clock):
    return ResetTokenService(sessions, clock)


@pytest.fixture
def billing(sessions, clock):
    return EntitlementEngine(sessions, clock)


@pytest.fixture
def issuer(sessions, clock, resolver, billing):
    return SessionIssuer(sessions, clock, resolver=resolver, engine=billing)


@pytest.fixture
def bridge(monkeypatch):
    """Headers the trusted provider front end sends to /auth/oauth."""
    monkeypatch.setattr(settings, "OAUTH_BRIDGE_SECRET", "bridge-secret")
    return {"X-Provider-Bridge-Secret": "bridge-secret"}


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def client(sessions, clock, outbox):
    app.dependency_overrides[get_sessions] = lambda: sessions
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_reset_sender] = lambda: (lambda email, link: outbox.append((email, link)))
    yield TestClient(app)
    app.dependency_overrides.clear()
