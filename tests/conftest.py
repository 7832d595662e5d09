"""Root conftest — shared fixtures for the staff core.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - Time comes from a FakeClock, never the wall clock
    - Emails land in an InMemoryEmailProvider outbox
"""

import os

# Must be set before config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("EMAIL_PROVIDER", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta

import pytest
import pytz

from core.database import create_db_engine, create_session_factory, init_db
from utils.notifications import InMemoryEmailProvider
from utils.session_store import SessionStore
from utils.settings_manager import SettingsRepository
from utils.staff_manager import StaffManager, StaffPolicy
from utils.staff_repository import StaffRepository

START = datetime(2026, 1, 15, 12, 0, 0, tzinfo=pytz.utc)
PASSWORD = "correct horse battery staple"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return StaffRepository(session_factory)


@pytest.fixture
def sessions(session_factory):
    return SessionStore(session_factory, secret_key="test-secret-key")


@pytest.fixture
def settings_repository(session_factory):
    return SettingsRepository(session_factory)


@pytest.fixture
def email_provider():
    return InMemoryEmailProvider()


@pytest.fixture
def make_manager(repository, sessions, email_provider, settings_repository, clock):
    """Build a StaffManager with a custom policy or email provider."""

    def _make(provider=None, **policy_overrides) -> StaffManager:
        return StaffManager(
            repository=repository,
            sessions=sessions,
            email_provider=provider or email_provider,
            settings=settings_repository,
            policy=StaffPolicy(**{
                "allow_email_reuse_after_delete": True,
                "rollback_invite_on_notification_failure": False,
                "block_login_during_reset": False,
                **policy_overrides,
            }),
            clock=clock,
        )

    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def owner(manager):
    return manager.register("Owner", "owner@looped.dev", PASSWORD)


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def last_code(email_provider):
    """Code or token carried by the most recent email."""

    def _last_code(key: str = "code") -> str:
        return email_provider.outbox[-1].template_data[key]

    return _last_code
