import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REQUIRE_EMAIL_VERIFICATION", "true")

from datetime import datetime  # noqa: E402
from typing import Dict, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from ladder.database import get_session  # noqa: E402
from ladder.main import app  # noqa: E402
from ladder.models.ladder import Ladder  # noqa: E402
from ladder.models.user import User  # noqa: E402
from ladder.services.auth_service import create_access_token, get_password_hash  # noqa: E402
from ladder.services.notifications import NotificationEvent, NotifyResult, get_notifier  # noqa: E402
from ladder.utils.clock import get_now  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# Sunday 1 June 2025, 12:00 UTC. The week under test starts Monday 2 June.
FIXED_NOW = datetime(2025, 6, 1, 12, 0)
WEEK_START = "2025-06-02T00:00:00Z"
LADDER_END = datetime(2025, 12, 31)
PASSWORD = "password123"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables dropped and recreated per test (see session_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


class RecordingNotifier:
    """Stands in for Notifier: records events instead of emailing or texting."""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> NotifyResult:
        self.events.append(event)
        return NotifyResult(ok=True, delivered=len(event.recipients))

    def dispatch(self, event: NotificationEvent) -> None:
        self.notify(event)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Fresh tables for every test."""
    import ladder.models  # noqa: F401

    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="notifier")
def notifier_fixture():
    return RecordingNotifier()


@pytest.fixture(name="client")
def client_fixture(session: Session, notifier: RecordingNotifier):
    """Test client with the session, clock and notifier overridden.

    Overrides are set BEFORE TestClient() and cleared only after it exits.
    """
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def password_hash() -> str:
    return get_password_hash(PASSWORD)


@pytest.fixture(name="ladder")
def ladder_fixture(session: Session) -> Ladder:
    ladder = Ladder(name="Ladder 1", number=1, end_date=LADDER_END)
    session.add(ladder)
    session.commit()
    session.refresh(ladder)
    return ladder


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session, password_hash: str):
    """Factory: make_user("a@example.com", ladder=..., partner=..., phone=...)."""

    def _make(email, ladder=None, partner=None, name=None, phone=None, verified=True, **fields):
        user = User(
            email=email,
            name=name,
            phone=phone,
            password_hash=password_hash,
            ladder_id=ladder.id if ladder else None,
            email_verified=verified,
            **fields,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        if partner is not None:
            link(session, user, partner)
        return user

    return _make


def link(session: Session, a: User, b: User) -> None:
    a.partner_id = b.id
    b.partner_id = a.id
    session.add(a)
    session.add(b)
    session.commit()
    session.refresh(a)
    session.refresh(b)


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    """Factory: auth_headers(user) -> Bearer header for that user."""

    def _headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers
