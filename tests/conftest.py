from datetime import datetime

import pytest
import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from silni.infra.config import settings
from silni.infra.db.database import Base, get_db
from silni.infra.clock import to_naive_utc
from silni.infra.firebase.fcm import PushGateway, SendOutcome
from silni.domain.notification.models import NotificationHistory  # noqa: F401
from silni.domain.user.models import User, NotificationToken, Interaction  # noqa: F401
from silni.domain.reminder.models import Relative, ReminderSchedule  # noqa: F401
from silni.domain.announcement.models import AdminAnnouncement  # noqa: F401

RIYADH = pytz.timezone("Asia/Riyadh")


def riyadh(*args) -> datetime:
    return RIYADH.localize(datetime(*args))


def stored(value: datetime) -> datetime:
    """Aware test time -> the naive UTC form kept in the database."""
    return to_naive_utc(value)


class FakeTokenProvider:
    def __init__(self, token="test-access-token", error=None):
        self.token = token
        self.error = error
        self.calls = 0

    def get_token(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.token


class FakeSender:
    def __init__(self, failing=(), raising=(), unregistered=()):
        self.failing = set(failing)
        self.raising = set(raising)
        self.unregistered = set(unregistered)
        self.messages = []

    def send(self, message, access_token):
        self.messages.append((message, access_token))
        token = message["token"]
        if token in self.raising:
            raise ConnectionError("connection reset")
        if token in self.unregistered:
            return SendOutcome(ok=False, status_code=404, error="UNREGISTERED", unregistered=True)
        if token in self.failing:
            return SendOutcome(ok=False, status_code=500, error="internal error")
        return SendOutcome(ok=True, status_code=200, message_id=f"projects/silni/messages/{len(self.messages)}")

    @property
    def tokens(self):
        return [message["token"] for message, _ in self.messages]


@pytest.fixture(autouse=True)
def no_send_delay(monkeypatch):
    monkeypatch.setattr(settings, "PUSH_SEND_DELAY_MS", 0)
    monkeypatch.setattr(settings, "STREAK_SEND_DELAY_MS", 0)
    monkeypatch.setattr(settings, "REFERENCE_TIMEZONE", "Asia/Riyadh")


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def gateway(sender, token_provider):
    return PushGateway(sender, token_provider)


@pytest.fixture
def make_user(db):
    def _make_user(user_id, tokens=(), **fields):
        user = User(id=user_id, full_name=fields.pop("full_name", f"User {user_id}"), **fields)
        db.add(user)
        for token, platform in tokens:
            db.add(NotificationToken(user_id=user_id, fcm_token=token, platform=platform, is_active=True))
        db.commit()
        return user
    return _make_user


@pytest.fixture
def app(session_factory, gateway):
    from main import app
    from silni.interface.api.notification import get_gateway_factory

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_factory] = lambda: (lambda: gateway)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app)
