from datetime import timedelta
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from taskmanager.database import create_session_factory, create_tables
from taskmanager.main import create_app
from taskmanager.models import TaskPriority, TaskStatus, UserRole
from taskmanager.notifications import NotificationLog, Notifier
from taskmanager.routers.auth import create_access_token, get_password_hash
from taskmanager.scheduler import DeadlineScheduler
from taskmanager.schemas.task import TaskCreate
from taskmanager.storage import Storage


class FakeMailer:
    """Records every send instead of talking to SendGrid."""

    def __init__(self, fail_for: Tuple[str, ...] = ()) -> None:
        self.sent: List[dict] = []
        self.fail_for = fail_for

    @property
    def enabled(self) -> bool:
        return True

    def send(self, to: str, subject: str, html: str, text: str) -> bool:
        if to in self.fail_for:
            raise RuntimeError(f"transport down for {to}")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return True


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def storage(db) -> Storage:
    return Storage(db)


@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture()
def notification_log() -> NotificationLog:
    return NotificationLog()


@pytest.fixture()
def notifier(notification_log, mailer, session_factory) -> Notifier:
    return Notifier(notification_log, mailer, session_factory=session_factory)


@pytest.fixture()
def scheduler(notifier, session_factory) -> DeadlineScheduler:
    return DeadlineScheduler(notifier, session_factory, interval_seconds=0.01, cleanup_interval_seconds=0.01)


@pytest.fixture()
def app(engine, session_factory, mailer):
    return create_app(
        engine=engine,
        session_factory=session_factory,
        mailer=mailer,
        start_scheduler=False,
        seed=False,
    )


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def make_user(storage):
    def _make(username: str, role: UserRole = UserRole.USER, email: Optional[str] = None):
        return storage.create_user(username, get_password_hash("password123"), role=role, email=email)

    return _make


@pytest.fixture()
def make_task(storage):
    def _make(user, title: str = "Task", **fields):
        fields.setdefault("priority", TaskPriority.MEDIUM)
        fields.setdefault("status", TaskStatus.PENDING)
        return storage.create_task(str(user.id), TaskCreate(title=title, **fields))

    return _make


def _auth_headers(user) -> dict:
    token = create_access_token({"sub": user.username}, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers():
    return _auth_headers


@pytest.fixture()
def alice(make_user):
    return make_user("alice", email="alice@example.com")


@pytest.fixture()
def bob(make_user):
    return make_user("bob", email="bob@example.com")


@pytest.fixture()
def admin(make_user):
    return make_user("root", role=UserRole.ADMIN)
