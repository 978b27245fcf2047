"""Pytest fixtures for the API and the reminder pipeline.

Tests run against an in-memory SQLite database shared through a StaticPool,
so the request threads of TestClient and the test body see the same data.
The job queue, push provider and image host are replaced with fakes.
"""
import os

os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")
os.environ.setdefault("REMINDER_METRICS_ENABLED", "false")

from datetime import datetime, timezone as dt_timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from expiry_tracker import crud  # noqa: E402
from expiry_tracker.api import deps  # noqa: E402
from expiry_tracker.core.security import create_access_token  # noqa: E402
from expiry_tracker.db.base import Base  # noqa: E402
from expiry_tracker.main import app  # noqa: E402
from expiry_tracker.models.user import Subscription, SubscriptionPlan  # noqa: E402
from expiry_tracker.schemas.user import UserCreate  # noqa: E402
import expiry_tracker.models  # noqa: E402,F401

from tests.fakes import FakeImageHost, FakeJobQueue, FakePushProvider  # noqa: E402

# Fixed "now" for scheduler tests: 2026-10-19 12:00 UTC
FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def queue():
    return FakeJobQueue()


@pytest.fixture()
def push():
    return FakePushProvider()


@pytest.fixture()
def image_host():
    return FakeImageHost()


@pytest.fixture()
def client(session_factory, queue, push, image_host):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_job_queue] = lambda: queue
    app.dependency_overrides[deps.get_push_provider] = lambda: push
    app.dependency_overrides[deps.get_image_host] = lambda: image_host
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make_user(email=None, password="s3cret-pass", is_superuser=False, is_active=True, premium=False):
        counter["n"] += 1
        user = crud.user.create(
            db,
            obj_in=UserCreate(
                email=email or f"user{counter['n']}@example.com",
                password=password,
                first_name="Test",
                last_name="User",
            ),
        )
        user.is_superuser = is_superuser
        user.is_active = is_active
        if premium:
            db.add(Subscription(user_id=user.id, plan=SubscriptionPlan.PREMIUM.value))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def user(make_user):
    return make_user(email="alice@example.com")


@pytest.fixture()
def admin_user(make_user):
    return make_user(email="admin@example.com", is_superuser=True)


def auth_headers_for(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_headers(user):
    return auth_headers_for(user)


@pytest.fixture()
def admin_headers(admin_user):
    return auth_headers_for(admin_user)
