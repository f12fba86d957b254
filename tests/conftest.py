"""Pytest fixtures for the reminder engine tests.

Every test gets a fresh in-memory SQLite database shared across threads
through a StaticPool, plus fake channel senders so nothing leaves the
process.
"""

import os

# Must be set before any assetminder module loads its settings
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
os.environ["REQUIRE_API_KEY"] = "true"
os.environ["VALID_API_KEYS"] = '["test-key"]'
os.environ["DEFAULT_TIMEZONE"] = "UTC"

import threading
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from assetminder.db.base import Base
from assetminder.db.session import get_db
from assetminder.reminders import models  # noqa: F401
from assetminder.reminders.channels import Channel
from assetminder.reminders.scheduler import NotificationIntent, schedule_notification


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeSender:
    """Records every send; the outcome per contact comes from ``outcome``.

    ``outcome`` may be a bool, an exception instance to raise, or a callable
    taking the contact and returning either.
    """

    def __init__(self, channel: Channel, outcome=True):
        self.channel = channel
        self.outcome = outcome
        self.calls = []
        self._lock = threading.Lock()

    def send(self, contact, category, subject_label, due_at, lead_days, kind="reminder"):
        with self._lock:
            self.calls.append(
                {
                    "contact": contact,
                    "category": category,
                    "subject_label": subject_label,
                    "due_at": due_at,
                    "lead_days": lead_days,
                    "kind": kind,
                }
            )
        result = self.outcome(contact) if callable(self.outcome) else self.outcome
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def contacts(self):
        return sorted(call["contact"] for call in self.calls)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_senders():
    return {channel: FakeSender(channel) for channel in Channel}


@pytest.fixture
def schedule(db):
    """Schedule a notification as of ``NOW``; due an hour later unless told otherwise."""

    def _schedule(channel, contact, **overrides):
        values = {
            "owner_id": "user-1",
            "subject_id": "item-1",
            "subject_label": "Laptop Warranty",
            "due_at": NOW + timedelta(hours=1),
            "contact": contact,
            "category": "hardware",
        }
        values.update(overrides)
        return schedule_notification(db, channel, NotificationIntent(**values), now=NOW)

    return _schedule


def reload(db, model, notification_id):
    """Re-read a row, dropping anything bulk updates left stale in the session."""
    db.expire_all()
    return db.get(model, notification_id)


@pytest.fixture
def client(engine):
    from assetminder.main import app

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, headers={"X-API-Key": "test-key"}) as test_client:
        yield test_client
    app.dependency_overrides.clear()
