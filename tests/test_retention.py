"""Tests for the retention sweeper."""

from datetime import timedelta

from sqlalchemy import insert, select

from assetminder.reminders.config import settings
from assetminder.reminders.models import ScheduledEmailNotification, ScheduledSMSNotification
from assetminder.reminders.retention import sweep_expired_notifications
from tests.conftest import NOW


def _add(db, model, notification_id, status, claimed_days_ago, **contact):
    claimed_at = NOW - timedelta(days=claimed_days_ago) if claimed_days_ago is not None else None
    db.execute(
        insert(model).values(
            id=notification_id,
            owner_id="user-1",
            subject_id="item-1",
            subject_label="Office Suite",
            category="software",
            kind="reminder",
            due_at=NOW - timedelta(days=60),
            reminder_lead_days=7,
            status=status,
            attempt_count=0,
            attempt_limit=3,
            claimed_at=claimed_at,
            **contact,
        )
    )
    db.commit()


def _ids(db, model):
    db.expire_all()
    return sorted(db.execute(select(model.id)).scalars())


class TestSweepExpiredNotifications:
    def test_deletes_only_old_terminal_records(self, db):
        email = {"email": "owner@example.com"}
        _add(db, ScheduledEmailNotification, "old-sent", "sent", 31, **email)
        _add(db, ScheduledEmailNotification, "old-failed", "failed", 45, **email)
        _add(db, ScheduledEmailNotification, "new-sent", "sent", 29, **email)
        _add(db, ScheduledEmailNotification, "old-cancelled", "cancelled", 90, **email)
        _add(db, ScheduledEmailNotification, "old-processing", "processing", 90, **email)
        _add(db, ScheduledEmailNotification, "old-scheduled", "scheduled", None, **email)
        _add(db, ScheduledSMSNotification, "old-sms", "sent", 40, phone="+14155550123")

        result = sweep_expired_notifications(db, now=NOW)

        assert result.deleted == {"push": 0, "email": 2, "sms": 1}
        assert result.total == 3
        assert _ids(db, ScheduledEmailNotification) == [
            "new-sent",
            "old-cancelled",
            "old-processing",
            "old-scheduled",
        ]
        assert _ids(db, ScheduledSMSNotification) == []

    def test_nothing_to_sweep(self, db):
        assert sweep_expired_notifications(db, now=NOW).total == 0

    def test_batches_are_capped_per_run(self, db, monkeypatch):
        monkeypatch.setattr(settings, "RETENTION_BATCH_SIZE", 2)
        monkeypatch.setattr(settings, "RETENTION_MAX_BATCHES", 2)
        for i in range(5):
            _add(db, ScheduledEmailNotification, f"old-{i}", "sent", 40, email="owner@example.com")

        first = sweep_expired_notifications(db, now=NOW)
        second = sweep_expired_notifications(db, now=NOW)

        assert first.deleted["email"] == 4
        assert second.deleted["email"] == 1
        assert _ids(db, ScheduledEmailNotification) == []
