"""Tests for the reminder service entry points (fan-out, cancel, list, test)."""

from datetime import timedelta

import pytest

from assetminder.reminders.channels import Channel
from assetminder.reminders.dispatcher import process_due_notifications
from assetminder.reminders.errors import ReminderValidationError
from assetminder.reminders.models import (
    ScheduledEmailNotification,
    ScheduledPushNotification,
    ScheduledSMSNotification,
)
from assetminder.reminders.schemas import ChannelPreferences, ContactDetails, ReminderRequest
from assetminder.reminders.service import ReminderService
from assetminder.utils.timezone import to_utc_aware
from tests.conftest import NOW, reload

MODELS = {
    "push": ScheduledPushNotification,
    "email": ScheduledEmailNotification,
    "sms": ScheduledSMSNotification,
}


def _request(**overrides):
    values = {
        "owner_id": "user-1",
        "subject_id": "item-1",
        "subject_label": "Laptop Warranty",
        "category": "hardware",
        "due_at": NOW + timedelta(days=30),
        "preferences": ChannelPreferences(push=True, email=True, sms=True),
        "contacts": ContactDetails(tokens=["tok-1"], email="owner@example.com", phone="+14155550123"),
    }
    values.update(overrides)
    return ReminderRequest(**values)


class TestRequestReminder:
    def test_one_record_per_eligible_channel(self, db):
        result = ReminderService(db).request_reminder(_request(), now=NOW)

        assert result.success is True
        assert set(result.scheduled_ids) == {"push", "email", "sms"}
        assert result.failures == {}
        assert result.message == "Notifications scheduled for Laptop Warranty"
        for channel, notification_id in result.scheduled_ids.items():
            assert reload(db, MODELS[channel], notification_id).status == "scheduled"

    def test_disabled_or_contactless_channels_are_skipped(self, db):
        request = _request(
            preferences=ChannelPreferences(push=True, email=True, sms=False),
            contacts=ContactDetails(tokens=[], email="owner@example.com", phone="+14155550123"),
        )

        result = ReminderService(db).request_reminder(request, now=NOW)

        assert list(result.scheduled_ids) == ["email"]

    def test_default_preferences_are_email_only(self, db):
        result = ReminderService(db).request_reminder(_request(preferences=None), now=NOW)

        assert list(result.scheduled_ids) == ["email"]

    @pytest.mark.parametrize(
        "preferences, contacts",
        [
            (ChannelPreferences(push=False, email=False, sms=False), ContactDetails(email="owner@example.com")),
            (ChannelPreferences(push=True, email=True, sms=True), ContactDetails()),
            (ChannelPreferences(push=True, email=False, sms=False), ContactDetails(tokens=["  "])),
            (ChannelPreferences(), None),
        ],
    )
    def test_no_eligible_channel(self, db, preferences, contacts):
        with pytest.raises(ReminderValidationError, match="No valid notification preferences"):
            ReminderService(db).request_reminder(_request(preferences=preferences, contacts=contacts), now=NOW)

        assert ReminderService(db).list_notifications("user-1").count == 0

    def test_past_due_rejected_before_any_channel(self, db):
        with pytest.raises(ReminderValidationError, match="future"):
            ReminderService(db).request_reminder(_request(due_at=NOW - timedelta(minutes=1)), now=NOW)

        assert ReminderService(db).list_notifications("user-1").count == 0

    def test_partial_success_reports_failed_channel(self, db):
        request = _request(
            contacts=ContactDetails(tokens=["tok-1"], email="owner@example.com", phone="555-0123"),
        )

        result = ReminderService(db).request_reminder(request, now=NOW)

        assert set(result.scheduled_ids) == {"push", "email"}
        assert "E.164" in result.failures["sms"]

    def test_every_channel_failing_is_a_validation_error(self, db):
        request = _request(
            preferences=ChannelPreferences(push=False, email=True, sms=True),
            contacts=ContactDetails(email="nope", phone="555-0123"),
        )

        with pytest.raises(ReminderValidationError, match="No notifications could be scheduled"):
            ReminderService(db).request_reminder(request, now=NOW)


class TestCancelReminder:
    def test_cancels_and_reports_count(self, db):
        ReminderService(db).request_reminder(_request(), now=NOW)

        result = ReminderService(db).cancel_reminder("item-1")

        assert result.cancelled_count == 3
        assert result.message == "Cancelled 3 notifications for item"
        assert ReminderService(db).cancel_reminder("item-1").cancelled_count == 0

    def test_subject_id_required(self, db):
        with pytest.raises(ReminderValidationError):
            ReminderService(db).cancel_reminder("")


class TestListNotifications:
    def test_merges_channels_latest_due_first(self, db):
        service = ReminderService(db)
        service.request_reminder(
            _request(
                subject_id="item-1",
                due_at=NOW + timedelta(days=10),
                preferences=ChannelPreferences(push=True, email=False, sms=False),
            ),
            now=NOW,
        )
        service.request_reminder(
            _request(
                subject_id="item-2",
                due_at=NOW + timedelta(days=20),
                preferences=ChannelPreferences(push=False, email=True, sms=False),
            ),
            now=NOW,
        )
        service.request_reminder(
            _request(
                subject_id="item-3",
                due_at=NOW + timedelta(days=5),
                preferences=ChannelPreferences(push=False, email=False, sms=True),
            ),
            now=NOW,
        )
        service.request_reminder(_request(owner_id="user-2"), now=NOW)

        result = service.list_notifications("user-1")

        assert result.count == 3
        assert [(n.channel, n.subject_id) for n in result.notifications] == [
            ("email", "item-2"),
            ("push", "item-1"),
            ("sms", "item-3"),
        ]
        assert result.notifications[1].contact == ["tok-1"]

    def test_status_filter_and_limit(self, db):
        service = ReminderService(db)
        for i in range(3):
            service.request_reminder(
                _request(subject_id=f"item-{i}", due_at=NOW + timedelta(days=i + 1)), now=NOW
            )
        service.cancel_reminder("item-0")

        cancelled = service.list_notifications("user-1", status="cancelled")
        limited = service.list_notifications("user-1", limit=4)

        assert cancelled.count == 3
        assert {n.subject_id for n in cancelled.notifications} == {"item-0"}
        assert limited.count == 4
        assert all(n.subject_id == "item-2" for n in limited.notifications[:3])


class TestSendTestNotification:
    def test_schedules_two_minutes_out_on_every_contact(self, db):
        result = ReminderService(db).send_test_notification(
            "user-1",
            "Test Item",
            ContactDetails(tokens=["tok-1"], email="owner@example.com"),
            now=NOW,
        )

        assert set(result.scheduled_ids) == {"push", "email"}
        assert result.scheduled_time == NOW + timedelta(minutes=2)
        assert result.message == "Test notifications scheduled for 2 minutes from now"
        record = reload(db, ScheduledEmailNotification, result.scheduled_ids["email"])
        assert record.category == "test"
        assert record.kind == "test_notification"
        assert record.subject_id == f"test-{int(NOW.timestamp() * 1000)}"

    def test_requires_a_contact(self, db):
        with pytest.raises(ReminderValidationError, match="No contact details"):
            ReminderService(db).send_test_notification("user-1", "Test Item", ContactDetails())


class TestEndToEnd:
    def test_push_and_email_reminder_is_delivered_and_listed(self, db, fake_senders):
        service = ReminderService(db)
        request = _request(
            due_at=NOW + timedelta(minutes=1),
            preferences=ChannelPreferences(push=True, email=True, sms=False),
        )

        scheduled = service.request_reminder(request, now=NOW)
        later = NOW + timedelta(minutes=2)
        for channel in (Channel.PUSH, Channel.EMAIL):
            result = process_due_notifications(db, channel, fake_senders[channel], now=later)
            assert result.successful == 1

        listed = service.list_notifications("user-1")
        assert {n.channel: n.id for n in listed.notifications} == scheduled.scheduled_ids
        assert all(n.status == "sent" for n in listed.notifications)
        assert all(to_utc_aware(n.sent_at) == later for n in listed.notifications)
        assert fake_senders[Channel.PUSH].contacts == ["tok-1"]
        assert fake_senders[Channel.EMAIL].contacts == ["owner@example.com"]
        assert all(to_utc_aware(n.last_attempt_at) == later for n in listed.notifications)

    def test_failed_attempt_is_listed_with_its_time(self, db, fake_senders):
        service = ReminderService(db)
        request = _request(
            due_at=NOW + timedelta(minutes=1),
            preferences=ChannelPreferences(push=False, email=False, sms=True),
        )
        service.request_reminder(request, now=NOW)
        fake_senders[Channel.SMS].outcome = False
        later = NOW + timedelta(minutes=2)

        process_due_notifications(db, Channel.SMS, fake_senders[Channel.SMS], now=later)

        (listed,) = service.list_notifications("user-1").notifications
        assert listed.status == "scheduled"
        assert listed.attempt_count == 1
        assert to_utc_aware(listed.last_attempt_at) == later
        assert listed.sent_at is None

    def test_unattempted_notification_has_no_attempt_time(self, db):
        service = ReminderService(db)
        service.request_reminder(_request(), now=NOW)

        listed = service.list_notifications("user-1").notifications

        assert listed
        assert all(n.last_attempt_at is None for n in listed)
