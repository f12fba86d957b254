"""
Reminder service - the entry points the HTTP layer calls.

Fans a single reminder request out to every eligible channel, cancels by
item, lists a user's notifications across channels and schedules test
notifications.
"""
from dataclasses import replace
from datetime import datetime, timedelta
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from assetminder.utils.timezone import to_utc_aware, utc_now
from .cancellation import cancel_notifications
from .channels import CHANNELS, Channel
from .config import settings
from .errors import ReminderValidationError
from .repository import list_notifications as repo_list_notifications
from .scheduler import NotificationIntent, check_intent_fields, schedule_notification
from .schemas import (
    CancelResponse,
    ChannelPreferences,
    ContactDetails,
    NotificationList,
    NotificationRead,
    ReminderRequest,
    ReminderScheduleResponse,
    TestNotificationResponse,
)

logger = logging.getLogger(__name__)


def _eligible_contacts(
    contacts: Optional[ContactDetails],
    preferences: Optional[ChannelPreferences] = None,
) -> List[Tuple[Channel, object]]:
    """Channels the user opted into and gave a non-empty contact for.

    With no preferences every channel with a contact is eligible.
    """
    if contacts is None:
        return []
    candidates = [
        (Channel.PUSH, contacts.tokens, preferences.push if preferences else True),
        (Channel.EMAIL, contacts.email, preferences.email if preferences else True),
        (Channel.SMS, contacts.phone, preferences.sms if preferences else True),
    ]
    eligible = []
    for channel, contact, enabled in candidates:
        if not enabled:
            continue
        if isinstance(contact, str):
            contact = contact.strip()
        elif contact:
            contact = [token for token in contact if token and token.strip()]
        if contact:
            eligible.append((channel, contact))
    return eligible


class ReminderService:
    """Reminder operations over one database session"""

    def __init__(self, db: Session):
        self.db = db

    def _fan_out(
        self,
        base: NotificationIntent,
        eligible: List[Tuple[Channel, object]],
        now: datetime,
    ) -> Tuple[Dict[str, str], Dict[str, str]]:
        scheduled_ids: Dict[str, str] = {}
        failures: Dict[str, str] = {}
        for channel, contact in eligible:
            try:
                scheduled_ids[channel.value] = schedule_notification(
                    self.db, channel, replace(base, contact=contact), now=now
                )
            except ReminderValidationError as e:
                failures[channel.value] = str(e)
                logger.warning(f"[Reminders] {channel.value} not scheduled for {base.subject_label}: {e}")

        if not scheduled_ids:
            detail = "; ".join(f"{name}: {error}" for name, error in failures.items())
            raise ReminderValidationError(f"No notifications could be scheduled ({detail})")
        return scheduled_ids, failures

    def request_reminder(self, request: ReminderRequest, now: Optional[datetime] = None) -> ReminderScheduleResponse:
        """Schedule a reminder on every channel the user enabled and can be reached on."""
        now = to_utc_aware(now) if now else utc_now()
        base = NotificationIntent(
            owner_id=request.owner_id,
            subject_id=request.subject_id,
            subject_label=request.subject_label,
            due_at=request.due_at,
            contact=None,
            category=request.category,
            kind=request.kind,
            lead_days=request.lead_days,
        )
        check_intent_fields(base, now=now)

        preferences = request.preferences or ChannelPreferences()
        eligible = _eligible_contacts(request.contacts, preferences)
        if not eligible:
            raise ReminderValidationError("No valid notification preferences or contact details provided")

        scheduled_ids, failures = self._fan_out(base, eligible, now)
        logger.info(
            f"[Reminders] Scheduled {len(scheduled_ids)} notifications for {request.subject_label} "
            f"({', '.join(scheduled_ids)})"
        )
        return ReminderScheduleResponse(
            success=True,
            scheduled_ids=scheduled_ids,
            failures=failures,
            message=f"Notifications scheduled for {request.subject_label}",
        )

    def cancel_reminder(self, subject_id: str, owner_id: Optional[str] = None) -> CancelResponse:
        if not subject_id:
            raise ReminderValidationError("subject_id is required")
        result = cancel_notifications(self.db, subject_id, owner_id=owner_id)
        return CancelResponse(
            success=True,
            cancelled_count=result.cancelled_count,
            by_channel=result.by_channel,
            message=f"Cancelled {result.cancelled_count} notifications for item",
        )

    def list_notifications(self, owner_id: str, status: Optional[str] = None, limit: int = 50) -> NotificationList:
        """All of a user's notifications across channels, latest due first."""
        if not owner_id:
            raise ReminderValidationError("owner_id is required")
        if limit < 1:
            raise ReminderValidationError("limit must be positive")

        items = []
        for channel, spec in CHANNELS.items():
            for r in repo_list_notifications(self.db, spec.model, owner_id, status=status, limit=limit):
                items.append(
                    NotificationRead(
                        id=str(r.id),
                        channel=channel.value,
                        owner_id=r.owner_id,
                        subject_id=r.subject_id,
                        subject_label=r.subject_label,
                        category=r.category,
                        kind=r.kind,
                        due_at=to_utc_aware(r.due_at),
                        contact=spec.contact_of(r),
                        reminder_lead_days=r.reminder_lead_days,
                        status=r.status,
                        attempt_count=r.attempt_count,
                        attempt_limit=r.attempt_limit,
                        last_error=r.last_error,
                        created_at=to_utc_aware(r.created_at),
                        claimed_at=to_utc_aware(r.claimed_at),
                        last_attempt_at=to_utc_aware(r.last_attempt_at),
                        sent_at=to_utc_aware(r.sent_at),
                        failed_at=to_utc_aware(r.failed_at),
                        cancelled_at=to_utc_aware(r.cancelled_at),
                    )
                )
        items.sort(key=lambda n: n.due_at, reverse=True)
        items = items[:limit]
        return NotificationList(success=True, notifications=items, count=len(items))

    def send_test_notification(
        self,
        owner_id: str,
        subject_label: str,
        contacts: Optional[ContactDetails],
        kind: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TestNotificationResponse:
        """Schedule a test reminder a couple of minutes out on every reachable channel."""
        now = to_utc_aware(now) if now else utc_now()
        due_at = now + timedelta(minutes=settings.TEST_NOTIFICATION_DELAY_MINUTES)
        eligible = _eligible_contacts(contacts)
        if not eligible:
            raise ReminderValidationError("No contact details provided for test notification")

        base = NotificationIntent(
            owner_id=owner_id,
            subject_id=f"test-{int(now.timestamp() * 1000)}",
            subject_label=subject_label,
            due_at=due_at,
            contact=None,
            category="test",
            kind=kind or "test_notification",
            lead_days=0,
        )
        check_intent_fields(base, now=now)
        scheduled_ids, failures = self._fan_out(base, eligible, now)
        logger.info(f"[Reminders] Test notifications for {owner_id} scheduled at {due_at.isoformat()}")
        return TestNotificationResponse(
            success=True,
            scheduled_ids=scheduled_ids,
            failures=failures,
            message=f"Test notifications scheduled for {settings.TEST_NOTIFICATION_DELAY_MINUTES} minutes from now",
            scheduled_time=due_at,
        )
