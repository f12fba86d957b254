"""
Write path: validate a delivery intent for one channel and persist it as a
scheduled notification. No delivery is attempted here.
"""
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from assetminder.utils.timezone import to_utc_aware, utc_now
from .channels import Channel, get_channel_spec
from .config import settings
from .errors import ReminderValidationError
from .metrics import reminders_scheduled_total
from .models import CATEGORIES, NotificationStatus
from .repository import create_notification

logger = logging.getLogger(__name__)


@dataclass
class NotificationIntent:
    owner_id: str
    subject_id: str
    subject_label: str
    due_at: datetime
    contact: Any
    category: str = "general"
    kind: str = "reminder"
    lead_days: Optional[int] = None


def check_intent_fields(intent: NotificationIntent, now: Optional[datetime] = None) -> None:
    """Channel-independent checks: identifiers, label, category, future due instant."""
    if not intent.owner_id:
        raise ReminderValidationError("owner_id is required")
    if not intent.subject_id:
        raise ReminderValidationError("subject_id is required")
    if not intent.subject_label or not intent.subject_label.strip():
        raise ReminderValidationError("subject_label is required")
    if intent.category not in CATEGORIES:
        raise ReminderValidationError(
            f"category must be one of {', '.join(CATEGORIES)}"
        )
    if intent.due_at is None:
        raise ReminderValidationError("due_at is required")
    if intent.lead_days is not None and intent.lead_days < 0:
        raise ReminderValidationError("lead_days must not be negative")

    now = now or utc_now()
    if to_utc_aware(intent.due_at) <= now:
        raise ReminderValidationError("due_at must be in the future")


def validate_intent(channel: Channel, intent: NotificationIntent, now: Optional[datetime] = None) -> Any:
    """Check an intent for one channel; returns the normalized contact."""
    check_intent_fields(intent, now=now)
    return get_channel_spec(channel).normalize_contact(intent.contact)


def schedule_notification(
    db: Session,
    channel: Channel,
    intent: NotificationIntent,
    now: Optional[datetime] = None,
) -> str:
    """Persist a scheduled notification for ``channel`` and return its id."""
    spec = get_channel_spec(channel)
    contact = validate_intent(spec.channel, intent, now=now)

    record = create_notification(
        db,
        spec.model,
        {
            "owner_id": intent.owner_id,
            "subject_id": intent.subject_id,
            "subject_label": intent.subject_label.strip(),
            "category": intent.category,
            "kind": intent.kind or "reminder",
            "due_at": to_utc_aware(intent.due_at),
            spec.contact_field: contact,
            "reminder_lead_days": (
                intent.lead_days if intent.lead_days is not None else settings.DEFAULT_LEAD_DAYS
            ),
            "status": NotificationStatus.SCHEDULED.value,
            "attempt_count": 0,
            "attempt_limit": settings.ATTEMPT_LIMIT,
        },
    )
    reminders_scheduled_total.labels(channel=spec.channel.value).inc()
    logger.info(
        f"[Scheduler] {spec.channel.value} notification scheduled with ID: {record.id} "
        f"for item: {record.subject_label} at {record.due_at}"
    )
    return record.id
