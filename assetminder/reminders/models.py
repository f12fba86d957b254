"""
Scheduled notification models - one table per delivery channel.

The three tables share every column except the channel-specific contact
(device tokens for push, an address for email, a phone number for SMS).
"""
from enum import Enum
import uuid

from sqlalchemy import Column, String, DateTime, Integer, Index, JSON, Text, func
from sqlalchemy.orm import declared_attr

from assetminder.db.base import Base


class NotificationStatus(str, Enum):
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Statuses the retention sweeper is allowed to delete
PURGEABLE_STATUSES = (
    NotificationStatus.SENT.value,
    NotificationStatus.FAILED.value,
)

CATEGORIES = ("hardware", "software", "subscription", "test", "general")


def _new_id() -> str:
    return str(uuid.uuid4())


class ScheduledNotificationMixin:
    """Columns shared by every channel table"""

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=False, index=True)
    subject_id = Column(String, nullable=False, index=True)
    subject_label = Column(String, nullable=False)
    category = Column(String(32), nullable=False, default="general")
    kind = Column(String, nullable=False, default="reminder")
    due_at = Column(DateTime(timezone=True), nullable=False)
    reminder_lead_days = Column(Integer, nullable=False, default=7)

    status = Column(String(16), nullable=False, default=NotificationStatus.SCHEDULED.value)
    attempt_count = Column(Integer, nullable=False, default=0)
    attempt_limit = Column(Integer, nullable=False, default=3)
    last_error = Column(Text, nullable=True)
    claim_token = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    @declared_attr
    def __table_args__(cls):
        name = cls.__tablename__
        return (
            Index(f"ix_{name}_status_due", "status", "due_at"),
            Index(f"ix_{name}_subject_status", "subject_id", "status"),
            Index(f"ix_{name}_owner_due", "owner_id", "due_at"),
            Index(f"ix_{name}_status_claimed", "status", "claimed_at"),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} status={self.status} due_at={self.due_at}>"


class ScheduledPushNotification(ScheduledNotificationMixin, Base):
    __tablename__ = "scheduled_push_notifications"

    device_tokens = Column(JSON, nullable=False, default=list)


class ScheduledEmailNotification(ScheduledNotificationMixin, Base):
    __tablename__ = "scheduled_email_notifications"

    email = Column(String, nullable=False)


class ScheduledSMSNotification(ScheduledNotificationMixin, Base):
    __tablename__ = "scheduled_sms_notifications"

    phone = Column(String(16), nullable=False)
