"""
Request/response schemas for the reminder API
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ChannelPreferences(BaseModel):
    """Which channels the user wants reminders on"""
    push: bool = False
    email: bool = True
    sms: bool = False


class ContactDetails(BaseModel):
    """Where to reach the user on each channel"""
    tokens: List[str] = Field(default_factory=list)  # FCM device tokens
    email: Optional[str] = None
    phone: Optional[str] = None  # E.164


class ReminderRequest(BaseModel):
    """Schema for requesting a reminder about an item"""
    owner_id: str
    subject_id: str
    subject_label: str
    category: str = "general"
    kind: str = "reminder"
    due_at: datetime
    lead_days: Optional[int] = Field(default=None, ge=0)
    preferences: Optional[ChannelPreferences] = None
    contacts: Optional[ContactDetails] = None


class ReminderScheduleResponse(BaseModel):
    success: bool
    scheduled_ids: Dict[str, str]
    failures: Dict[str, str] = Field(default_factory=dict)
    message: str


class CancelRequest(BaseModel):
    subject_id: str
    owner_id: Optional[str] = None


class CancelResponse(BaseModel):
    success: bool
    cancelled_count: int
    by_channel: Dict[str, int] = Field(default_factory=dict)
    message: str


class TestNotificationRequest(BaseModel):
    owner_id: str
    subject_label: str = "Test Item"
    kind: Optional[str] = None
    contacts: ContactDetails


class TestNotificationResponse(ReminderScheduleResponse):
    scheduled_time: datetime


class NotificationRead(BaseModel):
    """A scheduled notification of any channel, tagged with its channel"""
    id: str
    channel: str
    owner_id: str
    subject_id: str
    subject_label: str
    category: str
    kind: str
    due_at: datetime
    contact: Any
    reminder_lead_days: int
    status: str
    attempt_count: int
    attempt_limit: int
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class NotificationList(BaseModel):
    success: bool = True
    notifications: List[NotificationRead]
    count: int
