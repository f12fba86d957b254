"""
Channel registry: which table, contact column and contact rules belong to
each delivery channel.
"""
from dataclasses import dataclass
from enum import Enum
import re
from typing import Any, Callable, Dict, List, Type, Union

from email_validator import EmailNotValidError, validate_email

from .errors import ReminderValidationError
from .models import (
    ScheduledNotificationMixin,
    ScheduledPushNotification,
    ScheduledEmailNotification,
    ScheduledSMSNotification,
)


class Channel(str, Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"


# E.164: leading +, country code without a zero, at most 15 digits
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


def _normalize_tokens(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not value:
        raise ReminderValidationError("At least one FCM token is required")
    tokens = []
    for token in value:
        if not isinstance(token, str) or not token.strip():
            raise ReminderValidationError("FCM tokens must be non-empty strings")
        token = token.strip()
        if token not in tokens:
            tokens.append(token)
    return tokens


def _normalize_email(value: Any) -> str:
    if not value or not isinstance(value, str):
        raise ReminderValidationError("email is required")
    try:
        return validate_email(value.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ReminderValidationError(f"Invalid email address: {e}") from e


def _normalize_phone(value: Any) -> str:
    if not value or not isinstance(value, str):
        raise ReminderValidationError("phone is required")
    phone = value.strip()
    if not E164_PATTERN.match(phone):
        raise ReminderValidationError(
            f"Invalid phone number format: {phone} (expected E.164, e.g. +14155550123)"
        )
    return phone


@dataclass(frozen=True)
class ChannelSpec:
    channel: Channel
    model: Type[ScheduledNotificationMixin]
    contact_field: str
    normalize_contact: Callable[[Any], Any]

    def contact_of(self, record: ScheduledNotificationMixin) -> Any:
        return getattr(record, self.contact_field)

    def addresses(self, record: ScheduledNotificationMixin) -> List[str]:
        """Every destination a single record delivers to."""
        contact = self.contact_of(record)
        if not contact:
            return []
        if isinstance(contact, str):
            return [contact]
        return [c for c in contact if c]


CHANNELS: Dict[Channel, ChannelSpec] = {
    Channel.PUSH: ChannelSpec(
        channel=Channel.PUSH,
        model=ScheduledPushNotification,
        contact_field="device_tokens",
        normalize_contact=_normalize_tokens,
    ),
    Channel.EMAIL: ChannelSpec(
        channel=Channel.EMAIL,
        model=ScheduledEmailNotification,
        contact_field="email",
        normalize_contact=_normalize_email,
    ),
    Channel.SMS: ChannelSpec(
        channel=Channel.SMS,
        model=ScheduledSMSNotification,
        contact_field="phone",
        normalize_contact=_normalize_phone,
    ),
}


def get_channel_spec(channel: Union[Channel, str]) -> ChannelSpec:
    try:
        return CHANNELS[Channel(channel)]
    except ValueError as e:
        raise ReminderValidationError(f"Unknown channel: {channel}") from e
