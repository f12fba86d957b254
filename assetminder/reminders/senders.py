"""
Channel senders: the narrow capability the dispatcher delivers through.

Each sender composes the channel rendering of a reminder and hands it to the
transport service. Transports are created lazily on first use so a process
without, say, Twilio credentials can still deliver push and email.
"""
from datetime import datetime
import logging
from typing import Callable, Dict, Optional, Protocol

from .channels import Channel
from .errors import SendError
from .messages import compose_message

logger = logging.getLogger(__name__)


class ChannelSender(Protocol):
    channel: Channel

    def send(
        self,
        contact: str,
        category: str,
        subject_label: str,
        due_at: datetime,
        lead_days: int,
        kind: str = "reminder",
    ) -> bool:
        ...


class _LazyTransportSender:
    channel: Channel

    def __init__(self, factory: Callable[[], object]):
        self._factory = factory
        self._transport = None

    @property
    def transport(self):
        if self._transport is None:
            try:
                self._transport = self._factory()
            except ValueError as e:
                raise SendError(f"{self.channel.value} transport not configured: {e}") from e
        return self._transport


class PushSender(_LazyTransportSender):
    channel = Channel.PUSH

    def send(self, contact, category, subject_label, due_at, lead_days, kind="reminder") -> bool:
        message = compose_message(category, subject_label, due_at, lead_days, kind)
        return self.transport.send_push(
            contact,
            title=message.title,
            body=message.body,
            data={"category": category, "kind": kind, "due_at": due_at.isoformat()},
        )


class EmailSender(_LazyTransportSender):
    channel = Channel.EMAIL

    def send(self, contact, category, subject_label, due_at, lead_days, kind="reminder") -> bool:
        message = compose_message(category, subject_label, due_at, lead_days, kind)
        return self.transport.send_reminder_email(contact, message)


class SMSSender(_LazyTransportSender):
    channel = Channel.SMS

    def send(self, contact, category, subject_label, due_at, lead_days, kind="reminder") -> bool:
        message = compose_message(category, subject_label, due_at, lead_days, kind)
        return self.transport.send_sms(contact, message.sms_text)


def _push_transport():
    from assetminder.services.push_service import PushNotificationService
    return PushNotificationService()


def _email_transport():
    from assetminder.services.email_service import EmailService
    return EmailService()


def _sms_transport():
    from assetminder.services.sms_service import SMSService
    return SMSService()


_senders: Optional[Dict[Channel, ChannelSender]] = None


def get_default_senders() -> Dict[Channel, ChannelSender]:
    """Process-wide senders, built once."""
    global _senders
    if _senders is None:
        _senders = {
            Channel.PUSH: PushSender(_push_transport),
            Channel.EMAIL: EmailSender(_email_transport),
            Channel.SMS: SMSSender(_sms_transport),
        }
        logger.info("[Senders] Channel senders initialized")
    return _senders
