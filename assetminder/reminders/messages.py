"""
Reminder message composition.

``compose_message`` looks the record's category up in ``MESSAGE_BUILDERS``
and falls back to a generic builder keyed by ``kind`` for anything it does
not recognize. Every builder fills all channel renderings at once, so the
push, email and SMS wording for one category stays in one place.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from html import escape
from typing import Callable, Dict, List, Optional, Tuple

from assetminder.utils.timezone import format_local_date, to_utc_aware


class Strong(str):
    """Text emphasized in the HTML email"""


# A paragraph is plain text segments; Strong ones are bolded in HTML
Paragraph = Tuple[str, ...]


@dataclass(frozen=True)
class ReminderMessage:
    title: str
    body: str
    sms_text: str
    email_subject: str
    email_heading: str
    email_paragraphs: List[Paragraph] = field(default_factory=list)
    email_note: str = "This is an automated reminder from your asset management system."

    @property
    def email_text_paragraphs(self) -> List[str]:
        return ["".join(paragraph) for paragraph in self.email_paragraphs]

    @property
    def email_html_paragraphs(self) -> List[str]:
        """Paragraph markup with every segment escaped."""
        return [
            "".join(
                f"<strong>{escape(part)}</strong>" if isinstance(part, Strong) else escape(part)
                for part in paragraph
            )
            for paragraph in self.email_paragraphs
        ]


@dataclass(frozen=True)
class MessageContext:
    subject_label: str
    kind: str
    due_at: datetime
    lead_days: int
    tz_name: Optional[str] = None

    @property
    def event_date(self) -> str:
        """Date of the renewal/expiry the reminder is warning about."""
        return format_local_date(to_utc_aware(self.due_at) + timedelta(days=self.lead_days), self.tz_name)

    @property
    def due_date(self) -> str:
        return format_local_date(self.due_at, self.tz_name)

    @property
    def kind_label(self) -> str:
        return (self.kind or "reminder").replace("_", " ")


def _subscription(ctx: MessageContext) -> ReminderMessage:
    return ReminderMessage(
        title="🔔 Subscription Renewal Reminder",
        body=f"{ctx.subject_label} renews in {ctx.lead_days} days ({ctx.event_date})",
        sms_text=(
            f"Subscription Reminder: Your {ctx.subject_label} subscription renews in "
            f"{ctx.lead_days} days ({ctx.event_date}). Ensure your payment method is current."
        ),
        email_subject=f"Subscription Renewal Reminder: {ctx.subject_label}",
        email_heading="Subscription Renewal Reminder",
        email_paragraphs=[
            (
                "Your subscription for ", Strong(ctx.subject_label), " is set to renew in ",
                Strong(f"{ctx.lead_days} days"), ".",
            ),
            (Strong("Renewal Date:"), f" {ctx.event_date}"),
            ("Please ensure your payment method is up to date to avoid service interruption.",),
        ],
    )


def _license_expiration(ctx: MessageContext) -> ReminderMessage:
    return ReminderMessage(
        title="⚠️ License Expiring Soon",
        body=f"{ctx.subject_label} license expires in {ctx.lead_days} days",
        sms_text=(
            f"License Alert: Your {ctx.subject_label} license expires in {ctx.lead_days} days "
            f"({ctx.event_date}). Renew to avoid service interruption."
        ),
        email_subject=f"License Expiring Soon: {ctx.subject_label}",
        email_heading="License Expiration Notice",
        email_paragraphs=[
            (
                "Your license for ", Strong(ctx.subject_label), " will expire in ",
                Strong(f"{ctx.lead_days} days"), ".",
            ),
            (Strong("Expiration Date:"), f" {ctx.event_date}"),
            ("Please renew your license to continue using the software without interruption.",),
        ],
        email_note="⚠️ Action required to maintain access to your software.",
    )


def _warranty_expiration(ctx: MessageContext) -> ReminderMessage:
    return ReminderMessage(
        title="🔧 Warranty Expiring",
        body=f"{ctx.subject_label} warranty expires in {ctx.lead_days} days",
        sms_text=(
            f"Warranty Notice: Your {ctx.subject_label} warranty expires in {ctx.lead_days} days "
            f"({ctx.event_date}). Consider extending coverage."
        ),
        email_subject=f"Warranty Expiring: {ctx.subject_label}",
        email_heading="Warranty Expiration Notice",
        email_paragraphs=[
            (
                "The warranty for your ", Strong(ctx.subject_label), " will expire in ",
                Strong(f"{ctx.lead_days} days"), ".",
            ),
            (Strong("Expiration Date:"), f" {ctx.event_date}"),
            ("Consider extending your warranty or documenting the current condition of your hardware.",),
        ],
        email_note="💡 Tip: Take photos and note the current condition before warranty expires.",
    )


def _generic(ctx: MessageContext) -> ReminderMessage:
    return ReminderMessage(
        title="📅 Item Reminder",
        body=f"{ctx.kind_label} for {ctx.subject_label} on {ctx.due_date}",
        sms_text=(
            f"Reminder: {ctx.kind_label} for {ctx.subject_label} on {ctx.due_date}. "
            "Check your asset management app for details."
        ),
        email_subject=f"Reminder: {ctx.kind_label} for {ctx.subject_label}",
        email_heading=f"{ctx.kind_label.capitalize()} Reminder",
        email_paragraphs=[
            (
                f"Your {ctx.kind_label} for ", Strong(ctx.subject_label), f" is scheduled for {ctx.due_date}.",
            ),
            ("Please check your account for more details.",),
        ],
    )


MessageBuilder = Callable[[MessageContext], ReminderMessage]

MESSAGE_BUILDERS: Dict[str, MessageBuilder] = {
    "subscription": _subscription,
    "software": _license_expiration,
    "hardware": _warranty_expiration,
}


def compose_message(
    category: str,
    subject_label: str,
    due_at: datetime,
    lead_days: int,
    kind: str = "reminder",
    tz_name: Optional[str] = None,
) -> ReminderMessage:
    ctx = MessageContext(
        subject_label=subject_label,
        kind=kind,
        due_at=due_at,
        lead_days=lead_days,
        tz_name=tz_name,
    )
    builder = MESSAGE_BUILDERS.get(category, _generic)
    return builder(ctx)
