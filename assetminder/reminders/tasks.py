from celery import shared_task
from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from assetminder.db.session import SessionLocal
from .channels import get_channel_spec
from .config import settings
from .dispatcher import process_due_notifications
from .retention import sweep_expired_notifications
from .senders import get_default_senders

logger = get_task_logger(__name__)


@shared_task(
    name="reminders.dispatch",
    time_limit=settings.DISPATCH_TIMEOUT_SECONDS,
    # halfway through the margin: after the pass stops sending, before the hard kill
    soft_time_limit=settings.DISPATCH_TIMEOUT_SECONDS - settings.DISPATCH_DEADLINE_MARGIN_SECONDS / 2,
)
def dispatch_task(channel: str) -> dict:
    """Deliver due notifications for one channel. Returns the pass summary."""
    spec = get_channel_spec(channel)
    db: Session = SessionLocal()
    try:
        result = process_due_notifications(db, spec.channel, get_default_senders()[spec.channel])
    finally:
        db.close()
    if result.failed:
        logger.warning(f"[Dispatch] {channel}: {result.failed} failed: {'; '.join(result.errors)}")
    return result.as_dict()


@shared_task(
    name="reminders.sweep",
    time_limit=settings.RETENTION_TIMEOUT_SECONDS,
)
def sweep_task() -> dict:
    """Delete delivered and failed notifications past the retention window."""
    db: Session = SessionLocal()
    try:
        result = sweep_expired_notifications(db)
    finally:
        db.close()
    logger.info(f"[Retention] Swept {result.total} notifications")
    return result.deleted
