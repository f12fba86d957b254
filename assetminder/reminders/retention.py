from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from assetminder.utils.timezone import to_utc_aware, utc_now
from .channels import CHANNELS
from .config import settings
from .metrics import reminders_swept_total
from .repository import purge_terminal

logger = logging.getLogger(__name__)


@dataclass
class RetentionResult:
    deleted: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.deleted.values())


def sweep_expired_notifications(db: Session, now: Optional[datetime] = None) -> RetentionResult:
    """Delete sent/failed notifications older than the retention window.

    Scheduled, processing and cancelled rows are never deleted.
    """
    now = to_utc_aware(now) if now else utc_now()
    cutoff = now - timedelta(days=settings.RETENTION_DAYS)
    batch_size = settings.RETENTION_BATCH_SIZE
    result = RetentionResult()

    for channel, spec in CHANNELS.items():
        deleted = 0
        for _ in range(settings.RETENTION_MAX_BATCHES):
            count = purge_terminal(db, spec.model, cutoff, batch_size)
            deleted += count
            if count < batch_size:
                break
        else:
            logger.warning(
                f"[Retention] Hit the {settings.RETENTION_MAX_BATCHES}-batch cap on "
                f"{spec.model.__tablename__}; remaining rows wait for the next run"
            )
        result.deleted[channel.value] = deleted
        if deleted:
            reminders_swept_total.labels(channel=channel.value).inc(deleted)
            logger.info(f"[Retention] Cleaned up {deleted} old notifications from {spec.model.__tablename__}")

    if result.total == 0:
        logger.info("[Retention] No old notifications to clean up")
    return result
