from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from assetminder.utils.timezone import utc_now
from .channels import CHANNELS, Channel, get_channel_spec
from .metrics import reminders_cancelled_total
from .repository import cancel_scheduled

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    by_channel: Dict[str, int] = field(default_factory=dict)

    @property
    def cancelled_count(self) -> int:
        return sum(self.by_channel.values())


def cancel_notifications(
    db: Session,
    subject_id: str,
    owner_id: Optional[str] = None,
    channels: Optional[Iterable[Channel]] = None,
    now: Optional[datetime] = None,
) -> CancellationResult:
    """Cancel every still-scheduled notification for ``subject_id``.

    Rows a dispatcher has already claimed keep going; only ``scheduled`` rows
    are touched.
    """
    now = now or utc_now()
    result = CancellationResult()
    for channel in channels or CHANNELS:
        spec = get_channel_spec(channel)
        count = cancel_scheduled(db, spec.model, subject_id, owner_id, now)
        result.by_channel[spec.channel.value] = count
        if count:
            reminders_cancelled_total.labels(channel=spec.channel.value).inc(count)
            logger.info(f"[Cancel] Cancelled {count} {spec.channel.value} notifications for item: {subject_id}")
    return result
