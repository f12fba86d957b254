"""
Dispatcher - discovers due notifications for one channel, claims them and
delivers them through the channel sender.

One pass:
    1. requeue claims abandoned by a crashed pass
    2. select a bounded batch of scheduled rows that are due
    3. claim them with a single conditional update (scheduled -> processing)
    4. deliver each claimed row, every contact address in parallel with a
       per-send timeout
    5. record sent / retry with exponential backoff / failed
    6. hand rows the pass had no time left for back to scheduled, untouched

A failing or hanging send only affects its own record. Sending stops
DISPATCH_DEADLINE_MARGIN_SECONDS before the task time limit, so the
release in step 6 runs before Celery interrupts the pass.
"""
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
import logging
import time
from typing import List, Optional, Union

from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy.orm import Session

from assetminder.utils.timezone import to_utc_aware, utc_now
from .channels import Channel, ChannelSpec, get_channel_spec
from .config import settings
from .metrics import (
    dispatcher_scans_total,
    reminders_dispatch_failed_total,
    reminders_dispatch_success_total,
    reminders_reclaimed_total,
    reminders_retried_total,
)
from .models import ScheduledNotificationMixin
from .repository import (
    claim_notifications,
    get_due_notifications,
    mark_failed,
    mark_retry,
    mark_sent,
    reclaim_stale_claims,
    release_claims,
)
from .senders import ChannelSender

logger = logging.getLogger(__name__)

# A send is not started with less time than this left in the pass
MIN_SEND_WINDOW_SECONDS = 1.0


@dataclass
class ProcessingResult:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    reclaimed: int = 0
    released: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def retry_delay(attempt_count: int) -> timedelta:
    """Backoff after the ``attempt_count``-th failure: 10, 20, 40... minutes."""
    return timedelta(minutes=settings.RETRY_BASE_MINUTES * (2 ** attempt_count))


def dispatch_budget_seconds() -> float:
    """Time a pass may spend sending, kept clear of the task's time limits."""
    return max(settings.DISPATCH_TIMEOUT_SECONDS - settings.DISPATCH_DEADLINE_MARGIN_SECONDS, 0)


def _mask(address: str) -> str:
    return address if len(address) <= 12 else f"{address[:8]}...{address[-4:]}"


def _attempt_delivery(
    pool: ThreadPoolExecutor,
    spec: ChannelSpec,
    sender: ChannelSender,
    record: ScheduledNotificationMixin,
    timeout: float,
) -> Optional[str]:
    """Deliver one record to all of its addresses. Returns None on success, else the error."""
    addresses = spec.addresses(record)
    if not addresses:
        logger.warning(
            f"[Dispatcher] No {spec.contact_field} on {spec.channel.value} notification "
            f"{record.id} ({record.subject_label}); nothing to send"
        )
        return None

    due_at = to_utc_aware(record.due_at)
    futures = {
        pool.submit(
            sender.send,
            address,
            record.category,
            record.subject_label,
            due_at,
            record.reminder_lead_days,
            record.kind,
        ): address
        for address in addresses
    }
    done, not_done = wait(futures, timeout=timeout)

    delivered = 0
    errors = []
    for future in not_done:
        future.cancel()
        errors.append(f"{_mask(futures[future])}: timed out after {timeout:.0f}s")
    for future in done:
        address = futures[future]
        try:
            accepted = future.result()
        except Exception as e:
            errors.append(f"{_mask(address)}: {e}")
            continue
        if accepted:
            delivered += 1
        else:
            errors.append(f"{_mask(address)}: rejected by {spec.channel.value} service")

    if delivered == 0:
        if len(addresses) > 1:
            return f"All {spec.channel.value} deliveries failed: {', '.join(errors)}"
        return errors[0]

    if errors:
        logger.warning(
            f"[Dispatcher] Some {spec.channel.value} deliveries failed for "
            f"{record.subject_label}: {', '.join(errors)}"
        )
    return None


def _record_failure(
    db: Session,
    spec: ChannelSpec,
    record: ScheduledNotificationMixin,
    token: str,
    error: str,
    now: datetime,
) -> None:
    attempts = record.attempt_count + 1
    if attempts >= record.attempt_limit:
        updated = mark_failed(db, spec.model, record.id, token, attempts, error, now)
        logger.error(
            f"[Dispatcher] {spec.channel.value} notification {record.id} failed permanently "
            f"after {attempts} attempts: {error}"
        )
    else:
        next_due = max(now, to_utc_aware(record.due_at)) + retry_delay(attempts)
        updated = mark_retry(db, spec.model, record.id, token, attempts, next_due, error, now)
        reminders_retried_total.labels(channel=spec.channel.value).inc()
        logger.warning(
            f"[Dispatcher] {spec.channel.value} notification {record.id} attempt {attempts} failed, "
            f"retrying at {next_due.isoformat()}: {error}"
        )
    if not updated:
        logger.warning(f"[Dispatcher] Lost claim on {record.id}; outcome not recorded")


def process_due_notifications(
    db: Session,
    channel: Union[Channel, str],
    sender: ChannelSender,
    now: Optional[datetime] = None,
) -> ProcessingResult:
    """Run one dispatcher pass for ``channel``."""
    spec = get_channel_spec(channel)
    name = spec.channel.value
    now = to_utc_aware(now) if now else utc_now()
    deadline = time.monotonic() + dispatch_budget_seconds()
    result = ProcessingResult()

    stale_cutoff = now - timedelta(seconds=2 * settings.DISPATCH_TIMEOUT_SECONDS)
    result.reclaimed = reclaim_stale_claims(db, spec.model, stale_cutoff, now)
    if result.reclaimed:
        reminders_reclaimed_total.labels(channel=name).inc(result.reclaimed)
        logger.warning(f"[Dispatcher] Reclaimed {result.reclaimed} stale {name} claims")

    dispatcher_scans_total.labels(channel=name).inc()
    due = get_due_notifications(db, spec.model, now, limit=settings.DISPATCH_BATCH_SIZE)
    if not due:
        logger.info(f"[Dispatcher] No {name} notifications to process")
        return result

    token, claimed = claim_notifications(db, spec.model, [r.id for r in due], now)
    if len(claimed) < len(due):
        logger.info(f"[Dispatcher] {len(due) - len(claimed)} {name} notifications already claimed elsewhere")
    logger.info(f"[Dispatcher] Processing {len(claimed)} {name} notifications")

    pool = ThreadPoolExecutor(max_workers=settings.SEND_MAX_WORKERS, thread_name_prefix=f"{name}-send")
    index = 0
    try:
        while index < len(claimed):
            record = claimed[index]
            remaining = deadline - time.monotonic()
            if remaining < MIN_SEND_WINDOW_SECONDS:
                break
            try:
                error = _attempt_delivery(
                    pool, spec, sender, record, min(settings.SEND_TIMEOUT_SECONDS, remaining)
                )
            except SoftTimeLimitExceeded:
                raise
            except Exception as e:
                # e.g. the executor refusing work; still a per-record failure
                error = str(e) or type(e).__name__
            index += 1

            result.processed += 1
            if error is None:
                if not mark_sent(db, spec.model, record.id, token, now):
                    logger.warning(f"[Dispatcher] Lost claim on {record.id}; sent status not recorded")
                result.successful += 1
                reminders_dispatch_success_total.labels(channel=name).inc()
                logger.info(f"[Dispatcher] Sent {name} notification for: {record.subject_label}")
                continue

            result.failed += 1
            result.errors.append(f"{record.subject_label}: {error}")
            reminders_dispatch_failed_total.labels(channel=name).inc()
            _record_failure(db, spec, record, token, error, now)
    finally:
        # Do not wait on sends that blew their timeout
        pool.shutdown(wait=False, cancel_futures=True)
        # Anything not yet attempted goes back untouched for the next pass
        unattempted = [r.id for r in claimed[index:]]
        if unattempted:
            result.released = release_claims(db, spec.model, unattempted, token)
            logger.warning(
                f"[Dispatcher] Deadline reached; released {result.released} unattempted {name} notifications"
            )

    logger.info(
        f"[Dispatcher] {name} processing complete: {result.successful} successful, {result.failed} failed"
    )
    return result
