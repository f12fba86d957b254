from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Type
import uuid

from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StoreError
from .models import NotificationStatus, PURGEABLE_STATUSES, ScheduledNotificationMixin

logger = logging.getLogger(__name__)

Model = Type[ScheduledNotificationMixin]

SCHEDULED = NotificationStatus.SCHEDULED.value
PROCESSING = NotificationStatus.PROCESSING.value


@contextmanager
def _store_operation(db: Session, action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[Store] {action} failed: {e}")
        raise StoreError(f"{action} failed: {e}") from e


def _bulk_update(db: Session, stmt) -> int:
    result = db.execute(stmt.execution_options(synchronize_session=False))
    db.commit()
    return result.rowcount or 0


def create_notification(db: Session, model: Model, values: Dict[str, Any]) -> ScheduledNotificationMixin:
    with _store_operation(db, f"Insert into {model.__tablename__}"):
        record = model(**values)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record


def get_due_notifications(db: Session, model: Model, now: datetime, limit: int = 100) -> List[ScheduledNotificationMixin]:
    stmt = (
        select(model)
        .where(model.status == SCHEDULED)
        .where(model.due_at <= now)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    with _store_operation(db, f"Due query on {model.__tablename__}"):
        return list(db.execute(stmt).scalars())


def claim_notifications(
    db: Session, model: Model, ids: Sequence[str], now: datetime
) -> Tuple[str, List[ScheduledNotificationMixin]]:
    """Move still-scheduled rows to processing in one conditional update.

    Returns the claim token and the rows this call actually claimed; rows a
    concurrent pass got to first are not returned.
    """
    token = str(uuid.uuid4())
    if not ids:
        return token, []
    stmt = (
        update(model)
        .where(model.id.in_(list(ids)))
        .where(model.status == SCHEDULED)
        .values(status=PROCESSING, claimed_at=now, claim_token=token)
    )
    with _store_operation(db, f"Claim on {model.__tablename__}"):
        _bulk_update(db, stmt)
        claimed = db.execute(
            select(model)
            .where(model.claim_token == token)
            .where(model.status == PROCESSING)
            .execution_options(populate_existing=True)
        ).scalars()
        return token, list(claimed)


def _claimed_row(model: Model, notification_id: str, token: str):
    return (
        update(model)
        .where(model.id == notification_id)
        .where(model.status == PROCESSING)
        .where(model.claim_token == token)
    )


def mark_sent(db: Session, model: Model, notification_id: str, token: str, now: datetime) -> bool:
    stmt = _claimed_row(model, notification_id, token).values(
        status=NotificationStatus.SENT.value,
        sent_at=now,
        last_attempt_at=now,
        claim_token=None,
    )
    with _store_operation(db, f"Mark sent on {model.__tablename__}"):
        return _bulk_update(db, stmt) == 1


def mark_retry(
    db: Session,
    model: Model,
    notification_id: str,
    token: str,
    attempt_count: int,
    due_at: datetime,
    error: str,
    now: datetime,
) -> bool:
    stmt = _claimed_row(model, notification_id, token).values(
        status=SCHEDULED,
        attempt_count=attempt_count,
        due_at=due_at,
        last_error=error,
        last_attempt_at=now,
        claim_token=None,
    )
    with _store_operation(db, f"Reschedule on {model.__tablename__}"):
        return _bulk_update(db, stmt) == 1


def mark_failed(
    db: Session,
    model: Model,
    notification_id: str,
    token: str,
    attempt_count: int,
    error: str,
    now: datetime,
) -> bool:
    stmt = _claimed_row(model, notification_id, token).values(
        status=NotificationStatus.FAILED.value,
        attempt_count=attempt_count,
        last_error=error,
        failed_at=now,
        last_attempt_at=now,
        claim_token=None,
    )
    with _store_operation(db, f"Mark failed on {model.__tablename__}"):
        return _bulk_update(db, stmt) == 1


def release_claims(db: Session, model: Model, ids: Sequence[str], token: str) -> int:
    """Hand claimed rows that were never attempted back to ``scheduled`` as they were."""
    if not ids:
        return 0
    stmt = (
        update(model)
        .where(model.id.in_(list(ids)))
        .where(model.status == PROCESSING)
        .where(model.claim_token == token)
        .values(status=SCHEDULED, claimed_at=None, claim_token=None)
    )
    with _store_operation(db, f"Release on {model.__tablename__}"):
        return _bulk_update(db, stmt)


def reclaim_stale_claims(db: Session, model: Model, cutoff: datetime, now: datetime) -> int:
    """Requeue rows left in processing since before ``cutoff``.

    Each reclaim counts as a spent attempt; rows that run out of attempts
    become failed instead of scheduled.
    """
    error = f"Claim expired: no outcome recorded since before {cutoff.isoformat()}"
    stale = (
        update(model)
        .where(model.status == PROCESSING)
        .where(model.claimed_at < cutoff)
    )
    exhausted = stale.where(model.attempt_count + 1 >= model.attempt_limit).values(
        status=NotificationStatus.FAILED.value,
        attempt_count=model.attempt_count + 1,
        last_error=error,
        failed_at=now,
        claim_token=None,
    )
    requeue = stale.values(
        status=SCHEDULED,
        attempt_count=model.attempt_count + 1,
        due_at=now,
        last_error=error,
        claim_token=None,
    )
    with _store_operation(db, f"Reclaim on {model.__tablename__}"):
        return _bulk_update(db, exhausted) + _bulk_update(db, requeue)


def cancel_scheduled(
    db: Session, model: Model, subject_id: str, owner_id: Optional[str], now: datetime
) -> int:
    stmt = (
        update(model)
        .where(model.subject_id == subject_id)
        .where(model.status == SCHEDULED)
    )
    if owner_id:
        stmt = stmt.where(model.owner_id == owner_id)
    stmt = stmt.values(status=NotificationStatus.CANCELLED.value, cancelled_at=now)
    with _store_operation(db, f"Cancel on {model.__tablename__}"):
        return _bulk_update(db, stmt)


def purge_terminal(db: Session, model: Model, cutoff: datetime, limit: int) -> int:
    """Delete up to ``limit`` sent/failed rows last claimed before ``cutoff``."""
    with _store_operation(db, f"Purge on {model.__tablename__}"):
        ids = list(
            db.execute(
                select(model.id)
                .where(model.status.in_(PURGEABLE_STATUSES))
                .where(model.claimed_at < cutoff)
                .limit(limit)
            ).scalars()
        )
        if not ids:
            return 0
        return _bulk_update(
            db,
            delete(model)
            .where(model.id.in_(ids))
            .where(model.status.in_(PURGEABLE_STATUSES)),
        )


def list_notifications(
    db: Session,
    model: Model,
    owner_id: str,
    status: Optional[str] = None,
    limit: int = 50,
) -> List[ScheduledNotificationMixin]:
    stmt = select(model).where(model.owner_id == owner_id)
    if status:
        stmt = stmt.where(model.status == status)
    stmt = stmt.order_by(model.due_at.desc()).limit(limit).execution_options(populate_existing=True)
    with _store_operation(db, f"List on {model.__tablename__}"):
        return list(db.execute(stmt).scalars())
