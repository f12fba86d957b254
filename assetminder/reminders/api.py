import logging
from typing import Callable, Optional, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from assetminder.db.session import get_db
from assetminder.api.deps import verify_api_key_dependency
from .errors import ReminderValidationError
from .models import NotificationStatus
from .schemas import (
    CancelRequest,
    CancelResponse,
    NotificationList,
    ReminderRequest,
    ReminderScheduleResponse,
    TestNotificationRequest,
    TestNotificationResponse,
)
from .service import ReminderService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key_dependency)])

T = TypeVar("T")


def _run(action: str, call: Callable[[], T]) -> T:
    """Invalid input is a 400; anything else is a generic 500."""
    try:
        return call()
    except ReminderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"[Reminders API] {action} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/", response_model=ReminderScheduleResponse)
def request_reminder_endpoint(payload: ReminderRequest, db: Session = Depends(get_db)):
    return _run("Schedule reminder", lambda: ReminderService(db).request_reminder(payload))


@router.post("/cancel", response_model=CancelResponse)
def cancel_reminder_endpoint(payload: CancelRequest, db: Session = Depends(get_db)):
    return _run(
        "Cancel reminder",
        lambda: ReminderService(db).cancel_reminder(payload.subject_id, owner_id=payload.owner_id),
    )


@router.get("/", response_model=NotificationList)
def list_notifications_endpoint(
    owner_id: str,
    status: Optional[NotificationStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return _run(
        "List notifications",
        lambda: ReminderService(db).list_notifications(
            owner_id, status=status.value if status else None, limit=limit
        ),
    )


@router.post("/test", response_model=TestNotificationResponse)
def send_test_notification_endpoint(payload: TestNotificationRequest, db: Session = Depends(get_db)):
    return _run(
        "Test notification",
        lambda: ReminderService(db).send_test_notification(
            payload.owner_id, payload.subject_label, payload.contacts, kind=payload.kind
        ),
    )


@router.get("/health")
def health_check():
    return {"status": "healthy", "service": "reminders"}
