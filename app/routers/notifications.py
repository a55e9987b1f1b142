"""
Notifications and reports router.

GET  /api/notifications/{user_id}
POST /api/notifications/{notification_id}/read
POST /api/reports
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.social import NotificationResponse, ReportCreateRequest, ReportResponse
from app.services.notifications import (
    file_report,
    list_notifications,
    mark_read,
    notification_to_dict,
    report_to_dict,
)

router = APIRouter(prefix="/api", tags=["notifications"])


@router.get(
    "/notifications/{user_id}",
    response_model=list[NotificationResponse],
    summary="Inbox, newest first",
    responses={404: {"model": ErrorResponse, "description": "Profile not found."}},
)
def read_notifications(user_id: str, db: Session = Depends(get_db)):
    return [notification_to_dict(n) for n in list_notifications(db, user_id)]


@router.post(
    "/notifications/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification read",
    responses={404: {"model": ErrorResponse, "description": "Notification not found."}},
)
def read_one(notification_id: int, db: Session = Depends(get_db)):
    return notification_to_dict(mark_read(db, notification_id))


@router.post(
    "/reports",
    response_model=ReportResponse,
    status_code=201,
    summary="Report a user or a post",
    responses={422: {"model": ErrorResponse, "description": "No target given."}},
)
def report(payload: ReportCreateRequest, db: Session = Depends(get_db)):
    """Reports are queued with `action_taken = "pending_review"`."""
    return report_to_dict(file_report(db, payload))
