"""
Notifications inbox and user reports.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.notification import Notification
from app.models.report import Report
from app.schemas.social import ReportCreateRequest
from app.services.profiles import get_profile_or_404

INBOX_LIMIT = 100
REPORT_PENDING = "pending_review"


def notification_to_dict(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "type": n.type,
        "sender_id": n.sender_id,
        "sender_username": n.sender.username if n.sender else None,
        "sender_avatar": n.sender.avatar_url if n.sender else None,
        "post_id": n.post_id,
        "content": n.content,
        "is_read": n.is_read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


def list_notifications(db: Session, user_id: str, limit: int = INBOX_LIMIT) -> list[Notification]:
    get_profile_or_404(db, user_id)
    return list(db.scalars(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    ))


def mark_read(db: Session, notification_id: int) -> Notification:
    n = db.get(Notification, notification_id)
    if n is None:
        raise NotFoundError("notification", notification_id)
    if not n.is_read:
        n.is_read = True
        db.commit()
        db.refresh(n)
    return n


def report_to_dict(r: Report) -> dict[str, Any]:
    return {
        "id": r.id,
        "reporter_id": r.reporter_id,
        "target_user_id": r.target_user_id,
        "target_post_id": r.target_post_id,
        "reason": r.reason,
        "action_taken": r.action_taken,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }


def file_report(db: Session, payload: ReportCreateRequest) -> Report:
    get_profile_or_404(db, payload.reporterId)
    report = Report(
        reporter_id=payload.reporterId,
        target_user_id=payload.targetUserId,
        target_post_id=payload.targetPostId,
        reason=payload.reason,
        action_taken=REPORT_PENDING,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    return report
