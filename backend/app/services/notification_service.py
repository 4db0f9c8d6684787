"""
services/notification_service.py — In-app notifications.

Notifications are rows written in the same transaction as the action that
caused them (friend request, accepted request, direct message, shared route
or trip). Nothing is pushed; clients poll GET /users/notifications.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.errors import ErrorCode, not_found
from backend.app.models.base import isoformat, utcnow
from backend.app.models.notification import Notification, NotificationType
from backend.app.utils.pagination import paginate


def build_notification_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "read": notification.read,
        "read_at": isoformat(notification.read_at),
        "action_url": notification.action_url,
        "created_at": isoformat(notification.created_at),
    }


def notify(
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        session: Session,
        data: dict | None = None,
        action_url: str | None = None,
) -> Notification:
    """Queues a notification row for `user_id` in the caller's transaction."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message[:500],
        data=data,
        action_url=action_url,
    )
    session.add(notification)
    return notification


def list_notifications(
        user_id: int,
        page: int,
        limit: int,
        session: Session,
        unread: bool | None = None,
) -> dict:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread is not None:
        stmt = stmt.where(Notification.read.is_(not unread))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())

    items, pagination = paginate(stmt, page, limit, session)
    return {
        "notifications": [build_notification_dict(n) for n in items],
        "pagination": pagination,
    }


def mark_read(notification_id: int, user_id: int, session: Session) -> dict:
    """Marks one of the caller's notifications read. Re-marking keeps the first read_at."""
    notification = session.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    ).scalar_one_or_none()
    if notification is None:
        raise not_found(ErrorCode.NOTIFICATION_NOT_FOUND, "Notification", notification_id)

    if not notification.read:
        notification.read = True
        notification.read_at = utcnow()
        session.flush()

    return {"notification": build_notification_dict(notification)}
