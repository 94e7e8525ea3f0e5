"""Notification sink."""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db import degrade_on_outage
from app.models.notification import Notification
from app.utils.errors import not_found
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    *,
    user_id: int,
    type: str,
    title: str,
    message: str,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> Notification:
    """Stage a notification for ``user_id``; the caller commits."""

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
    )
    db.add(notification)
    logger.info("Notification queued", extra={"user_id": user_id, "type": type})
    return notification


@degrade_on_outage(list)
def list_notifications(
    db: Session, user_id: int, *, unread_only: bool = False, limit: int = 20, offset: int = 0
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


def mark_read(db: Session, notification_id: int, *, user_id: int) -> Notification:
    """Mark one of the caller's notifications as read; ``read_at`` is set once."""

    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise not_found("NOTIFICATION_NOT_FOUND", "Notification not found.")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
    return notification
