"""Endpoints for the calling user's own account."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.notification import Notification
from app.models.user import User
from app.schemas.user import NotificationRead, UserRead
from app.security import get_current_user
from app.services import notifications as notification_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
def read_me(user: User = Depends(get_current_user)) -> User:
    """Return the account bound to the presented API key."""

    return user


@router.get("/me/notifications", response_model=list[NotificationRead])
def my_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[Notification]:
    return notification_service.list_notifications(
        db, user.id, unread_only=unread_only, limit=limit, offset=offset
    )


@router.post("/me/notifications/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Notification:
    return notification_service.mark_read(db, notification_id, user_id=user.id)
