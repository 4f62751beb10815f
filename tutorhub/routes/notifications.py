from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import NotificationNotFound
from ..models import Notification, User

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    body: str
    sessionId: Optional[int]
    read: bool
    createdAt: Optional[datetime]

    @classmethod
    def from_model(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            type=notification.type,
            title=notification.title,
            body=notification.body,
            sessionId=notification.session_id,
            read=notification.read,
            createdAt=notification.created_at,
        )


class NotificationListResponse(BaseModel):
    unread_count: int
    notifications: list[NotificationResponse]


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the caller's notifications, newest first"""
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    unread_count = query.filter(Notification.read.is_(False)).count()
    if unread_only:
        query = query.filter(Notification.read.is_(False))

    notifications = query.order_by(Notification.id.desc()).limit(limit).all()
    return NotificationListResponse(
        unread_count=unread_count,
        notifications=[NotificationResponse.from_model(n) for n in notifications],
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark one of the caller's notifications as read"""
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == current_user.id)
        .first()
    )
    if not notification:
        raise NotificationNotFound()

    notification.read = True
    db.commit()
    db.refresh(notification)
    return NotificationResponse.from_model(notification)
