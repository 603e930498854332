from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from mandal.db.base import get_db
from mandal.core.dependencies import get_current_active_user
from mandal.models.user import User
from mandal.schemas.notification import NotificationList, MarkReadRequest
from mandal.services.notification import list_notifications, mark_read

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/", response_model=NotificationList)
def get_notifications(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Latest notifications and how many are unread."""
    notifications, unread = list_notifications(db, current_user.id)
    return {"notifications": notifications, "unread_count": unread}


@router.put("/read")
def mark_notifications_read(
    data: Optional[MarkReadRequest] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    updated = mark_read(db, current_user.id, data.notification_id if data else None)
    return {"message": "Notifications marked as read", "updated": updated}
