from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from mandal.models.notification import NotificationCategory


class NotificationResponse(BaseModel):
    id: UUID
    title: str
    description: str
    category: NotificationCategory
    related_id: Optional[UUID] = None
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int


class MarkReadRequest(BaseModel):
    """Omit notification_id to mark everything read."""
    notification_id: Optional[UUID] = None
