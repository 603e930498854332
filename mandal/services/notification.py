"""In-app notifications.

Emission is fire-and-forget: callers emit only after the ledger change has
been committed, so the notification commit (or its rollback) is separate, and
a failure is logged rather than raised.
"""
import logging
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mandal.models.notification import Notification, NotificationCategory
from mandal.services.member import get_admin_recipients

logger = logging.getLogger(__name__)

NOTIFICATION_PAGE_SIZE = 50


def notify(
    db: Session,
    recipient_ids: Iterable[UUID],
    title: str,
    description: str,
    category: NotificationCategory,
    related_id: Optional[UUID] = None,
) -> List[Notification]:
    """Create one notification per recipient. Never raises."""
    created: List[Notification] = []
    try:
        for user_id in recipient_ids:
            notification = Notification(
                user_id=user_id,
                title=title,
                description=description,
                category=category,
                related_id=related_id,
            )
            db.add(notification)
            created.append(notification)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Failed to create '{title}' notification: {exc}")
        return []
    return created


def notify_admins(
    db: Session,
    title: str,
    description: str,
    category: NotificationCategory,
    related_id: Optional[UUID] = None,
) -> List[str]:
    """Fan a notification out to every active admin; returns their emails for the email side-channel."""
    try:
        admins = get_admin_recipients(db)
    except SQLAlchemyError as exc:
        logger.error(f"Could not look up admins for '{title}' notification: {exc}")
        return []
    if not admins:
        logger.warning(f"No active admin to receive '{title}' notification")
        return []
    notify(db, [admin.id for admin in admins], title, description, category, related_id)
    return [admin.email for admin in admins if admin.email]


def list_notifications(db: Session, user_id: UUID) -> Tuple[List[Notification], int]:
    """Latest notifications for a user and the number still unread."""
    notifications = db.query(Notification).filter(
        Notification.user_id == user_id
    ).order_by(Notification.created_at.desc()).limit(NOTIFICATION_PAGE_SIZE).all()
    unread = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False,  # noqa: E712
    ).count()
    return notifications, unread


def mark_read(db: Session, user_id: UUID, notification_id: Optional[UUID] = None) -> int:
    """Mark one notification (or all of the user's) as read."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if notification_id is not None:
        query = query.filter(Notification.id == notification_id)
    updated = query.update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return updated
