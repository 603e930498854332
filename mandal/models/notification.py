from sqlalchemy import Column, String, ForeignKey, DateTime, Boolean, Enum as SQLEnum, Text, Uuid, Index, text
from sqlalchemy.orm import relationship
import uuid
from mandal.db.base import Base
import enum


class NotificationCategory(str, enum.Enum):
    """What a notification is about."""
    KYC = "kyc"
    CONTRIBUTION = "contribution"
    LOAN = "loan"
    SYSTEM = "system"


class Notification(Base):
    """In-app notification for one user."""
    __tablename__ = "notification"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(SQLEnum(NotificationCategory, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    related_id = Column(Uuid(as_uuid=True), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("idx_notification_user_read", "user_id", "is_read"),
    )
