from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Uuid, text
from sqlalchemy.orm import relationship
import uuid
from mandal.db.base import Base
import enum


class UserRoleEnum(str, enum.Enum):
    """User role."""
    ADMIN = "admin"
    MEMBER = "member"


class ApprovalStatus(str, enum.Enum):
    """Admin approval of a registered member."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class KYCStatus(str, enum.Enum):
    """KYC document verification state."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    VERIFIED = "verified"
    REJECTED = "rejected"


class User(Base):
    """Mandal member or admin.

    Registration, approval and KYC are owned by the identity service; the
    ledger only reads ``approval_status`` and ``kyc_status`` as gates.
    """
    __tablename__ = "user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    mobile = Column(String(20), nullable=True)
    role = Column(SQLEnum(UserRoleEnum, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=UserRoleEnum.MEMBER, nullable=False)
    approval_status = Column(SQLEnum(ApprovalStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=ApprovalStatus.PENDING, nullable=False)
    kyc_status = Column(SQLEnum(KYCStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=KYCStatus.PENDING, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    contributions = relationship("Contribution", back_populates="member")
    loans = relationship("Loan", back_populates="member")
    notifications = relationship("Notification", back_populates="user")
