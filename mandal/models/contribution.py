from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Numeric, Enum as SQLEnum, Text, Uuid, UniqueConstraint, text
from sqlalchemy.orm import relationship
import uuid
from mandal.db.base import Base
import enum


class ContributionStatus(str, enum.Enum):
    """Admin review status of a contribution."""
    PENDING = "pending"
    DONE = "done"
    REJECTED = "rejected"


class OcrStatus(str, enum.Enum):
    """Outcome of reading the payment slip."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PaymentProvider(str, enum.Enum):
    """UPI app the member paid with."""
    GPAY = "gpay"
    PHONEPE = "phonepe"

    @property
    def label(self) -> str:
        return {"gpay": "Google Pay", "phonepe": "PhonePe"}[self.value]


class Contribution(Base):
    """One member's claimed payment for one calendar month."""
    __tablename__ = "contribution"
    __table_args__ = (
        UniqueConstraint("member_id", "month", name="uq_contribution_member_month"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False)  # YYYY-MM
    amount = Column(Numeric(12, 2), nullable=False)
    proof_url = Column(String(500), nullable=False)
    provider = Column(SQLEnum(PaymentProvider, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    ocr_status = Column(SQLEnum(OcrStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=OcrStatus.PENDING, nullable=False)

    # Fields read off the slip
    transaction_id = Column(String(64), nullable=True, unique=True)
    ocr_amount = Column(Numeric(12, 2), nullable=True)
    ocr_date = Column(String(32), nullable=True)
    ocr_time = Column(String(16), nullable=True)
    ocr_payee_name = Column(String(150), nullable=True)
    ocr_raw_text = Column(Text, nullable=True)

    status = Column(SQLEnum(ContributionStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=ContributionStatus.PENDING, nullable=False, index=True)
    admin_remarks = Column(Text, nullable=True)
    payment_date = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    member = relationship("User", back_populates="contributions")

    __mapper_args__ = {"version_id_col": version}
