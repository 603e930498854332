from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Numeric, Enum as SQLEnum, Text, Uuid, UniqueConstraint, text, func
from sqlalchemy.orm import relationship
import uuid
from mandal.db.base import Base
import enum
from decimal import Decimal


class LoanStatus(str, enum.Enum):
    """Loan status.

    ``approved`` only appears on legacy records; approval moves a loan
    straight to ``active``.
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    CLOSED = "closed"


class InstallmentStatus(str, enum.Enum):
    """Review status of one repayment."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


PAYABLE_LOAN_STATUSES = (LoanStatus.ACTIVE, LoanStatus.APPROVED)
OUTSTANDING_LOAN_STATUSES = (LoanStatus.APPROVED, LoanStatus.ACTIVE)


class Loan(Base):
    """A member's borrowing against the pooled fund."""
    __tablename__ = "loan"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # principal
    interest_rate = Column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    interest_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_payable = Column(Numeric(12, 2), nullable=True)  # set at approval
    duration_months = Column(Integer, nullable=False, default=12)
    pending_amount = Column(Numeric(12, 2), nullable=False)
    provisional_pending_amount = Column(Numeric(12, 2), nullable=True)
    status = Column(SQLEnum(LoanStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=LoanStatus.PENDING, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    admin_remarks = Column(Text, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    member = relationship("User", back_populates="loans")
    installments = relationship(
        "LoanInstallment",
        back_populates="loan",
        order_by="LoanInstallment.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class LoanInstallment(Base):
    """One partial repayment, reviewed independently by an admin."""
    __tablename__ = "loan_installment"
    __table_args__ = (
        UniqueConstraint("loan_id", "position", name="uq_installment_loan_position"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid(as_uuid=True), ForeignKey("loan.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    paid_at = Column(DateTime, nullable=False)
    reference_id = Column(String(64), nullable=True)
    proof_url = Column(String(500), nullable=True)
    status = Column(SQLEnum(InstallmentStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=InstallmentStatus.PENDING, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    # Relationships
    loan = relationship("Loan", back_populates="installments")
