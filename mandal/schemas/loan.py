from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from mandal.models.loan import LoanStatus, InstallmentStatus


class LoanRequestCreate(BaseModel):
    """Schema for a member's loan request."""
    amount: Decimal = Field(..., description="Principal requested")
    reason: str = Field(..., description="Why the member needs the loan")
    duration_months: Optional[int] = Field(None, description="Repayment period in months (default 12)")


class LoanApprove(BaseModel):
    interest_rate: Optional[Decimal] = Field(None, description="Annual interest rate percentage; 0 when omitted")


class LoanReject(BaseModel):
    remarks: Optional[str] = None


class InstallmentReject(BaseModel):
    reason: Optional[str] = None


class InstallmentResponse(BaseModel):
    position: int
    amount: Decimal
    paid_at: datetime
    reference_id: Optional[str] = None
    proof_url: Optional[str] = None
    status: InstallmentStatus
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoanResponse(BaseModel):
    id: UUID
    member_id: UUID
    amount: Decimal
    interest_rate: Decimal
    interest_amount: Decimal
    total_payable: Optional[Decimal] = None
    duration_months: int
    pending_amount: Decimal
    provisional_pending_amount: Optional[Decimal] = None
    status: LoanStatus
    reason: Optional[str] = None
    admin_remarks: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    installments: List[InstallmentResponse] = []

    class Config:
        from_attributes = True


class FundSummary(BaseModel):
    total_fund: float
    total_loan_out: float
    available_fund: float
