from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from mandal.models.contribution import ContributionStatus, OcrStatus, PaymentProvider


class ContributionResponse(BaseModel):
    id: UUID
    member_id: UUID
    month: str
    amount: Decimal
    proof_url: str
    provider: PaymentProvider
    ocr_status: OcrStatus
    transaction_id: Optional[str] = None
    ocr_amount: Optional[Decimal] = None
    ocr_date: Optional[str] = None
    ocr_time: Optional[str] = None
    ocr_payee_name: Optional[str] = None
    status: ContributionStatus
    admin_remarks: Optional[str] = None
    payment_date: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContributionReject(BaseModel):
    """Admin rejection of a contribution."""
    remarks: Optional[str] = Field(None, description="Shown to the member; replaces earlier remarks")


class MonthlyTotal(BaseModel):
    month: str
    total: float


class ContributionStats(BaseModel):
    total_contributions: int
    total_amount: float
    monthly_totals: List[MonthlyTotal]
