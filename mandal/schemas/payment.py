from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal


class PaymentSettingsResponse(BaseModel):
    upi_id: Optional[str] = None
    qr_code_url: Optional[str] = None
    monthly_contribution_amount: Optional[Decimal] = None


class PaymentSettingsUpdate(BaseModel):
    """Only the fields sent are changed; an empty value clears a setting."""
    upi_id: Optional[str] = Field(None, description="UPI VPA members pay to, e.g. mandal@okaxis")
    qr_code_url: Optional[str] = None
    monthly_contribution_amount: Optional[str] = Field(None, description="Expected contribution per month")


class UpiPaymentDetails(BaseModel):
    upi_url: str
    upi_vpa: str
    upi_name: str
    amount: Decimal
    qr_code_url: Optional[str] = None
    month_label: str
    month_key: str
    note: str
    payment_intent_id: str
