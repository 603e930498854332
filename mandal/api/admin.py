from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from mandal.db.base import get_db
from mandal.core.audit import audit_actor
from mandal.core.dependencies import require_admin, require_permission
from mandal.core.errors import LedgerError, ledger_http_error
from mandal.models.user import User
from mandal.models.contribution import ContributionStatus
from mandal.models.loan import LoanStatus
from mandal.schemas.contribution import ContributionResponse, ContributionReject
from mandal.schemas.loan import LoanResponse, LoanApprove, LoanReject, InstallmentReject
from mandal.schemas.payment import PaymentSettingsResponse, PaymentSettingsUpdate
from mandal.services.contribution import approve_contribution, reject_contribution, list_contributions
from mandal.services.loan import (
    approve_loan,
    reject_loan,
    approve_installment,
    reject_installment,
    list_loans,
)
from mandal.services.fund import admin_overview
from mandal.services.payment import get_payment_settings, update_payment_settings
from mandal.services.rbac import REVIEW_CONTRIBUTION, REVIEW_LOAN
from mandal.services.scheduler import get_scheduler_status

router = APIRouter(prefix="/api/admin", tags=["admin"])

require_contribution_reviewer = require_permission(REVIEW_CONTRIBUTION)
require_loan_reviewer = require_permission(REVIEW_LOAN)


def _parse_status(enum_cls, value: Optional[str]):
    if not value:
        return None
    try:
        return enum_cls(value.lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise HTTPException(status_code=400, detail=f"Invalid status '{value}'. Allowed: {allowed}")


@router.get("/overview")
def get_overview(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Dashboard counts, fund totals and contributions per month."""
    return admin_overview(db)


# Payment settings

@router.get("/settings/payment", response_model=PaymentSettingsResponse)
def get_payment_settings_endpoint(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return get_payment_settings(db)


@router.put("/settings/payment", response_model=PaymentSettingsResponse)
def update_payment_settings_endpoint(
    data: PaymentSettingsUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Set the UPI id, QR code URL and monthly amount members are asked to pay."""
    changes = data.model_dump(exclude_unset=True)
    try:
        updated = update_payment_settings(db, changes, updated_by=current_user.id)
    except LedgerError as e:
        raise ledger_http_error(e)
    audit_actor(current_user, "Payment settings updated", ", ".join(f"{k}={v}" for k, v in changes.items()))
    return updated


# Contributions

@router.get("/contributions", response_model=List[ContributionResponse])
def get_contributions(
    status: Optional[str] = "pending",
    current_user: User = Depends(require_contribution_reviewer),
    db: Session = Depends(get_db)
):
    """List contributions by status (pending by default; empty string for all)."""
    return list_contributions(db, _parse_status(ContributionStatus, status))


@router.post("/contributions/{contribution_id}/approve", response_model=ContributionResponse)
def approve_contribution_endpoint(
    contribution_id: UUID,
    current_user: User = Depends(require_contribution_reviewer),
    db: Session = Depends(get_db)
):
    try:
        contribution = approve_contribution(db, contribution_id)
    except LedgerError as e:
        raise ledger_http_error(e)
    audit_actor(current_user, "Contribution approved", f"contribution_id={contribution_id}")
    return contribution


@router.post("/contributions/{contribution_id}/reject", response_model=ContributionResponse)
def reject_contribution_endpoint(
    contribution_id: UUID,
    data: Optional[ContributionReject] = None,
    current_user: User = Depends(require_contribution_reviewer),
    db: Session = Depends(get_db)
):
    remarks = data.remarks if data else None
    try:
        contribution = reject_contribution(db, contribution_id, remarks)
    except LedgerError as e:
        raise ledger_http_error(e)
    audit_actor(current_user, "Contribution rejected", f"contribution_id={contribution_id} remarks={remarks or ''}")
    return contribution


# Loans

@router.get("/loans", response_model=List[LoanResponse])
def get_loans(
    status: Optional[str] = None,
    current_user: User = Depends(require_loan_reviewer),
    db: Session = Depends(get_db)
):
    return list_loans(db, _parse_status(LoanStatus, status))


@router.post("/loans/{loan_id}/approve", response_model=LoanResponse)
def approve_loan_endpoint(
    loan_id: UUID,
    data: Optional[LoanApprove] = None,
    current_user: User = Depends(require_loan_reviewer),
    db: Session = Depends(get_db)
):
    """Approve a pending loan, fixing its interest and total payable."""
    rate = data.interest_rate if data else None
    try:
        loan = approve_loan(db, loan_id, rate)
    except LedgerError as e:
        raise ledger_http_error(e)
    audit_actor(current_user, "Loan approved", f"loan_id={loan_id} rate={loan.interest_rate}")
    return loan


@router.post("/loans/{loan_id}/reject", response_model=LoanResponse)
def reject_loan_endpoint(
    loan_id: UUID,
    data: Optional[LoanReject] = None,
    current_user: User = Depends(require_loan_reviewer),
    db: Session = Depends(get_db)
):
    remarks = data.remarks if data else None
    try:
        loan = reject_loan(db, loan_id, remarks)
    except LedgerError as e:
        raise ledger_http_error(e)
    audit_actor(current_user, "Loan rejected", f"loan_id={loan_id}")
    return loan


@router.post("/loans/{loan_id}/installments/{index}/approve", response_model=LoanResponse)
def approve_installment_endpoint(
    loan_id: UUID,
    index: int,
    current_user: User = Depends(require_loan_reviewer),
    db: Session = Depends(get_db)
):
    try:
        loan = approve_installment(db, loan_id, index)
    except LedgerError as e:
        raise ledger_http_error(e)
    audit_actor(current_user, "Loan installment approved", f"loan_id={loan_id} index={index}")
    return loan


@router.post("/loans/{loan_id}/installments/{index}/reject", response_model=LoanResponse)
def reject_installment_endpoint(
    loan_id: UUID,
    index: int,
    data: Optional[InstallmentReject] = None,
    current_user: User = Depends(require_loan_reviewer),
    db: Session = Depends(get_db)
):
    reason = data.reason if data else None
    try:
        loan = reject_installment(db, loan_id, index, reason)
    except LedgerError as e:
        raise ledger_http_error(e)
    audit_actor(current_user, "Loan installment rejected", f"loan_id={loan_id} index={index}")
    return loan


@router.get("/scheduler/status")
def scheduler_status(current_user: User = Depends(require_admin)):
    return get_scheduler_status()
