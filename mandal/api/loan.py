from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session
from pathlib import Path
from typing import List
from uuid import UUID
from mandal.db.base import get_db
from mandal.core.audit import audit_actor
from mandal.core.dependencies import (
    get_current_active_user,
    require_approved_member,
    require_permission,
    get_image_storage,
    get_ocr_extractor,
)
from mandal.core.errors import LedgerError, ledger_http_error
from mandal.models.user import User
from mandal.schemas.loan import LoanRequestCreate, LoanResponse, FundSummary
from mandal.services.fund import compute_available_fund
from mandal.services.loan import request_loan, pay_installment, list_member_loans
from mandal.services.rbac import REQUEST_LOAN, PAY_INSTALLMENT, VIEW_FUND

router = APIRouter(prefix="/api/loans", tags=["loans"])


@router.post("/request", response_model=LoanResponse, status_code=201)
def request_loan_endpoint(
    loan_data: LoanRequestCreate,
    current_user: User = Depends(require_approved_member(REQUEST_LOAN)),
    db: Session = Depends(get_db)
):
    """Request a loan from the pooled fund."""
    try:
        loan = request_loan(
            db=db,
            member_id=current_user.id,
            amount=loan_data.amount,
            reason=loan_data.reason,
            duration=loan_data.duration_months,
        )
    except LedgerError as e:
        raise ledger_http_error(e)

    audit_actor(current_user, "Loan requested", f"loan_id={loan.id} amount={loan.amount}")
    return loan


@router.post("/{loan_id}/pay", response_model=LoanResponse)
def pay_installment_endpoint(
    loan_id: UUID,
    amount: str = Form(...),
    file: UploadFile = File(...),
    current_user: User = Depends(require_approved_member(PAY_INSTALLMENT)),
    storage=Depends(get_image_storage),
    ocr=Depends(get_ocr_extractor),
    db: Session = Depends(get_db)
):
    """Pay part (or all) of a loan with a payment screenshot."""
    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Payment slip image is required")

    try:
        loan = pay_installment(
            db=db,
            loan_id=loan_id,
            member_id=current_user.id,
            amount=amount,
            image=content,
            storage=storage,
            ocr=ocr,
            extension=Path(file.filename or "").suffix or ".jpg",
        )
    except LedgerError as e:
        raise ledger_http_error(e)

    audit_actor(current_user, "Loan installment submitted", f"loan_id={loan.id} amount={amount}")
    return loan


@router.get("/mine", response_model=List[LoanResponse])
def get_my_loans(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    return list_member_loans(db, current_user.id)


@router.get("/fund-summary", response_model=FundSummary)
def get_fund_summary(
    current_user: User = Depends(require_permission(VIEW_FUND)),
    db: Session = Depends(get_db)
):
    """Total fund, money out on loan and what is still available."""
    return compute_available_fund(db).as_dict()
