from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, status
from sqlalchemy.orm import Session
from pathlib import Path
from typing import List
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
from mandal.schemas.contribution import ContributionResponse, ContributionStats
from mandal.schemas.payment import UpiPaymentDetails
from mandal.services.contribution import submit_contribution, list_member_contributions
from mandal.services.fund import contribution_export, contribution_stats
from mandal.services.payment import get_upi_payment_details
from mandal.services.rbac import SUBMIT_CONTRIBUTION, VIEW_STATS

router = APIRouter(prefix="/api/contributions", tags=["contributions"])


@router.post("/", response_model=ContributionResponse, status_code=status.HTTP_201_CREATED)
def submit_contribution_endpoint(
    month: str = Form(...),
    amount: str = Form(...),
    provider: str = Form(...),
    file: UploadFile = File(...),
    current_user: User = Depends(require_approved_member(SUBMIT_CONTRIBUTION)),
    storage=Depends(get_image_storage),
    ocr=Depends(get_ocr_extractor),
    db: Session = Depends(get_db)
):
    """Submit this month's contribution with the UPI payment screenshot."""
    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Payment slip image is required")

    try:
        contribution = submit_contribution(
            db=db,
            member_id=current_user.id,
            month=month,
            claimed_amount=amount,
            image=content,
            declared_provider=provider,
            storage=storage,
            ocr=ocr,
            extension=Path(file.filename or "").suffix or ".jpg",
        )
    except LedgerError as e:
        raise ledger_http_error(e)

    audit_actor(current_user, "Contribution submitted", f"month={contribution.month} amount={contribution.amount}")
    return contribution


@router.get("/mine", response_model=List[ContributionResponse])
def get_my_contributions(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """My contributions, newest month first."""
    return list_member_contributions(db, current_user.id)


@router.get("/stats", response_model=ContributionStats)
def get_contribution_stats(
    current_user: User = Depends(require_permission(VIEW_STATS)),
    db: Session = Depends(get_db)
):
    return contribution_stats(db)


@router.get("/export")
def export_contributions(
    current_user: User = Depends(require_permission(VIEW_STATS)),
    db: Session = Depends(get_db)
):
    """Member-by-month matrix of all contributions that were not rejected."""
    return contribution_export(db)


@router.get("/upi-config", response_model=UpiPaymentDetails)
def get_upi_config(
    current_user: User = Depends(require_approved_member(SUBMIT_CONTRIBUTION)),
    db: Session = Depends(get_db)
):
    """Where and how much to pay for this month's contribution."""
    try:
        return get_upi_payment_details(db, current_user.id)
    except LedgerError as e:
        raise ledger_http_error(e)
