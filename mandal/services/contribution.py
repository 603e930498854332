"""Contribution lifecycle: submit with a payment slip, then admin review."""
import logging
import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from mandal.core.config import settings
from mandal.core.errors import (
    DuplicateRecord,
    PolicyViolation,
    RecordNotFound,
    StateConflict,
    ValidationFailed,
)
from mandal.models.contribution import Contribution, ContributionStatus, OcrStatus, PaymentProvider
from mandal.models.notification import NotificationCategory
from mandal.services.ledger import format_currency, parse_amount, round_currency
from mandal.services.member import ensure_member_can_transact, get_member
from mandal.services.notification import notify, notify_admins
from mandal.services.ocr import OcrResult, parse_slip_date

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def parse_provider(raw) -> PaymentProvider:
    try:
        return PaymentProvider(str(raw).strip().lower())
    except ValueError:
        raise ValidationFailed("INVALID_PROVIDER", "Provider must be one of: gpay, phonepe")


def parse_month(raw) -> str:
    month = str(raw or "").strip()
    if not MONTH_PATTERN.match(month):
        raise ValidationFailed("INVALID_MONTH", "Month must be in YYYY-MM format")
    return month


def _duplicate_month(month: str) -> DuplicateRecord:
    return DuplicateRecord("DUPLICATE_MONTH", f"A contribution for {month} has already been submitted")


def _duplicate_transaction() -> DuplicateRecord:
    return DuplicateRecord("DUPLICATE_TRANSACTION", "This payment slip has already been used for another contribution")


def _check_slip(db: Session, ocr_result: OcrResult, provider: PaymentProvider) -> None:
    """Reject slips that cannot back a contribution."""
    if not ocr_result.transaction_id:
        if settings.ALLOW_UNREADABLE_SLIPS:
            return
        raise PolicyViolation(
            "OCR_ILLEGIBLE",
            "Could not read a transaction ID from the slip. Please upload a clearer screenshot.",
        )

    used = db.query(Contribution.id).filter(Contribution.transaction_id == ocr_result.transaction_id).first()
    if used:
        raise _duplicate_transaction()

    detected = ocr_result.detected_provider
    if detected is None:
        raise PolicyViolation(
            "PROVIDER_UNDETECTED",
            "Could not tell which payment app produced this slip. Please upload the original screenshot.",
        )
    if detected != provider:
        raise PolicyViolation(
            "PROVIDER_MISMATCH",
            f"You selected {provider.label} but the slip looks like a {detected.label} payment.",
        )


def submit_contribution(
    db: Session,
    member_id: UUID,
    month: str,
    claimed_amount,
    image: bytes,
    declared_provider: str,
    storage,
    ocr,
    extension: str = ".jpg",
) -> Contribution:
    """
    Record a member's monthly contribution backed by a UPI payment slip.

    Validation runs before anything is written. The slip is stored first so
    the OCR engine can read it, and discarded again if the slip is rejected.
    """
    member = ensure_member_can_transact(db, member_id)
    provider = parse_provider(declared_provider)
    month = parse_month(month)
    amount = parse_amount(claimed_amount)

    existing = db.query(Contribution.id).filter(
        Contribution.member_id == member_id,
        Contribution.month == month,
    ).first()
    if existing:
        raise _duplicate_month(month)

    stored = storage.store(image, folder_hint=str(member_id), name_hint=month, extension=extension)
    try:
        ocr_result = ocr.extract(stored.url)
        _check_slip(db, ocr_result, provider)
    except Exception:
        storage.discard(stored.url)
        raise

    contribution = Contribution(
        member_id=member_id,
        month=month,
        amount=amount,
        proof_url=stored.url,
        provider=provider,
        ocr_status=OcrStatus.SUCCESS if ocr_result.transaction_id else OcrStatus.FAILED,
        transaction_id=ocr_result.transaction_id,
        ocr_amount=round_currency(ocr_result.amount) if ocr_result.amount is not None else None,
        ocr_date=ocr_result.date,
        ocr_time=ocr_result.time,
        ocr_payee_name=ocr_result.payee_name,
        ocr_raw_text=ocr_result.raw_text,
        status=ContributionStatus.PENDING,
    )
    db.add(contribution)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        storage.discard(stored.url)
        if "transaction_id" in str(exc.orig).lower():
            raise _duplicate_transaction()
        raise _duplicate_month(month)
    db.refresh(contribution)
    logger.info(f"Contribution {contribution.id} submitted by member {member_id} for {month}")

    title = "New contribution submitted"
    description = f"{member.name} submitted {format_currency(amount)} for {month}."
    admin_emails = notify_admins(db, title, description, NotificationCategory.CONTRIBUTION, contribution.id)
    if admin_emails:
        from mandal.core.email import send_admin_alert
        send_admin_alert(admin_emails, title, description)
    return contribution


def get_contribution(db: Session, contribution_id: UUID, lock: bool = False) -> Contribution:
    query = db.query(Contribution).filter(Contribution.id == contribution_id)
    if lock:
        # Re-read the row even if this session already holds a copy of it.
        query = query.populate_existing().with_for_update()
    contribution = query.first()
    if not contribution:
        raise RecordNotFound("Contribution")
    return contribution


def _commit_review(db: Session, contribution: Contribution) -> None:
    """Commit a review, turning a lost race into CONCURRENT_UPDATE."""
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning(f"Concurrent review of contribution {contribution.id}: {exc}")
        raise StateConflict(
            "CONCURRENT_UPDATE",
            "This contribution was reviewed by someone else. Please reload and try again.",
        )
    db.refresh(contribution)


def _notify_member(db: Session, contribution: Contribution, remarks: str = "") -> None:
    approved = contribution.status == ContributionStatus.DONE
    title = "Contribution approved" if approved else "Contribution rejected"
    if approved:
        description = f"Your contribution for {contribution.month} has been verified."
    else:
        description = f"Your contribution for {contribution.month} was rejected."
        if remarks:
            description += f" Remarks: {remarks}"
    notify(db, [contribution.member_id], title, description, NotificationCategory.CONTRIBUTION, contribution.id)

    member = get_member(db, contribution.member_id)
    if member.email:
        from mandal.core.email import send_contribution_status_email
        send_contribution_status_email(member.email, member.name, contribution.status.value, contribution.month, remarks)


def approve_contribution(db: Session, contribution_id: UUID) -> Contribution:
    """Mark a pending contribution done; it now counts towards the fund."""
    contribution = get_contribution(db, contribution_id, lock=True)
    if contribution.status != ContributionStatus.PENDING:
        raise StateConflict(
            "INVALID_TRANSITION",
            f"Only pending contributions can be approved (current status: {contribution.status.value})",
        )

    contribution.status = ContributionStatus.DONE
    contribution.payment_date = parse_slip_date(contribution.ocr_date) or datetime.utcnow()
    contribution.reviewed_at = datetime.utcnow()
    _commit_review(db, contribution)
    logger.info(f"Contribution {contribution.id} approved")

    _notify_member(db, contribution)
    return contribution


def reject_contribution(db: Session, contribution_id: UUID, remarks: Optional[str] = "") -> Contribution:
    """Reject a contribution. Rejecting again replaces the remarks."""
    contribution = get_contribution(db, contribution_id, lock=True)
    if contribution.status not in (ContributionStatus.PENDING, ContributionStatus.REJECTED):
        raise StateConflict(
            "INVALID_TRANSITION",
            f"Only pending contributions can be rejected (current status: {contribution.status.value})",
        )

    remarks = (remarks or "").strip()
    contribution.status = ContributionStatus.REJECTED
    contribution.admin_remarks = remarks
    contribution.reviewed_at = datetime.utcnow()
    _commit_review(db, contribution)
    logger.info(f"Contribution {contribution.id} rejected")

    _notify_member(db, contribution, remarks)
    return contribution


def list_member_contributions(db: Session, member_id: UUID) -> List[Contribution]:
    return db.query(Contribution).filter(
        Contribution.member_id == member_id
    ).order_by(Contribution.month.desc(), Contribution.created_at.desc()).all()


def list_contributions(db: Session, status: Optional[ContributionStatus] = None) -> List[Contribution]:
    query = db.query(Contribution)
    if status is not None:
        query = query.filter(Contribution.status == status)
    return query.order_by(Contribution.created_at.desc()).all()