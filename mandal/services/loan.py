"""Loan lifecycle: request, admin approval, installments and closure.

A loan is only ever closed when an admin approves the installment that
brings the approved total up to the amount payable. Installments that are
merely submitted move ``provisional_pending_amount`` (what the member sees
as still owed once everything in review clears) but never the status or the
authoritative ``pending_amount``.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from mandal.core.config import settings
from mandal.core.errors import (
    ExternalDependencyFailure,
    LedgerError,
    PolicyViolation,
    RecordNotFound,
    StateConflict,
    ValidationFailed,
)
from mandal.models.loan import (
    Loan,
    LoanStatus,
    LoanInstallment,
    InstallmentStatus,
    PAYABLE_LOAN_STATUSES,
)
from mandal.models.notification import NotificationCategory
from mandal.models.system import FundLock, POOL_LOCK_KEY
from mandal.services.fund import compute_available_fund
from mandal.services.ledger import (
    calculate_interest,
    calculate_total_payable,
    derive_pending_amount,
    derive_provisional_amount,
    format_currency,
    MAX_AMOUNT,
    parse_amount,
    parse_rate,
    payable_total,
)
from mandal.services.member import ensure_member_can_transact, get_member
from mandal.services.notification import notify, notify_admins

logger = logging.getLogger(__name__)

REFERENCE_ID_MAX_LENGTH = 64
MAX_DURATION_MONTHS = 360


def parse_reason(raw) -> str:
    reason = str(raw or "").strip()
    if not reason:
        raise ValidationFailed("INVALID_REASON", "Please give a reason for the loan")
    return reason


def parse_duration(raw) -> int:
    if raw is None or raw == "":
        return settings.DEFAULT_LOAN_DURATION_MONTHS
    if isinstance(raw, bool):
        raise ValidationFailed("INVALID_DURATION", "Duration must be a positive number of months")
    try:
        duration = int(str(raw).strip())
    except ValueError:
        raise ValidationFailed("INVALID_DURATION", "Duration must be a positive number of months")
    if duration <= 0:
        raise ValidationFailed("INVALID_DURATION", "Duration must be a positive number of months")
    if duration > MAX_DURATION_MONTHS:
        raise ValidationFailed("INVALID_DURATION", f"Duration cannot exceed {MAX_DURATION_MONTHS} months")
    return duration


def _lock_fund(db: Session) -> FundLock:
    """Take the pool lock row for the rest of this transaction."""
    lock = db.query(FundLock).filter(FundLock.lock_key == POOL_LOCK_KEY).with_for_update().first()
    if lock is None:
        lock = FundLock(lock_key=POOL_LOCK_KEY, version=0)
        db.add(lock)
        db.flush()
    lock.version = (lock.version or 0) + 1
    return lock


def _get_loan(db: Session, loan_id: UUID, member_id: Optional[UUID] = None, lock: bool = True) -> Loan:
    query = db.query(Loan).filter(Loan.id == loan_id)
    if member_id is not None:
        query = query.filter(Loan.member_id == member_id)
    if lock:
        query = query.with_for_update()
    loan = query.first()
    if not loan:
        raise RecordNotFound("Loan")
    return loan


def _commit_loan(db: Session, loan: Loan) -> None:
    """Commit a loan change, turning a lost race into CONCURRENT_UPDATE."""
    loan.updated_at = datetime.utcnow()
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.rollback()
        logger.warning(f"Concurrent update on loan {loan.id}: {exc}")
        raise StateConflict("CONCURRENT_UPDATE", "This loan was changed by someone else. Please reload and try again.")
    db.refresh(loan)


def _reconcile(loan: Loan, closing: bool = False) -> None:
    total = payable_total(loan)
    loan.pending_amount = derive_pending_amount(total, loan.installments)
    loan.provisional_pending_amount = derive_provisional_amount(total, loan.installments)
    if closing and loan.pending_amount == 0 and loan.status in PAYABLE_LOAN_STATUSES:
        loan.status = LoanStatus.CLOSED


def request_loan(db: Session, member_id: UUID, amount, reason, duration=None) -> Loan:
    """Ask for a loan against the pooled fund; an admin decides later."""
    member = ensure_member_can_transact(db, member_id)
    amount = parse_amount(amount)
    reason = parse_reason(reason)
    duration = parse_duration(duration)

    _lock_fund(db)
    snapshot = compute_available_fund(db)
    if amount > snapshot.available_fund:
        db.rollback()
        raise PolicyViolation(
            "INSUFFICIENT_FUND",
            f"Insufficient fund. Available fund is {format_currency(snapshot.available_fund)}",
        )

    loan = Loan(
        member_id=member_id,
        amount=amount,
        duration_months=duration,
        pending_amount=amount,
        status=LoanStatus.PENDING,
        reason=reason,
    )
    db.add(loan)
    db.commit()
    db.refresh(loan)
    logger.info(f"Loan {loan.id} requested by member {member_id} for {amount}")

    title = "New loan request"
    description = f"{member.name} requested a loan of {format_currency(amount)}."
    admin_emails = notify_admins(db, title, description, NotificationCategory.LOAN, loan.id)
    if admin_emails:
        from mandal.core.email import send_admin_alert
        send_admin_alert(admin_emails, title, description)
    return loan


def _notify_loan_decision(db: Session, loan: Loan, remarks: str = "") -> None:
    if loan.status == LoanStatus.ACTIVE:
        title = "Loan approved"
        description = (
            f"Your loan of {format_currency(loan.amount)} has been approved. "
            f"Total payable: {format_currency(loan.total_payable)}."
        )
    else:
        title = "Loan rejected"
        description = f"Your loan request of {format_currency(loan.amount)} was rejected."
        if remarks:
            description += f" Remarks: {remarks}"
    notify(db, [loan.member_id], title, description, NotificationCategory.LOAN, loan.id)

    member = get_member(db, loan.member_id)
    if member.email:
        from mandal.core.email import send_loan_status_email
        status = "approved" if loan.status == LoanStatus.ACTIVE else "rejected"
        send_loan_status_email(member.email, member.name, status, remarks)


def approve_loan(db: Session, loan_id: UUID, interest_rate=None) -> Loan:
    """
    Approve a pending loan and fix what the member owes.

    interest = principal * rate/100 * months/12, rounded to paise; the loan
    becomes active with pending_amount = principal + interest.
    """
    loan = _get_loan(db, loan_id)
    if loan.status != LoanStatus.PENDING:
        raise StateConflict(
            "INVALID_TRANSITION",
            f"Only pending loans can be approved (current status: {loan.status.value})",
        )
    rate = parse_rate(interest_rate)
    duration = loan.duration_months or settings.DEFAULT_LOAN_DURATION_MONTHS

    interest = calculate_interest(loan.amount, rate, duration)
    total = calculate_total_payable(loan.amount, interest)
    if total > MAX_AMOUNT:
        raise ValidationFailed(
            "INVALID_RATE",
            f"Interest of {rate}% over {duration} months pushes the total payable past {format_currency(MAX_AMOUNT)}",
        )
    loan.interest_rate = rate
    loan.interest_amount = interest
    loan.total_payable = total
    loan.pending_amount = total
    loan.provisional_pending_amount = total
    loan.status = LoanStatus.ACTIVE
    loan.approved_at = datetime.utcnow()
    _commit_loan(db, loan)
    logger.info(f"Loan {loan.id} approved at {rate}% for {duration} months; total payable {total}")

    _notify_loan_decision(db, loan)
    return loan


def reject_loan(db: Session, loan_id: UUID, remarks: Optional[str] = "") -> Loan:
    """Reject a loan request. Rejecting again replaces the remarks."""
    loan = _get_loan(db, loan_id)
    if loan.status not in (LoanStatus.PENDING, LoanStatus.REJECTED):
        raise StateConflict(
            "INVALID_TRANSITION",
            f"Only pending loans can be rejected (current status: {loan.status.value})",
        )
    remarks = (remarks or "").strip()
    loan.status = LoanStatus.REJECTED
    loan.admin_remarks = remarks
    _commit_loan(db, loan)
    logger.info(f"Loan {loan.id} rejected")

    _notify_loan_decision(db, loan, remarks)
    return loan


def _check_payable(loan: Loan) -> None:
    if loan.status not in PAYABLE_LOAN_STATUSES:
        raise StateConflict("LOAN_NOT_PAYABLE", f"Payments are not accepted on a {loan.status.value} loan")


def _check_within_outstanding(loan: Loan, amount) -> None:
    # Recomputed from the installments; the stored figure can be stale on old rows.
    outstanding = derive_provisional_amount(payable_total(loan), loan.installments)
    if amount > outstanding:
        raise PolicyViolation(
            "EXCEEDS_PENDING",
            f"Payment of {format_currency(amount)} exceeds the pending amount of {format_currency(outstanding)}",
        )


def pay_installment(
    db: Session,
    loan_id: UUID,
    member_id: UUID,
    amount,
    image: bytes,
    storage,
    ocr,
    extension: str = ".jpg",
) -> Loan:
    """
    Submit a repayment with its slip; it waits for admin review.

    The slip is uploaded and read before the loan row is locked, then every
    check is repeated under the lock in case a review landed meanwhile.
    """
    member = ensure_member_can_transact(db, member_id)
    loan = _get_loan(db, loan_id, member_id=member_id, lock=False)
    _check_payable(loan)
    amount = parse_amount(amount)
    _check_within_outstanding(loan, amount)

    stored = storage.store(image, folder_hint=str(member_id), name_hint=f"loan-{loan.id}", extension=extension)
    reference_id = None
    try:
        ocr_result = ocr.extract(stored.url)
        reference_id = ocr_result.reference_id or ocr_result.transaction_id
    except ExternalDependencyFailure as exc:
        logger.warning(f"Could not read reference id from installment slip {stored.url}: {exc.message}")

    db.expire(loan)
    try:
        loan = _get_loan(db, loan_id, member_id=member_id)
        _check_payable(loan)
        _check_within_outstanding(loan, amount)
    except LedgerError:
        storage.discard(stored.url)
        raise

    total = payable_total(loan)
    loan.installments.append(LoanInstallment(
        position=len(loan.installments),
        amount=amount,
        paid_at=datetime.utcnow(),
        reference_id=reference_id[:REFERENCE_ID_MAX_LENGTH] if reference_id else None,
        proof_url=stored.url,
        status=InstallmentStatus.PENDING,
    ))
    loan.provisional_pending_amount = derive_provisional_amount(total, loan.installments)
    try:
        _commit_loan(db, loan)
    except StateConflict:
        storage.discard(stored.url)
        raise
    logger.info(f"Installment of {amount} submitted on loan {loan.id}")

    title = "Loan installment submitted"
    description = f"{member.name} paid {format_currency(amount)} towards a loan."
    admin_emails = notify_admins(db, title, description, NotificationCategory.LOAN, loan.id)
    if admin_emails:
        from mandal.core.email import send_admin_alert
        send_admin_alert(admin_emails, title, description)
    return loan


def _installment_at(loan: Loan, index) -> LoanInstallment:
    try:
        position = int(index)
    except (TypeError, ValueError):
        position = -1
    if position < 0 or position >= len(loan.installments):
        raise StateConflict("INVALID_INDEX", "Installment not found on this loan")
    return loan.installments[position]


def approve_installment(db: Session, loan_id: UUID, index) -> Loan:
    """Approve one installment; the loan closes when nothing is left to pay."""
    loan = _get_loan(db, loan_id)
    installment = _installment_at(loan, index)
    if installment.status != InstallmentStatus.PENDING:
        raise StateConflict(
            "INVALID_TRANSITION",
            f"Only pending installments can be approved (current status: {installment.status.value})",
        )

    installment.status = InstallmentStatus.APPROVED
    installment.reviewed_at = datetime.utcnow()
    installment.rejection_reason = None
    _reconcile(loan, closing=True)
    _commit_loan(db, loan)
    logger.info(f"Installment {index} on loan {loan.id} approved; pending {loan.pending_amount}")

    if loan.status == LoanStatus.CLOSED:
        title = "Loan closed"
        description = f"Your loan of {format_currency(loan.amount)} is fully repaid and has been closed."
    else:
        title = "Installment approved"
        description = (
            f"Your payment of {format_currency(installment.amount)} was approved. "
            f"Remaining: {format_currency(loan.pending_amount)}."
        )
    notify(db, [loan.member_id], title, description, NotificationCategory.LOAN, loan.id)
    return loan


def reject_installment(db: Session, loan_id: UUID, index, reason: Optional[str] = None) -> Loan:
    """Reject one installment. Rejecting again replaces the reason."""
    loan = _get_loan(db, loan_id)
    installment = _installment_at(loan, index)
    if installment.status not in (InstallmentStatus.PENDING, InstallmentStatus.REJECTED):
        raise StateConflict(
            "INVALID_TRANSITION",
            f"Only pending installments can be rejected (current status: {installment.status.value})",
        )

    reason = (reason or "").strip()
    installment.status = InstallmentStatus.REJECTED
    installment.rejection_reason = reason or None
    installment.reviewed_at = datetime.utcnow()
    _reconcile(loan)
    _commit_loan(db, loan)
    logger.info(f"Installment {index} on loan {loan.id} rejected")

    description = f"Your payment of {format_currency(installment.amount)} was rejected."
    if reason:
        description += f" Reason: {reason}"
    notify(db, [loan.member_id], "Installment rejected", description, NotificationCategory.LOAN, loan.id)
    return loan


def list_member_loans(db: Session, member_id: UUID) -> List[Loan]:
    return db.query(Loan).filter(Loan.member_id == member_id).order_by(Loan.created_at.desc()).all()


def list_loans(db: Session, status: Optional[LoanStatus] = None) -> List[Loan]:
    query = db.query(Loan)
    if status is not None:
        query = query.filter(Loan.status == status)
    return query.order_by(Loan.created_at.desc()).all()
