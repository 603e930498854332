"""Fund Ledger: read-side aggregation of the pooled fund.

Nothing here is cached. Contribution and loan approvals can land between
two requests, so every loan-request validation reads the totals fresh.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from mandal.models.contribution import Contribution, ContributionStatus
from mandal.models.loan import Loan, LoanStatus, LoanInstallment, InstallmentStatus, OUTSTANDING_LOAN_STATUSES
from mandal.models.user import User, UserRoleEnum, ApprovalStatus, KYCStatus
from mandal.services.ledger import round_currency, ZERO


@dataclass(frozen=True)
class FundSnapshot:
    total_fund: Decimal
    total_loan_out: Decimal
    available_fund: Decimal

    def as_dict(self) -> dict:
        return {key: float(value) for key, value in asdict(self).items()}


def compute_available_fund(db: Session) -> FundSnapshot:
    """Approved contributions minus principal of approved/active loans, floored at zero."""
    total_fund = db.query(func.coalesce(func.sum(Contribution.amount), 0)).filter(
        Contribution.status == ContributionStatus.DONE
    ).scalar()
    total_loan_out = db.query(func.coalesce(func.sum(Loan.amount), 0)).filter(
        Loan.status.in_(OUTSTANDING_LOAN_STATUSES)
    ).scalar()

    total_fund = round_currency(total_fund)
    total_loan_out = round_currency(total_loan_out)
    available = max(ZERO, round_currency(total_fund - total_loan_out))
    return FundSnapshot(total_fund=total_fund, total_loan_out=total_loan_out, available_fund=available)


def monthly_totals(db: Session) -> List[dict]:
    """Approved contribution totals per month, oldest first."""
    rows = db.query(Contribution.month, func.sum(Contribution.amount)).filter(
        Contribution.status == ContributionStatus.DONE
    ).group_by(Contribution.month).order_by(Contribution.month.asc()).all()
    return [{"month": month, "total": float(round_currency(total))} for month, total in rows]


def contribution_stats(db: Session) -> dict:
    total_contributions = db.query(func.count(Contribution.id)).scalar() or 0
    snapshot = compute_available_fund(db)
    return {
        "total_contributions": total_contributions,
        "total_amount": float(snapshot.total_fund),
        "monthly_totals": monthly_totals(db),
    }


def admin_overview(db: Session) -> dict:
    """Counts and totals for the admin dashboard."""
    members = db.query(User).filter(User.role == UserRoleEnum.MEMBER)
    total_members = members.count()
    pending_approvals = members.filter(User.approval_status == ApprovalStatus.PENDING).count()
    pending_kyc = members.filter(User.kyc_status.in_([KYCStatus.PENDING, KYCStatus.UNDER_REVIEW])).count()

    pending_contributions = db.query(func.count(Contribution.id)).filter(
        Contribution.status == ContributionStatus.PENDING
    ).scalar() or 0
    pending_loans = db.query(func.count(Loan.id)).filter(Loan.status == LoanStatus.PENDING).scalar() or 0
    pending_installments = db.query(func.count(LoanInstallment.id)).filter(
        LoanInstallment.status == InstallmentStatus.PENDING
    ).scalar() or 0

    return {
        "stats": {
            "total_members": total_members,
            "pending_approvals": pending_approvals,
            "pending_kyc": pending_kyc,
            "pending_contributions": pending_contributions,
            "pending_loans": pending_loans,
            "pending_installments": pending_installments,
            **compute_available_fund(db).as_dict(),
        },
        "contributions_by_month": monthly_totals(db),
    }


def contribution_export(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Member-by-month matrix of every contribution that was not rejected.

    ``member_wise`` rows are sorted by name and carry per-month amounts and a
    total; ``month_wise`` rows are sorted by month. Pending contributions are
    included, so the grand total can exceed the fund until they are reviewed.
    """
    rows = db.query(Contribution, User).join(User, Contribution.member_id == User.id).filter(
        Contribution.status != ContributionStatus.REJECTED
    ).order_by(Contribution.month.asc(), Contribution.created_at.asc()).all()

    by_member = {}
    by_month = {}
    grand_total = ZERO
    for contribution, member in rows:
        member_id = str(member.id)
        amount = round_currency(contribution.amount)

        member_row = by_member.setdefault(member_id, {
            "id": member_id,
            "name": member.name,
            "email": member.email or "",
            "mobile": member.mobile or "",
            "months": {},
            "total": ZERO,
            "count": 0,
        })
        member_row["months"][contribution.month] = member_row["months"].get(contribution.month, ZERO) + amount
        member_row["total"] += amount
        member_row["count"] += 1

        month_row = by_month.setdefault(contribution.month, {"month": contribution.month, "members": {}, "total": ZERO})
        cell = month_row["members"].setdefault(member_id, {"name": member.name, "amount": ZERO})
        cell["amount"] += amount
        month_row["total"] += amount

        grand_total += amount

    member_wise = []
    for row in sorted(by_member.values(), key=lambda r: r["name"].lower()):
        row["months"] = {month: float(value) for month, value in row["months"].items()}
        row["total"] = float(row["total"])
        member_wise.append(row)

    month_wise = []
    for month in sorted(by_month):
        row = by_month[month]
        for cell in row["members"].values():
            cell["amount"] = float(cell["amount"])
        row["total"] = float(row["total"])
        month_wise.append(row)

    return {
        "grand_total": float(grand_total),
        "total_contributions": len(rows),
        "total_members": len(member_wise),
        "member_wise": member_wise,
        "month_wise": month_wise,
        "all_months": sorted(by_month),
        "generated_at": (now or datetime.utcnow()).isoformat(),
    }
