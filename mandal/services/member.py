from dataclasses import dataclass
from sqlalchemy.orm import Session
from mandal.core.errors import MemberNotEligible, RecordNotFound
from mandal.models.user import User, UserRoleEnum, ApprovalStatus, KYCStatus
from uuid import UUID
from typing import List


@dataclass(frozen=True)
class MemberGate:
    approved: bool
    kyc_verified: bool

    @property
    def open(self) -> bool:
        return self.approved and self.kyc_verified


def get_member(db: Session, member_id: UUID) -> User:
    member = db.query(User).filter(User.id == member_id).first()
    if not member:
        raise RecordNotFound("Member")
    return member


def get_member_gate_status(db: Session, member_id: UUID) -> MemberGate:
    """Read the identity service's approval and KYC state for a member."""
    member = get_member(db, member_id)
    return MemberGate(
        approved=member.is_active and member.approval_status == ApprovalStatus.APPROVED,
        kyc_verified=member.kyc_status == KYCStatus.VERIFIED,
    )


def ensure_member_can_transact(db: Session, member_id: UUID) -> User:
    """Raise MemberNotEligible unless the member is approved and KYC-verified."""
    gate = get_member_gate_status(db, member_id)
    if not gate.approved:
        raise MemberNotEligible("Your account is awaiting admin approval.")
    if not gate.kyc_verified:
        raise MemberNotEligible("Please complete KYC verification to use this service.")
    return get_member(db, member_id)


def get_admin_recipients(db: Session) -> List[User]:
    """All active admins; notifications fan out to every one of them."""
    return db.query(User).filter(
        User.role == UserRoleEnum.ADMIN,
        User.is_active == True,  # noqa: E712
    ).all()


def list_reminder_candidates(db: Session) -> List[User]:
    """Members who are allowed to contribute."""
    return db.query(User).filter(
        User.role == UserRoleEnum.MEMBER,
        User.is_active == True,  # noqa: E712
        User.approval_status == ApprovalStatus.APPROVED,
        User.kyc_status == KYCStatus.VERIFIED,
    ).all()
