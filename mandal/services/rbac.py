"""Permission checks as a pure function of (actor, action, resource).

Nothing here touches the database or the request object; callers build an
``Actor`` snapshot from whatever user record they already hold.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from mandal.models.user import UserRoleEnum, ApprovalStatus, KYCStatus

SUBMIT_CONTRIBUTION = "contribution:submit"
REVIEW_CONTRIBUTION = "contribution:review"
REQUEST_LOAN = "loan:request"
PAY_INSTALLMENT = "loan:pay"
REVIEW_LOAN = "loan:review"
VIEW_FUND = "fund:view"
VIEW_STATS = "stats:view"
VIEW_PROOF = "proof:view"
ADMINISTER = "admin:dashboard"

MEMBER_ACTIONS = {SUBMIT_CONTRIBUTION, REQUEST_LOAN, PAY_INSTALLMENT, VIEW_FUND, VIEW_STATS}
ADMIN_ACTIONS = {REVIEW_CONTRIBUTION, REVIEW_LOAN, VIEW_FUND, VIEW_STATS, ADMINISTER}


@dataclass(frozen=True)
class Actor:
    id: UUID
    role: UserRoleEnum
    approval_status: ApprovalStatus
    kyc_status: KYCStatus
    is_active: bool = True

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            id=user.id,
            role=user.role,
            approval_status=user.approval_status,
            kyc_status=user.kyc_status,
            is_active=bool(user.is_active),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRoleEnum.ADMIN

    @property
    def is_eligible_member(self) -> bool:
        return (
            self.role == UserRoleEnum.MEMBER
            and self.approval_status == ApprovalStatus.APPROVED
            and self.kyc_status == KYCStatus.VERIFIED
        )


@dataclass(frozen=True)
class Resource:
    owner_id: Optional[UUID] = None


def is_allowed(actor: Actor, action: str, resource: Optional[Resource] = None) -> bool:
    """Decide whether ``actor`` may perform ``action`` on ``resource``."""
    if not actor.is_active:
        return False

    if action == VIEW_PROOF:
        if actor.is_admin:
            return True
        return resource is not None and resource.owner_id == actor.id

    if actor.is_admin:
        return action in ADMIN_ACTIONS

    if action not in MEMBER_ACTIONS or not actor.is_eligible_member:
        return False
    if resource is not None and resource.owner_id is not None:
        return resource.owner_id == actor.id
    return True
