from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from mandal.db.base import get_db
from mandal.models.user import User, ApprovalStatus
from mandal.core.security import decode_access_token
from mandal.core.errors import MemberNotEligible, ledger_http_error
from mandal.services.rbac import (
    Actor,
    is_allowed,
    MEMBER_ACTIONS,
    ADMINISTER,
)
from mandal.services.storage import LocalImageStorage
from mandal.services.ocr import TesseractExtractor

# Tokens are issued by the identity service; this URL is only advertised in the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = decode_access_token(token)
    if user_id is None:
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current user, refusing deactivated accounts."""
    if current_user.is_active is not True:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )
    return current_user


def _ineligible_message(actor: Actor) -> str:
    if actor.approval_status != ApprovalStatus.APPROVED:
        return "Your account is awaiting admin approval."
    return "Please complete KYC verification to use this service."


def require_permission(action: str):
    """Dependency factory checking ``is_allowed`` for the current user."""
    async def permission_checker(
        current_user: User = Depends(get_current_active_user),
    ) -> User:
        actor = Actor.from_user(current_user)
        if is_allowed(actor, action):
            return current_user
        if not actor.is_admin and action in MEMBER_ACTIONS:
            raise ledger_http_error(MemberNotEligible(_ineligible_message(actor)))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User is not permitted to perform: {action}"
        )
    return permission_checker


require_admin = require_permission(ADMINISTER)


def require_approved_member(action: str):
    """Member-only actions; same check, named for readability at the route."""
    return require_permission(action)


def get_image_storage() -> LocalImageStorage:
    return LocalImageStorage()


def get_ocr_extractor(storage: LocalImageStorage = Depends(get_image_storage)) -> TesseractExtractor:
    return TesseractExtractor(storage)
