"""Bearer tokens. The identity service issues them; the ledger only needs the subject back."""
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
from jose import JWTError, jwt
from mandal.core.config import settings


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None, role: Optional[str] = None) -> str:
    """Create a JWT for ``user_id`` (used by operator scripts and tests)."""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": str(user_id), "exp": expire}
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[UUID]:
    """Verify a JWT and return its subject as a user id, or None if anything is off."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return UUID(str(payload["sub"]))
    except (JWTError, KeyError, ValueError):
        return None
