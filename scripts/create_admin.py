"""
Create (or promote) a mandal admin and print a bearer token for it.
Usage: python scripts/create_admin.py --email admin@mandal.local --name "Admin"
"""
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.exc import SQLAlchemyError

from mandal.db.base import SessionLocal
from mandal.models.user import User, UserRoleEnum, ApprovalStatus, KYCStatus
from mandal.core.security import create_access_token


def create_admin(email: str, name: str = "Admin", token_days: int = 30) -> str:
    """Create an admin user, or promote an existing user to admin. Returns a token."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.role = UserRoleEnum.ADMIN
            user.approval_status = ApprovalStatus.APPROVED
            user.is_active = True
            print(f"User {email} promoted to admin.")
        else:
            user = User(
                email=email,
                name=name,
                role=UserRoleEnum.ADMIN,
                approval_status=ApprovalStatus.APPROVED,
                kyc_status=KYCStatus.VERIFIED,
                is_active=True,
            )
            db.add(user)
            print(f"Admin user {email} created.")
        db.commit()
        db.refresh(user)

        token = create_access_token(user.id, expires_delta=timedelta(days=token_days), role=user.role.value)
        print(f"   Id: {user.id}")
        print(f"   Token (valid {token_days} days): {token}")
        return token
    except SQLAlchemyError as e:
        db.rollback()
        print(f"Error creating admin user: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create or promote a mandal admin")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--name", default="Admin", help="Display name")
    parser.add_argument("--token-days", type=int, default=30, help="Token lifetime in days")

    args = parser.parse_args()
    create_admin(email=args.email, name=args.name, token_days=args.token_days)
