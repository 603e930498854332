from mandal.db.base import Base

# Import all models so Alembic can detect them
from mandal.models.user import User, UserRoleEnum, ApprovalStatus, KYCStatus
from mandal.models.contribution import (
    Contribution,
    ContributionStatus,
    OcrStatus,
    PaymentProvider,
)
from mandal.models.loan import (
    Loan,
    LoanStatus,
    LoanInstallment,
    InstallmentStatus,
)
from mandal.models.notification import Notification, NotificationCategory
from mandal.models.system import FundLock, SystemSettings

__all__ = [
    "Base",
    "User",
    "UserRoleEnum",
    "ApprovalStatus",
    "KYCStatus",
    "Contribution",
    "ContributionStatus",
    "OcrStatus",
    "PaymentProvider",
    "Loan",
    "LoanStatus",
    "LoanInstallment",
    "InstallmentStatus",
    "Notification",
    "NotificationCategory",
    "FundLock",
    "SystemSettings",
]
