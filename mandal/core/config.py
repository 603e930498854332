from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

# Find .env file - check mandal/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
APP_ENV = BASE_DIR / "mandal" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use mandal/.env if it exists, otherwise try root .env
env_file = str(APP_ENV) if APP_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # JWT (tokens are issued by the identity service, only verified here)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: Optional[int] = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    REPLY_TO_EMAIL: Optional[str] = None

    # Slip storage and OCR
    UPLOADS_DIR: str = str(BASE_DIR / "uploads")
    TESSERACT_CMD: Optional[str] = None
    OCR_LANG: str = "eng"
    ALLOW_UNREADABLE_SLIPS: bool = False

    # Ledger
    DEFAULT_LOAN_DURATION_MONTHS: int = 12
    CURRENCY_SYMBOL: str = "₹"
    UPI_PAYEE_NAME: str = "Mandal Group"

    # Reminders
    ENABLE_SCHEDULER: bool = True
    SCHEDULER_INTERVAL_MINUTES: int = 360
    REMINDER_LAST_DAY: int = 10

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = env_file
        case_sensitive = True


settings = Settings()

# Derived paths
UPLOADS_DIR = Path(settings.UPLOADS_DIR)
PROOFS_DIR = UPLOADS_DIR / "proofs"
LOGS_DIR = BASE_DIR / "logs"
