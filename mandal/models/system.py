from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Text, Uuid, text, func
import uuid
from mandal.db.base import Base

POOL_LOCK_KEY = "pool"


class SystemSettings(Base):
    """Admin-managed key/value settings (UPI payee, monthly amount)."""
    __tablename__ = "system_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    setting_key = Column(String(100), nullable=False, unique=True, index=True)
    setting_value = Column(Text, nullable=True)
    setting_type = Column(String(50), nullable=False, default="payment")
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"), onupdate=func.now())
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)


class FundLock(Base):
    """Row locked around loan-request validation so concurrent requests
    cannot both pass the available-fund check."""
    __tablename__ = "fund_lock"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lock_key = Column(String(50), nullable=False, unique=True, index=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"), onupdate=func.now())
