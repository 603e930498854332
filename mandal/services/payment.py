"""UPI payee details members pay their monthly contribution to.

Admins keep the UPI id, the QR code image URL and the monthly amount in
``system_settings``; members get a ready-made ``upi://pay`` link for the
current month.
"""
import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Optional
from urllib.parse import quote
from uuid import UUID

from sqlalchemy.orm import Session

from mandal.core.config import settings
from mandal.core.errors import PolicyViolation, ValidationFailed
from mandal.models.system import SystemSettings
from mandal.services.ledger import parse_amount
from mandal.services.member import ensure_member_can_transact

logger = logging.getLogger(__name__)

UPI_ID_KEY = "payment_upi_id"
QR_CODE_URL_KEY = "payment_qr_code_url"
MONTHLY_AMOUNT_KEY = "monthly_contribution_amount"

PAYMENT_SETTINGS = {
    "upi_id": (UPI_ID_KEY, "Payment UPI ID"),
    "qr_code_url": (QR_CODE_URL_KEY, "Payment QR Code URL"),
    "monthly_contribution_amount": (MONTHLY_AMOUNT_KEY, "Default monthly contribution amount (INR)"),
}

UPI_ID_PATTERN = re.compile(r"^[A-Za-z0-9.\-_]{2,256}@[A-Za-z][A-Za-z0-9.\-]{1,63}$")


def _read(db: Session, key: str) -> Optional[str]:
    setting = db.query(SystemSettings).filter(SystemSettings.setting_key == key).first()
    return setting.setting_value if setting else None


def get_payment_settings(db: Session) -> dict:
    amount = _read(db, MONTHLY_AMOUNT_KEY)
    return {
        "upi_id": _read(db, UPI_ID_KEY),
        "qr_code_url": _read(db, QR_CODE_URL_KEY),
        "monthly_contribution_amount": Decimal(amount) if amount else None,
    }


def _clean_value(field: str, value) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return None
    value = str(value).strip()
    if field == "upi_id" and not UPI_ID_PATTERN.match(value):
        raise ValidationFailed("INVALID_UPI_ID", "UPI ID must look like name@bank")
    if field == "monthly_contribution_amount":
        return str(parse_amount(value))
    return value


def update_payment_settings(db: Session, changes: dict, updated_by: Optional[UUID] = None) -> dict:
    """
    Upsert the payment settings named in ``changes``.

    Fields left out of ``changes`` are untouched; an empty value clears the
    setting. Everything is validated before anything is written.
    """
    cleaned = {}
    for field, value in changes.items():
        if field not in PAYMENT_SETTINGS:
            continue
        cleaned[field] = _clean_value(field, value)

    for field, value in cleaned.items():
        key, description = PAYMENT_SETTINGS[field]
        setting = db.query(SystemSettings).filter(SystemSettings.setting_key == key).first()
        if setting:
            setting.setting_value = value
            setting.updated_by = updated_by
        else:
            db.add(SystemSettings(
                setting_key=key,
                setting_value=value,
                setting_type="payment",
                description=description,
                updated_by=updated_by,
            ))
    db.commit()
    logger.info(f"Payment settings updated: {', '.join(sorted(cleaned)) or 'nothing'}")
    return get_payment_settings(db)


def get_upi_payment_details(db: Session, member_id: UUID, now: Optional[datetime] = None) -> dict:
    """Payee details and a ``upi://pay`` link for the member's contribution this month."""
    ensure_member_can_transact(db, member_id)
    config = get_payment_settings(db)
    upi_id = config["upi_id"]
    if not upi_id:
        raise PolicyViolation("PAYMENT_NOT_CONFIGURED", "UPI ID not configured. Please contact admin.")
    amount = config["monthly_contribution_amount"]
    if amount is None:
        raise PolicyViolation(
            "PAYMENT_NOT_CONFIGURED",
            "Monthly contribution amount not configured. Please contact admin.",
        )

    now = now or datetime.now()
    month_key = now.strftime("%Y-%m")
    month_label = now.strftime("%b-%Y")
    payee = settings.UPI_PAYEE_NAME
    note = f"Mandal Contribution {month_label}"
    upi_url = (
        f"upi://pay?pa={quote(upi_id, safe='')}&pn={quote(payee, safe='')}"
        f"&am={amount}&cu=INR&tn={quote(note, safe='')}"
    )
    return {
        "upi_url": upi_url,
        "upi_vpa": upi_id,
        "upi_name": payee,
        "amount": amount,
        "qr_code_url": config["qr_code_url"],
        "month_label": month_label,
        "month_key": month_key,
        "note": note,
        "payment_intent_id": f"{member_id}-{month_key}-{int(now.timestamp() * 1000)}",
    }
