"""Reading UPI payment slips.

Two layers: an ``OcrExtractor`` turns a stored image into raw text (the
default one runs Tesseract), and ``parse_payment_text`` pulls the fields the
ledger cares about out of that text. The parser is pure so tests can feed it
slip text directly; extractors can be swapped for deterministic doubles.
"""
import logging
import re
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Protocol

from mandal.core.config import settings
from mandal.core.errors import ExternalDependencyFailure
from mandal.models.contribution import PaymentProvider

logger = logging.getLogger(__name__)

RAW_TEXT_LIMIT = 500

_ID = r"\s*[:#.\-]?\s*([A-Za-z0-9]{8,40})\b"
TRANSACTION_ID_PATTERN = re.compile(
    r"(?:UPI\s+transaction\s+ID|UTR(?:\s*No)?\.?|Transaction\s+ID|Txn\.?\s*ID)" + _ID,
    re.IGNORECASE,
)
REFERENCE_ID_PATTERN = re.compile(
    r"(?:UPI\s+Ref(?:erence)?(?:\s*(?:No|ID|Number))?\.?|\bRef(?:erence)?(?:\s*(?:No|ID|Number))?\.?)" + _ID,
    re.IGNORECASE,
)
BARE_ID_PATTERN = re.compile(r"\b(?=[A-Z0-9]*\d)([A-Z0-9]{12,40})\b")
AMOUNT_PATTERN = re.compile(r"(?:₹|Rs\.?|INR|Amount)\s*[:\-]?\s*(\d[\d,]*(?:\.\d{1,2})?)", re.IGNORECASE)
DATE_PATTERNS = [
    re.compile(r"\b(\d{4}-\d{1,2}-\d{1,2})\b"),
    re.compile(r"\b(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})\b"),
    re.compile(r"\b(\d{1,2}\s+[A-Za-z]{3,9},?\s+\d{4})\b"),
    re.compile(r"\b([A-Za-z]{3,9}\s+\d{1,2},?\s+\d{4})\b"),
]
TIME_PATTERN = re.compile(r"\b(\d{1,2}:\d{2}(?::\d{2})?(?:\s?[AaPp][Mm])?)")
PAYEE_PATTERN = re.compile(r"^\s*(?:paid\s+to|to)\b\s*[:\-]?\s*(.*)$", re.IGNORECASE)
PROVIDER_PATTERNS = {
    PaymentProvider.GPAY: re.compile(r"google\s*pay|\bg\s?pay\b|google\s+transaction\s+id", re.IGNORECASE),
    PaymentProvider.PHONEPE: re.compile(r"phone\s?pe", re.IGNORECASE),
}
SLIP_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%d-%m-%y",
    "%d %b %Y", "%d %B %Y", "%b %d %Y", "%B %d %Y",
)


@dataclass
class OcrResult:
    transaction_id: Optional[str] = None
    reference_id: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[str] = None
    time: Optional[str] = None
    payee_name: Optional[str] = None
    raw_text: str = ""
    detected_provider: Optional[PaymentProvider] = None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["amount"] = float(self.amount) if self.amount is not None else None
        data["detected_provider"] = self.detected_provider.value if self.detected_provider else None
        return data


class OcrExtractor(Protocol):
    def extract(self, image_url: str) -> OcrResult: ...


def _first(pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def _first_id(pattern, text: str) -> Optional[str]:
    for match in pattern.finditer(text):
        candidate = match.group(1)
        if any(ch.isdigit() for ch in candidate):
            return candidate.upper()
    return None


def _parse_amount(text: str) -> Optional[Decimal]:
    raw = _first(AMOUNT_PATTERN, text)
    if raw is None:
        return None
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def _parse_payee(text: str) -> Optional[str]:
    lines = [line.strip() for line in text.splitlines()]
    for i, line in enumerate(lines):
        match = PAYEE_PATTERN.match(line)
        if not match:
            continue
        name = match.group(1).strip()
        if not name:
            name = next((following for following in lines[i + 1:] if following), "")
        if name:
            return name[:150]
    return None


def detect_provider(text: str) -> Optional[PaymentProvider]:
    """Which UPI app produced the slip; None when absent or ambiguous."""
    hits = {provider: len(pattern.findall(text)) for provider, pattern in PROVIDER_PATTERNS.items()}
    found = [provider for provider, count in hits.items() if count]
    if len(found) == 1:
        return found[0]
    if len(found) > 1:
        ranked = sorted(found, key=lambda p: hits[p], reverse=True)
        if hits[ranked[0]] > hits[ranked[1]]:
            return ranked[0]
    return None


def parse_payment_text(raw_text: str) -> OcrResult:
    """Extract transaction id, amount, date, time, payee and provider from slip text."""
    text = raw_text or ""
    transaction_id = _first_id(TRANSACTION_ID_PATTERN, text)
    reference_id = _first_id(REFERENCE_ID_PATTERN, text)
    if transaction_id is None and reference_id is None:
        transaction_id = _first_id(BARE_ID_PATTERN, text)

    date = None
    for pattern in DATE_PATTERNS:
        date = _first(pattern, text)
        if date:
            break

    return OcrResult(
        transaction_id=transaction_id or reference_id,
        reference_id=reference_id or transaction_id,
        amount=_parse_amount(text),
        date=date,
        time=_first(TIME_PATTERN, text),
        payee_name=_parse_payee(text),
        raw_text=text[:RAW_TEXT_LIMIT],
        detected_provider=detect_provider(text),
    )


def parse_slip_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a date as printed on a slip; None if it is not a real calendar date."""
    if not value:
        return None
    cleaned = " ".join(value.replace(",", " ").split())
    for fmt in SLIP_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


class TesseractExtractor:
    """Runs Tesseract on slips held by the local image storage."""

    def __init__(self, storage, lang: Optional[str] = None, tesseract_cmd: Optional[str] = None):
        self.storage = storage
        self.lang = lang or settings.OCR_LANG
        self.tesseract_cmd = tesseract_cmd or settings.TESSERACT_CMD

    def extract(self, image_url: str) -> OcrResult:
        import pytesseract
        from PIL import Image, UnidentifiedImageError

        path = self.storage.resolve(image_url)
        if path is None:
            raise ExternalDependencyFailure("OCR_FAILED", "Stored slip image could not be opened for OCR")
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        try:
            with Image.open(path) as image:
                text = pytesseract.image_to_string(image, lang=self.lang)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, UnidentifiedImageError, OSError) as exc:
            logger.error(f"OCR failed for {image_url}: {exc}")
            raise ExternalDependencyFailure("OCR_FAILED", "Could not read the payment slip")

        result = parse_payment_text(text)
        logger.info(
            f"OCR read slip {image_url}: txn={result.transaction_id} "
            f"provider={result.detected_provider.value if result.detected_provider else None}"
        )
        return result
