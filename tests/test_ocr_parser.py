"""Field extraction from UPI slip text."""

from datetime import datetime
from decimal import Decimal

import pytest

from conftest import FakeStorage
from mandal.core.errors import ExternalDependencyFailure
from mandal.models import PaymentProvider
from mandal.services.ocr import (
    RAW_TEXT_LIMIT,
    TesseractExtractor,
    detect_provider,
    parse_payment_text,
    parse_slip_date,
)

GPAY_SLIP = """Google Pay
₹500
Paid to
Mandal Fund
15 Jan 2024, 10:30 am
UPI transaction ID
401512345678
Google transaction ID
CICAgKDq1234
"""

PHONEPE_SLIP = """PhonePe
Transaction Successful
10:45 am on 16 Feb 2024
Paid to
RAVI KUMAR
₹1,000
Transaction ID
T2402161045123456789
UTR: 403712345678
"""


class TestParsePaymentText:

    def test_google_pay_slip(self):
        result = parse_payment_text(GPAY_SLIP)

        assert result.transaction_id == "401512345678"
        assert result.amount == Decimal("500")
        assert result.date == "15 Jan 2024"
        assert result.time == "10:30 am"
        assert result.payee_name == "Mandal Fund"
        assert result.detected_provider == PaymentProvider.GPAY

    def test_phonepe_slip(self):
        result = parse_payment_text(PHONEPE_SLIP)

        assert result.transaction_id == "T2402161045123456789"
        assert result.amount == Decimal("1000")
        assert result.date == "16 Feb 2024"
        assert result.payee_name == "RAVI KUMAR"
        assert result.detected_provider == PaymentProvider.PHONEPE

    def test_reference_id_fills_missing_transaction_id(self):
        result = parse_payment_text("Paytm\nUPI Ref No: 987654321012\nRs. 250.50")
        assert result.reference_id == "987654321012"
        assert result.transaction_id == "987654321012"
        assert result.amount == Decimal("250.50")

    def test_bare_id_used_when_nothing_is_labelled(self):
        result = parse_payment_text("payment done\n4015ABCD56789XYZ\nthanks")
        assert result.transaction_id == "4015ABCD56789XYZ"

    def test_ids_are_uppercased(self):
        assert parse_payment_text("UTR: abc123def456").transaction_id == "ABC123DEF456"

    def test_unreadable_text(self):
        result = parse_payment_text("#### ~~~ blurry")
        assert result.transaction_id is None
        assert result.reference_id is None
        assert result.amount is None
        assert result.detected_provider is None

    def test_empty_text(self):
        assert parse_payment_text("").raw_text == ""
        assert parse_payment_text(None).transaction_id is None

    def test_raw_text_truncated(self):
        result = parse_payment_text("x" * 2000)
        assert len(result.raw_text) == RAW_TEXT_LIMIT

    def test_as_dict_is_json_friendly(self):
        data = parse_payment_text(GPAY_SLIP).as_dict()
        assert data["amount"] == 500.0
        assert data["detected_provider"] == "gpay"


class TestDetectProvider:

    def test_ambiguous_is_none(self):
        assert detect_provider("Google Pay ... PhonePe") is None

    def test_majority_wins(self):
        assert detect_provider("PhonePe receipt\nPhonePe\nsent via gpay") == PaymentProvider.PHONEPE

    def test_absent(self):
        assert detect_provider("Bank transfer") is None


class TestParseSlipDate:

    @pytest.mark.parametrize("raw, expected", [
        ("15 Jan 2024", datetime(2024, 1, 15)),
        ("Jan 15, 2024", datetime(2024, 1, 15)),
        ("15/01/2024", datetime(2024, 1, 15)),
        ("2024-01-15", datetime(2024, 1, 15)),
        ("15-01-24", datetime(2024, 1, 15)),
    ])
    def test_formats(self, raw, expected):
        assert parse_slip_date(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "31/02/2024", "yesterday"])
    def test_invalid_dates(self, raw):
        assert parse_slip_date(raw) is None


def test_tesseract_extractor_reports_missing_image():
    extractor = TesseractExtractor(FakeStorage())
    with pytest.raises(ExternalDependencyFailure) as exc:
        extractor.extract("/api/proofs/missing.jpg")
    assert exc.value.code == "OCR_FAILED"
