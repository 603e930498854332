"""Payment settings kept by admins and the UPI details members pay against."""

from datetime import datetime
from decimal import Decimal

import pytest

from mandal.core.errors import MemberNotEligible, PolicyViolation, ValidationFailed
from mandal.models import SystemSettings
from mandal.services.payment import (
    UPI_ID_KEY,
    get_payment_settings,
    get_upi_payment_details,
    update_payment_settings,
)


def configure(db, **changes):
    defaults = {"upi_id": "mandal.fund@okaxis", "monthly_contribution_amount": "500"}
    defaults.update(changes)
    return update_payment_settings(db, defaults)


class TestPaymentSettings:

    def test_unset_settings_read_as_none(self, db):
        assert get_payment_settings(db) == {
            "upi_id": None,
            "qr_code_url": None,
            "monthly_contribution_amount": None,
        }

    def test_update_then_read(self, db, admin):
        updated = update_payment_settings(db, {
            "upi_id": " mandal.fund@okaxis ",
            "qr_code_url": "https://example.org/qr.png",
            "monthly_contribution_amount": "500.5",
        }, updated_by=admin.id)

        assert updated["upi_id"] == "mandal.fund@okaxis"
        assert updated["qr_code_url"] == "https://example.org/qr.png"
        assert updated["monthly_contribution_amount"] == Decimal("500.50")
        row = db.query(SystemSettings).filter(SystemSettings.setting_key == UPI_ID_KEY).one()
        assert row.updated_by == admin.id
        assert row.setting_type == "payment"

    def test_partial_update_leaves_other_fields(self, db):
        configure(db, qr_code_url="https://example.org/qr.png")

        updated = update_payment_settings(db, {"upi_id": "other@ybl"})

        assert updated["upi_id"] == "other@ybl"
        assert updated["qr_code_url"] == "https://example.org/qr.png"
        assert db.query(SystemSettings).filter(SystemSettings.setting_key == UPI_ID_KEY).count() == 1

    def test_empty_value_clears(self, db):
        configure(db, qr_code_url="https://example.org/qr.png")

        updated = update_payment_settings(db, {"qr_code_url": ""})

        assert updated["qr_code_url"] is None
        assert updated["upi_id"] == "mandal.fund@okaxis"

    @pytest.mark.parametrize("upi_id", ["no-at-sign", "@okaxis", "name@", "name@1bank", "spa ce@okaxis"])
    def test_rejects_malformed_upi_id(self, db, upi_id):
        with pytest.raises(ValidationFailed) as exc:
            update_payment_settings(db, {"upi_id": upi_id})
        assert exc.value.code == "INVALID_UPI_ID"

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "10000000000"])
    def test_rejects_bad_amount(self, db, amount):
        with pytest.raises(ValidationFailed) as exc:
            update_payment_settings(db, {"monthly_contribution_amount": amount})
        assert exc.value.code == "INVALID_AMOUNT"

    def test_nothing_written_when_one_field_is_invalid(self, db):
        with pytest.raises(ValidationFailed):
            update_payment_settings(db, {"upi_id": "mandal@okaxis", "monthly_contribution_amount": "0"})
        assert get_payment_settings(db)["upi_id"] is None


class TestUpiPaymentDetails:

    def test_details_for_current_month(self, db, member):
        configure(db, qr_code_url="https://example.org/qr.png")
        now = datetime(2024, 3, 5, 10, 0, 0)

        details = get_upi_payment_details(db, member.id, now=now)

        assert details["upi_vpa"] == "mandal.fund@okaxis"
        assert details["amount"] == Decimal("500.00")
        assert details["month_key"] == "2024-03"
        assert details["month_label"] == "Mar-2024"
        assert details["note"] == "Mandal Contribution Mar-2024"
        assert details["qr_code_url"] == "https://example.org/qr.png"
        assert details["payment_intent_id"].startswith(f"{member.id}-2024-03-")
        assert details["upi_url"] == (
            "upi://pay?pa=mandal.fund%40okaxis&pn=Mandal%20Group"
            "&am=500.00&cu=INR&tn=Mandal%20Contribution%20Mar-2024"
        )

    def test_upi_id_required(self, db, member):
        update_payment_settings(db, {"monthly_contribution_amount": "500"})
        with pytest.raises(PolicyViolation) as exc:
            get_upi_payment_details(db, member.id)
        assert exc.value.code == "PAYMENT_NOT_CONFIGURED"

    def test_amount_required(self, db, member):
        update_payment_settings(db, {"upi_id": "mandal.fund@okaxis"})
        with pytest.raises(PolicyViolation) as exc:
            get_upi_payment_details(db, member.id)
        assert exc.value.code == "PAYMENT_NOT_CONFIGURED"

    def test_ineligible_member_gets_no_details(self, db, make_member):
        configure(db)
        pending = make_member("Pending", kyc_verified=False)
        with pytest.raises(MemberNotEligible):
            get_upi_payment_details(db, pending.id)
