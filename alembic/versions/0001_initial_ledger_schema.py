"""initial ledger schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
import uuid

from alembic import op
import sqlalchemy as sa

revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("mobile", sa.String(20), nullable=True),
        sa.Column("role", sa.String(6), nullable=False, server_default="member"),
        sa.Column("approval_status", sa.String(8), nullable=False, server_default="pending"),
        sa.Column("kyc_status", sa.String(12), nullable=False, server_default="pending"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "contribution",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("month", sa.String(7), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("proof_url", sa.String(500), nullable=False),
        sa.Column("provider", sa.String(7), nullable=False),
        sa.Column("ocr_status", sa.String(7), nullable=False, server_default="pending"),
        sa.Column("transaction_id", sa.String(64), nullable=True),
        sa.Column("ocr_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("ocr_date", sa.String(32), nullable=True),
        sa.Column("ocr_time", sa.String(16), nullable=True),
        sa.Column("ocr_payee_name", sa.String(150), nullable=True),
        sa.Column("ocr_raw_text", sa.Text(), nullable=True),
        sa.Column("status", sa.String(8), nullable=False, server_default="pending"),
        sa.Column("admin_remarks", sa.Text(), nullable=True),
        sa.Column("payment_date", sa.DateTime(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("member_id", "month", name="uq_contribution_member_month"),
        sa.UniqueConstraint("transaction_id", name="uq_contribution_transaction_id"),
    )
    op.create_index("ix_contribution_member_id", "contribution", ["member_id"])
    op.create_index("ix_contribution_status", "contribution", ["status"])

    op.create_table(
        "loan",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("interest_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_payable", sa.Numeric(12, 2), nullable=True),
        sa.Column("duration_months", sa.Integer(), nullable=False, server_default="12"),
        sa.Column("pending_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("provisional_pending_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", sa.String(8), nullable=False, server_default="pending"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("admin_remarks", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_loan_member_id", "loan", ["member_id"])
    op.create_index("ix_loan_status", "loan", ["status"])

    op.create_table(
        "loan_installment",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("loan_id", sa.Uuid(), sa.ForeignKey("loan.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=False),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("proof_url", sa.String(500), nullable=True),
        sa.Column("status", sa.String(8), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("loan_id", "position", name="uq_installment_loan_position"),
    )
    op.create_index("ix_loan_installment_loan_id", "loan_installment", ["loan_id"])

    op.create_table(
        "notification",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(12), nullable=False),
        sa.Column("related_id", sa.Uuid(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("idx_notification_user_read", "notification", ["user_id", "is_read"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("setting_key", sa.String(100), nullable=False),
        sa.Column("setting_value", sa.Text(), nullable=True),
        sa.Column("setting_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_by", sa.Uuid(), sa.ForeignKey("user.id"), nullable=True),
    )
    op.create_index("ix_system_settings_setting_key", "system_settings", ["setting_key"], unique=True)

    fund_lock = op.create_table(
        "fund_lock",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("lock_key", sa.String(50), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_fund_lock_lock_key", "fund_lock", ["lock_key"], unique=True)
    op.bulk_insert(fund_lock, [{"id": uuid.uuid4(), "lock_key": "pool", "version": 0}])


def downgrade():
    op.drop_index("ix_fund_lock_lock_key", table_name="fund_lock")
    op.drop_table("fund_lock")
    op.drop_index("ix_system_settings_setting_key", table_name="system_settings")
    op.drop_table("system_settings")
    op.drop_index("idx_notification_user_read", table_name="notification")
    op.drop_table("notification")
    op.drop_index("ix_loan_installment_loan_id", table_name="loan_installment")
    op.drop_table("loan_installment")
    op.drop_index("ix_loan_status", table_name="loan")
    op.drop_index("ix_loan_member_id", table_name="loan")
    op.drop_table("loan")
    op.drop_index("ix_contribution_status", table_name="contribution")
    op.drop_index("ix_contribution_member_id", table_name="contribution")
    op.drop_table("contribution")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
