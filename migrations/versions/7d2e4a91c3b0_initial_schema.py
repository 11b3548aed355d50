"""Initial schema

Revision ID: 7d2e4a91c3b0
Revises:
Create Date: 2026-10-19 09:12:37.418205

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "7d2e4a91c3b0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        *_audit_columns(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(
                "CLIENT", "STAFF", "MANAGER", "ADMIN",
                name="user_role",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "ACTIVE", "INACTIVE", "SUSPENDED",
                name="user_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("reset_password_token_hash", sa.String(length=64), nullable=True),
        sa.Column(
            "reset_password_expires_at", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False),
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False),
        sa.Column(
            "two_factor_method",
            sa.Enum("EMAIL", "APP", name="two_factor_method", native_enum=False),
            nullable=False,
        ),
        sa.Column("email_notifications", sa.Boolean(), nullable=False),
        sa.Column("notification_preferences", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(
        op.f("ix_users_reset_password_token_hash"),
        "users",
        ["reset_password_token_hash"],
        unique=False,
    )

    op.create_table(
        "clients",
        *_audit_columns(),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.String(length=20), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("account_balance", sa.Float(), nullable=False),
        sa.Column("pending_withdrawals", sa.Float(), nullable=False),
        sa.Column("total_investments", sa.Float(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "ACTIVE", "PENDING", "INACTIVE",
                name="client_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_clients_user_id"), "clients", ["user_id"], unique=True)
    op.create_index(
        op.f("ix_clients_client_id"), "clients", ["client_id"], unique=True
    )
    op.create_index(op.f("ix_clients_email"), "clients", ["email"], unique=True)

    op.create_table(
        "withdrawals",
        *_audit_columns(),
        sa.Column("withdrawal_id", sa.String(length=20), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column(
            "method",
            sa.Enum(
                "BANK_TRANSFER", "CRYPTOCURRENCY",
                name="withdrawal_method",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "PROCESSING", "COMPLETED", "REJECTED", "CANCELLED",
                name="withdrawal_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("destination", sa.JSON(), nullable=False),
        sa.Column("fee_amount", sa.Float(), nullable=False),
        sa.Column("fee_percentage", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_by", sa.Uuid(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transaction_id", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["processed_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_withdrawals_withdrawal_id"),
        "withdrawals",
        ["withdrawal_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_withdrawals_client_id"), "withdrawals", ["client_id"], unique=False
    )
    op.create_index(
        op.f("ix_withdrawals_status"), "withdrawals", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_withdrawals_transaction_id"),
        "withdrawals",
        ["transaction_id"],
        unique=False,
    )

    op.create_table(
        "transactions",
        *_audit_columns(),
        sa.Column("transaction_id", sa.String(length=20), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "DEPOSIT", "WITHDRAWAL", "INVESTMENT", "RETURN", "FEE",
                "TRANSFER", "OTHER",
                name="transaction_type",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "PROCESSING", "COMPLETED", "FAILED", "CANCELLED",
                name="transaction_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "method",
            sa.Enum(
                "BANK_TRANSFER", "CREDIT_CARD", "CRYPTOCURRENCY", "CASH",
                "CHECK", "OTHER",
                name="transaction_method",
                native_enum=False,
            ),
            nullable=True,
        ),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("related_withdrawal_id", sa.Uuid(), nullable=True),
        sa.Column("fee_amount", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("processed_by", sa.Uuid(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["related_withdrawal_id"], ["withdrawals.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["processed_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_transactions_transaction_id"),
        "transactions",
        ["transaction_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_transactions_client_id"), "transactions", ["client_id"], unique=False
    )
    op.create_index(
        op.f("ix_transactions_type"), "transactions", ["type"], unique=False
    )
    op.create_index(
        op.f("ix_transactions_status"), "transactions", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_transactions_related_withdrawal_id"),
        "transactions",
        ["related_withdrawal_id"],
        unique=False,
    )

    op.create_table(
        "one_time_codes",
        *_audit_columns(),
        sa.Column("subject_id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column(
            "purpose",
            sa.Enum(
                "LOGIN", "WITHDRAWAL", "PROFILE_UPDATE", "EMAIL_VERIFICATION",
                "OTHER",
                name="otp_purpose",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("withdrawal_id", sa.Uuid(), nullable=True),
        sa.Column("code_hash", sa.String(length=64), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["subject_id"],
            ["users.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["withdrawal_id"],
            ["withdrawals.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_one_time_codes_subject_id"),
        "one_time_codes",
        ["subject_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_one_time_codes_expires_at"),
        "one_time_codes",
        ["expires_at"],
        unique=False,
    )
    op.create_index(
        "uq_one_time_codes_subject_purpose",
        "one_time_codes",
        ["subject_id", "purpose"],
        unique=True,
        postgresql_where=sa.text("withdrawal_id IS NULL"),
        sqlite_where=sa.text("withdrawal_id IS NULL"),
    )
    op.create_index(
        "uq_one_time_codes_withdrawal",
        "one_time_codes",
        ["withdrawal_id"],
        unique=True,
        postgresql_where=sa.text("withdrawal_id IS NOT NULL"),
        sqlite_where=sa.text("withdrawal_id IS NOT NULL"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(
        "uq_one_time_codes_withdrawal",
        table_name="one_time_codes",
        postgresql_where=sa.text("withdrawal_id IS NOT NULL"),
        sqlite_where=sa.text("withdrawal_id IS NOT NULL"),
    )
    op.drop_index(
        "uq_one_time_codes_subject_purpose",
        table_name="one_time_codes",
        postgresql_where=sa.text("withdrawal_id IS NULL"),
        sqlite_where=sa.text("withdrawal_id IS NULL"),
    )
    op.drop_index(op.f("ix_one_time_codes_expires_at"), table_name="one_time_codes")
    op.drop_index(op.f("ix_one_time_codes_subject_id"), table_name="one_time_codes")
    op.drop_table("one_time_codes")

    op.drop_index(
        op.f("ix_transactions_related_withdrawal_id"), table_name="transactions"
    )
    op.drop_index(op.f("ix_transactions_status"), table_name="transactions")
    op.drop_index(op.f("ix_transactions_type"), table_name="transactions")
    op.drop_index(op.f("ix_transactions_client_id"), table_name="transactions")
    op.drop_index(op.f("ix_transactions_transaction_id"), table_name="transactions")
    op.drop_table("transactions")

    op.drop_index(op.f("ix_withdrawals_transaction_id"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_status"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_client_id"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_withdrawal_id"), table_name="withdrawals")
    op.drop_table("withdrawals")

    op.drop_index(op.f("ix_clients_email"), table_name="clients")
    op.drop_index(op.f("ix_clients_client_id"), table_name="clients")
    op.drop_index(op.f("ix_clients_user_id"), table_name="clients")
    op.drop_table("clients")

    op.drop_index(op.f("ix_users_reset_password_token_hash"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
