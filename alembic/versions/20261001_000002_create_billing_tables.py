"""Create invoices, payments and invoice_payments tables

Revision ID: 20261001_000002
Revises: 20261001_000001
Create Date: 2026-10-01

Scheduled rental payments, the invoices billing them and the hash-chained
ledger of money received against each invoice.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261001_000002"
down_revision: Union[str, None] = "20261001_000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("invoice_number", sa.String(40), nullable=False),
        sa.Column("client_company_id", sa.Integer(), nullable=False),
        sa.Column("provider_company_id", sa.Integer(), nullable=False),
        sa.Column("rental_id", sa.Integer(), nullable=True),
        sa.Column("service_request_id", sa.Integer(), nullable=True),
        sa.Column("corrects_invoice_id", sa.Integer(), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PAID", "OVERDUE", "CANCELLED", name="invoice_status", create_constraint=True),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["client_company_id"], ["companies.id"], name="fk_invoices_client_company_id"),
        sa.ForeignKeyConstraint(["provider_company_id"], ["companies.id"], name="fk_invoices_provider_company_id"),
        sa.ForeignKeyConstraint(["rental_id"], ["rentals.id"], name="fk_invoices_rental_id"),
        sa.ForeignKeyConstraint(["corrects_invoice_id"], ["invoices.id"], name="fk_invoices_corrects_invoice_id"),
        sa.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        sa.CheckConstraint("paid_amount <= total_amount", name="ck_invoices_paid_within_total"),
    )
    op.create_index("ix_invoices_client_company_id", "invoices", ["client_company_id"])
    op.create_index("ix_invoices_provider_company_id", "invoices", ["provider_company_id"])
    op.create_index("ix_invoices_rental_id", "invoices", ["rental_id"])
    op.create_index("ix_invoices_corrects_invoice_id", "invoices", ["corrects_invoice_id"])
    op.create_index("ix_invoices_due_date", "invoices", ["due_date"])
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("rental_id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column(
            "payment_type",
            sa.Enum("DEPOSIT", "RENTAL", "RENTAL_EXTENSION", name="payment_type", create_constraint=True),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PAID", "CANCELLED", name="payment_status", create_constraint=True),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["rental_id"],
            ["rentals.id"],
            name="fk_payments_rental_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], name="fk_payments_invoice_id"),
    )
    op.create_index("ix_payments_rental_id", "payments", ["rental_id"])
    op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"])
    op.create_index("ix_payments_status", "payments", ["status"])
    op.create_index("ix_payments_due_date", "payments", ["due_date"])

    op.create_table(
        "invoice_payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", sa.String(50), nullable=False),
        sa.Column("paid_on", sa.Date(), nullable=False),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("transaction_hash", sa.String(64), nullable=False),
        sa.Column("previous_hash", sa.String(64), nullable=False),
        sa.Column("timestamp", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["invoice_id"],
            ["invoices.id"],
            name="fk_invoice_payments_invoice_id",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("transaction_hash", name="uq_invoice_payments_transaction_hash"),
    )
    op.create_index("ix_invoice_payments_invoice_id", "invoice_payments", ["invoice_id"])
    op.create_index("ix_invoice_payments_transaction_hash", "invoice_payments", ["transaction_hash"])
    op.create_index("ix_invoice_payments_previous_hash", "invoice_payments", ["previous_hash"])


def downgrade() -> None:
    op.drop_index("ix_invoice_payments_previous_hash", table_name="invoice_payments")
    op.drop_index("ix_invoice_payments_transaction_hash", table_name="invoice_payments")
    op.drop_index("ix_invoice_payments_invoice_id", table_name="invoice_payments")
    op.drop_table("invoice_payments")
    op.drop_index("ix_payments_due_date", table_name="payments")
    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_invoice_id", table_name="payments")
    op.drop_index("ix_payments_rental_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_invoices_status", table_name="invoices")
    op.drop_index("ix_invoices_due_date", table_name="invoices")
    op.drop_index("ix_invoices_corrects_invoice_id", table_name="invoices")
    op.drop_index("ix_invoices_rental_id", table_name="invoices")
    op.drop_index("ix_invoices_provider_company_id", table_name="invoices")
    op.drop_index("ix_invoices_client_company_id", table_name="invoices")
    op.drop_table("invoices")
