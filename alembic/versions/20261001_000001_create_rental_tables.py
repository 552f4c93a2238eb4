"""Create companies, equipment and rentals tables

Revision ID: 20261001_000001
Revises:
Create Date: 2026-10-01

Equipment units owned by provider companies and their exclusive rentals.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261001_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "company_type",
            sa.Enum("CLIENT", "PROVIDER", name="company_type", create_constraint=True),
            nullable=False,
        ),
        sa.Column("tax_id", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tax_id", name="uq_companies_tax_id"),
    )
    op.create_index("ix_companies_company_type", "companies", ["company_type"])

    op.create_table(
        "equipment",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_company_id", sa.Integer(), nullable=False),
        sa.Column("current_client_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("equipment_type", sa.String(100), nullable=False),
        sa.Column("serial_number", sa.String(100), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "AVAILABLE", "RENTED", "MAINTENANCE", "OUT_OF_SERVICE",
                name="equipment_status",
                create_constraint=True,
            ),
            nullable=False,
            server_default="AVAILABLE",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["owner_company_id"],
            ["companies.id"],
            name="fk_equipment_owner_company_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["current_client_id"],
            ["companies.id"],
            name="fk_equipment_current_client_id",
        ),
        sa.UniqueConstraint("serial_number", name="uq_equipment_serial_number"),
    )
    op.create_index("ix_equipment_owner_company_id", "equipment", ["owner_company_id"])
    op.create_index("ix_equipment_status", "equipment", ["status"])

    op.create_table(
        "rentals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("equipment_id", sa.Integer(), nullable=False),
        sa.Column("client_company_id", sa.Integer(), nullable=False),
        sa.Column("provider_company_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("monthly_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column(
            "billing_frequency",
            sa.Enum(
                "MONTHLY", "QUARTERLY", "SEMIANNUAL", "ANNUAL",
                name="billing_frequency",
                create_constraint=True,
            ),
            nullable=False,
            server_default="MONTHLY",
        ),
        sa.Column(
            "partial_period_policy",
            sa.Enum("PRORATED", "FULL_PERIOD", name="partial_period_policy", create_constraint=True),
            nullable=False,
            server_default="PRORATED",
        ),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "COMPLETED", "CANCELLED", name="rental_status", create_constraint=True),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("payment_terms", sa.String(255), nullable=True),
        sa.Column("contract_terms", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["equipment_id"],
            ["equipment.id"],
            name="fk_rentals_equipment_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(["client_company_id"], ["companies.id"], name="fk_rentals_client_company_id"),
        sa.ForeignKeyConstraint(["provider_company_id"], ["companies.id"], name="fk_rentals_provider_company_id"),
        sa.CheckConstraint("end_date > start_date", name="ck_rentals_dates"),
        sa.CheckConstraint("monthly_rate > 0", name="ck_rentals_monthly_rate_positive"),
    )
    op.create_index("ix_rentals_equipment_status", "rentals", ["equipment_id", "status"])
    op.create_index("ix_rentals_client_company_id", "rentals", ["client_company_id"])
    op.create_index("ix_rentals_provider_company_id", "rentals", ["provider_company_id"])
    op.create_index("ix_rentals_end_date", "rentals", ["end_date"])


def downgrade() -> None:
    op.drop_index("ix_rentals_end_date", table_name="rentals")
    op.drop_index("ix_rentals_provider_company_id", table_name="rentals")
    op.drop_index("ix_rentals_client_company_id", table_name="rentals")
    op.drop_index("ix_rentals_equipment_status", table_name="rentals")
    op.drop_table("rentals")
    op.drop_index("ix_equipment_status", table_name="equipment")
    op.drop_index("ix_equipment_owner_company_id", table_name="equipment")
    op.drop_table("equipment")
    op.drop_index("ix_companies_company_type", table_name="companies")
    op.drop_table("companies")
