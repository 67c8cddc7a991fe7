"""initial plans and records

Revision ID: 202610170900
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202610170900"
down_revision = None
branch_labels = None
depends_on = None

PERIODS = ("YEAR", "QUARTER", "MONTH", "WEEK")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "expense_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("period", sa.Enum(*PERIODS, name="periodtype"), nullable=False),
        sa.Column(
            "parent_id", sa.Integer(), sa.ForeignKey("expense_plans.id"), nullable=True
        ),
        sa.Column("sub_period", sa.Enum(*PERIODS, name="periodtype"), nullable=True),
        sa.Column(
            "budget_allocation",
            sa.Enum("NONE", "AVERAGE", name="budgetallocation"),
            nullable=False,
            server_default="NONE",
        ),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_expense_plan_amount_positive"),
    )
    op.create_index("ix_expense_plans_parent", "expense_plans", ["parent_id"])

    op.create_table(
        "expense_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "plan_id", sa.Integer(), sa.ForeignKey("expense_plans.id"), nullable=False
        ),
        sa.Column(
            "parent_record_id",
            sa.Integer(),
            sa.ForeignKey("expense_records.id"),
            nullable=True,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("budget_amount", sa.Integer(), nullable=False),
        sa.Column("actual_amount", sa.Integer(), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("opening_cumulative_balance", sa.Integer(), nullable=False),
        sa.Column("closing_cumulative_balance", sa.Integer(), nullable=False),
        sa.Column("opening_cumulative_expense", sa.Integer(), nullable=False),
        sa.Column("closing_cumulative_expense", sa.Integer(), nullable=False),
        sa.Column(
            "is_sub_record", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        *_timestamps(),
        sa.UniqueConstraint("plan_id", "date", name="uq_expense_record_plan_date"),
    )
    op.create_index(
        "ix_expense_records_parent", "expense_records", ["parent_record_id"]
    )

    op.create_table(
        "income_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("period", sa.Enum(*PERIODS, name="periodtype"), nullable=False),
        sa.Column(
            "parent_id", sa.Integer(), sa.ForeignKey("income_plans.id"), nullable=True
        ),
        sa.Column("sub_period", sa.Enum(*PERIODS, name="periodtype"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_income_plans_parent", "income_plans", ["parent_id"])

    op.create_table(
        "income_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "plan_id", sa.Integer(), sa.ForeignKey("income_plans.id"), nullable=False
        ),
        sa.Column(
            "parent_record_id",
            sa.Integer(),
            sa.ForeignKey("income_records.id"),
            nullable=True,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("opening_cumulative", sa.Integer(), nullable=False),
        sa.Column("closing_cumulative", sa.Integer(), nullable=False),
        sa.Column(
            "is_sub_record", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        *_timestamps(),
        sa.UniqueConstraint("plan_id", "date", name="uq_income_record_plan_date"),
    )
    op.create_index("ix_income_records_parent", "income_records", ["parent_record_id"])


def downgrade() -> None:
    op.drop_index("ix_income_records_parent", table_name="income_records")
    op.drop_table("income_records")
    op.drop_index("ix_income_plans_parent", table_name="income_plans")
    op.drop_table("income_plans")
    op.drop_index("ix_expense_records_parent", table_name="expense_records")
    op.drop_table("expense_records")
    op.drop_index("ix_expense_plans_parent", table_name="expense_plans")
    op.drop_table("expense_plans")
