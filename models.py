from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class PeriodType(str, Enum):
    year = "YEAR"
    quarter = "QUARTER"
    month = "MONTH"
    week = "WEEK"


PERIOD_TYPE_ENUM = SAEnum(
    PeriodType,
    name="periodtype",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class BudgetAllocation(str, Enum):
    none = "NONE"
    average = "AVERAGE"


BUDGET_ALLOCATION_ENUM = SAEnum(
    BudgetAllocation,
    name="budgetallocation",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class ExpensePlan(Base, TimestampMixin):
    __tablename__ = "expense_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    period: Mapped[PeriodType] = mapped_column(PERIOD_TYPE_ENUM, nullable=False)
    parent_id: Mapped[Optional[int]] = mapped_column(ForeignKey("expense_plans.id"))
    sub_period: Mapped[Optional[PeriodType]] = mapped_column(PERIOD_TYPE_ENUM)
    budget_allocation: Mapped[BudgetAllocation] = mapped_column(
        BUDGET_ALLOCATION_ENUM, nullable=False, default=BudgetAllocation.none
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_expense_plan_amount_positive"),
        Index("ix_expense_plans_parent", "parent_id"),
    )


class ExpenseRecord(Base, TimestampMixin):
    __tablename__ = "expense_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    plan_id: Mapped[int] = mapped_column(
        ForeignKey("expense_plans.id"), nullable=False
    )
    parent_record_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("expense_records.id")
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    budget_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    opening_cumulative_balance: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    closing_cumulative_balance: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    opening_cumulative_expense: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    closing_cumulative_expense: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    is_sub_record: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("plan_id", "date", name="uq_expense_record_plan_date"),
        Index("ix_expense_records_parent", "parent_record_id"),
    )


class IncomePlan(Base, TimestampMixin):
    __tablename__ = "income_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    period: Mapped[PeriodType] = mapped_column(PERIOD_TYPE_ENUM, nullable=False)
    parent_id: Mapped[Optional[int]] = mapped_column(ForeignKey("income_plans.id"))
    sub_period: Mapped[Optional[PeriodType]] = mapped_column(PERIOD_TYPE_ENUM)

    __table_args__ = (Index("ix_income_plans_parent", "parent_id"),)


class IncomeRecord(Base, TimestampMixin):
    __tablename__ = "income_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("income_plans.id"), nullable=False)
    parent_record_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("income_records.id")
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    opening_cumulative: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    closing_cumulative: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_sub_record: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("plan_id", "date", name="uq_income_record_plan_date"),
        Index("ix_income_records_parent", "parent_record_id"),
    )
