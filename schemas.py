import datetime as dt
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import BudgetAllocation, PeriodType


class ExpensePlanIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    period: PeriodType
    amount: int = Field(default=0, ge=0)
    parent_id: Optional[int] = None
    budget_allocation: BudgetAllocation = BudgetAllocation.none


class ExpensePlanUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    amount: Optional[int] = Field(default=None, ge=0)
    budget_allocation: Optional[BudgetAllocation] = None


class ExpensePlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    amount: int
    period: PeriodType
    parent_id: Optional[int]
    sub_period: Optional[PeriodType]
    budget_allocation: BudgetAllocation
    created_at: datetime
    updated_at: datetime


class IncomePlanIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    period: PeriodType
    parent_id: Optional[int] = None


class IncomePlanUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)


class IncomePlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    period: PeriodType
    parent_id: Optional[int]
    sub_period: Optional[PeriodType]
    created_at: datetime
    updated_at: datetime


class ExpenseRecordIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plan_id: int
    date: Optional[dt.date] = None
    budget_amount: Optional[int] = None
    actual_amount: int = 0
    opening_cumulative_balance: Optional[int] = None
    opening_cumulative_expense: Optional[int] = None
    parent_record_id: Optional[int] = None


class ExpenseRecordUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: Optional[dt.date] = None
    budget_amount: Optional[int] = None
    actual_amount: Optional[int] = None
    opening_cumulative_balance: Optional[int] = None
    opening_cumulative_expense: Optional[int] = None


class ExpenseRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: int
    parent_record_id: Optional[int]
    date: dt.date
    budget_amount: int
    actual_amount: int
    balance: int
    opening_cumulative_balance: int
    closing_cumulative_balance: int
    opening_cumulative_expense: int
    closing_cumulative_expense: int
    is_sub_record: bool
    created_at: datetime
    updated_at: datetime


class IncomeRecordIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plan_id: int
    date: Optional[dt.date] = None
    amount: int = 0
    opening_cumulative: Optional[int] = None
    parent_record_id: Optional[int] = None


class IncomeRecordUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: Optional[dt.date] = None
    amount: Optional[int] = None
    opening_cumulative: Optional[int] = None


class IncomeRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: int
    parent_record_id: Optional[int]
    date: dt.date
    amount: int
    opening_cumulative: int
    closing_cumulative: int
    is_sub_record: bool
    created_at: datetime
    updated_at: datetime


class ReconcileSummary(BaseModel):
    expense_plans: int
    income_plans: int
    records: int
