"""Budget allocation for sub-records and the per-record introspection rule.

Everything here is pure: callers pass figures in and get figures back, the
running totals of a parent bucket are threaded explicitly through
``AllocationCalculator.allocate`` / ``AllocationCalculator.advance``.
"""

from dataclasses import dataclass
from typing import Optional

from models import BudgetAllocation, PeriodType
from periods import sub_period_count


@dataclass(frozen=True)
class ExpenseFigures:
    balance: int
    closing_cumulative_balance: int
    closing_cumulative_expense: int


@dataclass(frozen=True)
class RunningTotals:
    actual: int = 0
    balance: int = 0
    # Remaining pool for NONE allocation; None until the first sub-record.
    pool: Optional[int] = None


@dataclass(frozen=True)
class SubAllocation:
    budget_amount: int
    opening_cumulative_balance: int
    opening_cumulative_expense: int


def introspect_expense(
    *,
    is_sub_record: bool,
    allocation: BudgetAllocation,
    budget_amount: int,
    actual_amount: int,
    opening_cumulative_balance: int,
    opening_cumulative_expense: int,
) -> ExpenseFigures:
    """Derive balance and closing cumulative values for one expense record.

    AVERAGE sub-records and every top-level record accumulate their own
    surplus or deficit. NONE sub-records draw a single pool down, so only
    the actual spend is subtracted from the opening balance.
    """
    balance = budget_amount - actual_amount
    closing_expense = opening_cumulative_expense + actual_amount
    if allocation == BudgetAllocation.average or not is_sub_record:
        closing_balance = opening_cumulative_balance + balance
    else:
        closing_balance = opening_cumulative_balance - actual_amount
    return ExpenseFigures(
        balance=balance,
        closing_cumulative_balance=closing_balance,
        closing_cumulative_expense=closing_expense,
    )


def introspect_income(*, opening_cumulative: int, amount: int) -> int:
    return opening_cumulative + amount


def average_budget(
    parent_budget: int, parent_period: PeriodType, sub_period: PeriodType
) -> int:
    # Integer minor units: the remainder of the split is not redistributed.
    return parent_budget // sub_period_count(parent_period, sub_period)


class AllocationCalculator:
    """Allocates one parent bucket's budget across its sub-records.

    Sub-records must be fed in ascending date order; each call to
    ``allocate`` depends on the totals returned by ``advance`` for every
    earlier sub-record of the same bucket.
    """

    def __init__(
        self,
        strategy: BudgetAllocation,
        *,
        parent_budget: int,
        parent_opening_balance: int,
        parent_opening_expense: int,
        parent_period: PeriodType,
        sub_period: PeriodType,
    ) -> None:
        self.strategy = strategy
        self.parent_budget = parent_budget
        self.parent_opening_balance = parent_opening_balance
        self.parent_opening_expense = parent_opening_expense
        self.parent_period = parent_period
        self.sub_period = sub_period

    def allocate(self, totals: RunningTotals) -> SubAllocation:
        opening_expense = self.parent_opening_expense + totals.actual
        if self.strategy == BudgetAllocation.average:
            return SubAllocation(
                budget_amount=average_budget(
                    self.parent_budget, self.parent_period, self.sub_period
                ),
                opening_cumulative_balance=self.parent_opening_balance
                + totals.balance,
                opening_cumulative_expense=opening_expense,
            )

        pool = self.parent_budget if totals.pool is None else totals.pool
        return SubAllocation(
            budget_amount=pool,
            opening_cumulative_balance=pool,
            opening_cumulative_expense=opening_expense,
        )

    def advance(
        self, totals: RunningTotals, *, actual_amount: int, balance: int
    ) -> RunningTotals:
        pool = totals.pool
        if self.strategy != BudgetAllocation.average:
            pool = balance
        return RunningTotals(
            actual=totals.actual + actual_amount,
            balance=totals.balance + balance,
            pool=pool,
        )
