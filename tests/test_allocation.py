from allocation import (
    AllocationCalculator,
    RunningTotals,
    average_budget,
    introspect_expense,
    introspect_income,
)
from models import BudgetAllocation, PeriodType


def _calculator(strategy: BudgetAllocation, budget: int) -> AllocationCalculator:
    return AllocationCalculator(
        strategy,
        parent_budget=budget,
        parent_opening_balance=0,
        parent_opening_expense=0,
        parent_period=PeriodType.year,
        sub_period=PeriodType.month,
    )


def test_introspect_top_level_record_accumulates_balance() -> None:
    figures = introspect_expense(
        is_sub_record=False,
        allocation=BudgetAllocation.none,
        budget_amount=1_000,
        actual_amount=300,
        opening_cumulative_balance=50,
        opening_cumulative_expense=20,
    )
    assert figures.balance == 700
    assert figures.closing_cumulative_balance == 750
    assert figures.closing_cumulative_expense == 320


def test_introspect_none_sub_record_draws_down_pool() -> None:
    figures = introspect_expense(
        is_sub_record=True,
        allocation=BudgetAllocation.none,
        budget_amount=1_000,
        actual_amount=300,
        opening_cumulative_balance=50,
        opening_cumulative_expense=20,
    )
    assert figures.balance == 700
    assert figures.closing_cumulative_balance == -250
    assert figures.closing_cumulative_expense == 320


def test_introspect_average_sub_record_accumulates_balance() -> None:
    figures = introspect_expense(
        is_sub_record=True,
        allocation=BudgetAllocation.average,
        budget_amount=10_000,
        actual_amount=9_000,
        opening_cumulative_balance=2_000,
        opening_cumulative_expense=18_000,
    )
    assert figures.closing_cumulative_balance == 3_000
    assert figures.closing_cumulative_expense == 27_000


def test_introspect_income() -> None:
    assert introspect_income(opening_cumulative=500, amount=250) == 750


def test_average_allocation_splits_evenly_and_chains_openings() -> None:
    calc = _calculator(BudgetAllocation.average, 120_000)
    totals = RunningTotals()

    first = calc.allocate(totals)
    assert first.budget_amount == 10_000
    assert first.opening_cumulative_balance == 0
    assert first.opening_cumulative_expense == 0

    totals = calc.advance(totals, actual_amount=9_000, balance=1_000)
    second = calc.allocate(totals)
    assert second.budget_amount == 10_000
    assert second.opening_cumulative_balance == 1_000
    assert second.opening_cumulative_expense == 9_000


def test_average_allocation_conserves_budget_within_rounding() -> None:
    share = average_budget(100_000, PeriodType.year, PeriodType.month)
    assert share == 8_333
    drift = 100_000 - share * 12
    assert 0 <= drift <= 11


def test_none_allocation_passes_remaining_pool_forward() -> None:
    calc = _calculator(BudgetAllocation.none, 500_000)
    totals = RunningTotals()

    first = calc.allocate(totals)
    assert first.budget_amount == 500_000
    assert first.opening_cumulative_balance == 500_000

    totals = calc.advance(totals, actual_amount=200_000, balance=300_000)
    assert totals.pool == 300_000
    second = calc.allocate(totals)
    assert second.budget_amount == 300_000
    assert second.opening_cumulative_balance == 300_000
    assert second.opening_cumulative_expense == 200_000


def test_running_totals_are_not_mutated() -> None:
    calc = _calculator(BudgetAllocation.average, 12_000)
    start = RunningTotals()
    calc.advance(start, actual_amount=5, balance=7)
    assert start == RunningTotals()
