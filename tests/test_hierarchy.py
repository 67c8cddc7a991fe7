from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import Conflict, HasDependents, InvalidPeriod, NotFound
from hierarchy import PlanHierarchy
from models import PeriodType
from schemas import ExpensePlanIn, ExpenseRecordIn, IncomePlanIn
from services import ExpensePlanService, ExpenseRecordService, IncomePlanService
from store import expense_store


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_sub_plan_creation_records_sub_period_on_parent() -> None:
    with Session(_engine()) as session:
        plans = ExpensePlanService(session)
        parent = plans.create(
            ExpensePlanIn(name="Holidays", period=PeriodType.year, amount=90_000)
        )
        assert parent.sub_period is None

        child = plans.create(
            ExpensePlanIn(
                name="Holidays weekly",
                period=PeriodType.week,
                parent_id=parent.id,
            )
        )
        assert child.parent_id == parent.id
        assert parent.sub_period == PeriodType.week
        assert PlanHierarchy(expense_store(session)).root_plan_id(child.id) == parent.id


def test_plan_owns_at_most_one_sub_plan() -> None:
    with Session(_engine()) as session:
        plans = ExpensePlanService(session)
        parent = plans.create(ExpensePlanIn(name="Car", period=PeriodType.year))
        plans.create(
            ExpensePlanIn(
                name="Car monthly",
                period=PeriodType.month,
                parent_id=parent.id,
            )
        )

        with pytest.raises(Conflict):
            plans.create(
                ExpensePlanIn(
                    name="Car quarterly", period=PeriodType.quarter, parent_id=parent.id
                )
            )


def test_sub_plans_cannot_nest() -> None:
    with Session(_engine()) as session:
        plans = ExpensePlanService(session)
        parent = plans.create(ExpensePlanIn(name="Car", period=PeriodType.year))
        child = plans.create(
            ExpensePlanIn(
                name="Car monthly",
                period=PeriodType.month,
                parent_id=parent.id,
            )
        )

        with pytest.raises(Conflict):
            plans.create(
                ExpensePlanIn(
                    name="Car weekly",
                    period=PeriodType.week,
                    parent_id=child.id,
                )
            )


def test_sub_plan_period_cannot_be_coarser() -> None:
    with Session(_engine()) as session:
        plans = ExpensePlanService(session)
        parent = plans.create(ExpensePlanIn(name="Gym", period=PeriodType.month))

        with pytest.raises(InvalidPeriod) as exc:
            plans.create(
                ExpensePlanIn(
                    name="Gym yearly",
                    period=PeriodType.year,
                    parent_id=parent.id,
                )
            )
        assert exc.value.as_dict()["error"] == "invalid_period"
        assert plans.list_all() == [parent]


def test_sub_plan_requires_existing_parent() -> None:
    with Session(_engine()) as session:
        with pytest.raises(NotFound):
            ExpensePlanService(session).create(
                ExpensePlanIn(name="Orphan", period=PeriodType.month, parent_id=42)
            )


def test_plan_deletion_is_blocked_by_dependents() -> None:
    with Session(_engine()) as session:
        plans = ExpensePlanService(session)
        parent = plans.create(ExpensePlanIn(name="Car", period=PeriodType.year))
        child = plans.create(
            ExpensePlanIn(
                name="Car monthly",
                period=PeriodType.month,
                parent_id=parent.id,
            )
        )

        with pytest.raises(HasDependents):
            plans.delete(parent.id)

        ExpenseRecordService(session).create(
            ExpenseRecordIn(plan_id=parent.id, date=date(2025, 1, 1))
        )
        plans.delete(child.id)
        assert parent.sub_period is None

        with pytest.raises(HasDependents):
            plans.delete(parent.id)


def test_plan_listing_puts_top_level_plans_first() -> None:
    with Session(_engine()) as session:
        plans = ExpensePlanService(session)
        first = plans.create(ExpensePlanIn(name="Car", period=PeriodType.year))
        child = plans.create(
            ExpensePlanIn(
                name="Car monthly",
                period=PeriodType.month,
                parent_id=first.id,
            )
        )
        second = plans.create(ExpensePlanIn(name="Rent", period=PeriodType.month))

        listed = plans.list_all()
        assert listed[-1].id == child.id
        assert {p.id for p in listed[:2]} == {first.id, second.id}


def test_income_plans_follow_the_same_rules() -> None:
    with Session(_engine()) as session:
        plans = IncomePlanService(session)
        salary = plans.create(IncomePlanIn(name="Salary", period=PeriodType.quarter))
        monthly = plans.create(
            IncomePlanIn(
                name="Salary monthly",
                period=PeriodType.month,
                parent_id=salary.id,
            )
        )
        assert salary.sub_period == PeriodType.month

        with pytest.raises(Conflict):
            plans.create(
                IncomePlanIn(
                    name="Salary weekly",
                    period=PeriodType.week,
                    parent_id=salary.id,
                )
            )
        tips = plans.create(IncomePlanIn(name="Tips", period=PeriodType.month))
        with pytest.raises(InvalidPeriod):
            plans.create(
                IncomePlanIn(
                    name="Tips yearly",
                    period=PeriodType.year,
                    parent_id=tips.id,
                )
            )
        assert monthly.parent_id == salary.id
