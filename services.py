from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from config import get_settings
from errors import Conflict, HasDependents, NotFound
from hierarchy import PlanHierarchy
from locking import PlanTreeLocks, plan_tree_locks
from models import ExpensePlan, ExpenseRecord, IncomePlan, IncomeRecord
from periods import bucket_start, same_bucket
from reconcile import ExpenseReconciler, IncomeReconciler
from schemas import (
    ExpensePlanIn,
    ExpensePlanUpdate,
    ExpenseRecordIn,
    ExpenseRecordUpdate,
    IncomePlanIn,
    IncomePlanUpdate,
    IncomeRecordIn,
    IncomeRecordUpdate,
    ReconcileSummary,
)
from store import RecordStore, expense_store, income_store

logger = logging.getLogger(__name__)


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


class _LedgerService:
    """Shared plumbing: one store, its hierarchy rules and the tree locks."""

    def __init__(
        self,
        session: Session,
        store: RecordStore,
        locks: Optional[PlanTreeLocks] = None,
    ) -> None:
        self.session = session
        self.store = store
        self.hierarchy = PlanHierarchy(store)
        self.locks = locks or plan_tree_locks

    @contextmanager
    def _mutation(self, root_plan_id: int) -> Iterator[None]:
        with self.locks.hold(self.store.kind, root_plan_id):
            try:
                yield
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise


class _PlanService(_LedgerService):
    def list_all(self):
        return self.store.list_plans()

    def get(self, plan_id: int):
        return self.store.require_plan(plan_id)

    def _insert(self, plan, parent_id: Optional[int]):
        if parent_id is None:
            self.store.insert_plan(plan)
            self.session.commit()
            logger.info(
                f"plan_created: kind={self.store.kind} plan_id={plan.id} "
                f"period={plan.period.value}"
            )
            return plan

        root_id = self.hierarchy.root_plan_id(parent_id)
        with self._mutation(root_id):
            self.hierarchy.create_sub_plan(parent_id, plan)
            # Parent actuals are rolled up from sub-records from now on.
            self.reconciler.reconcile_plan(parent_id)
        return plan

    def delete(self, plan_id: int) -> None:
        root_id = self.hierarchy.root_plan_id(plan_id)
        with self._mutation(root_id):
            self.hierarchy.delete_plan(plan_id)


class ExpensePlanService(_PlanService):
    def __init__(
        self, session: Session, locks: Optional[PlanTreeLocks] = None
    ) -> None:
        super().__init__(session, expense_store(session), locks)
        self.reconciler = ExpenseReconciler(self.store)

    def create(self, data: ExpensePlanIn) -> ExpensePlan:
        plan = ExpensePlan(
            name=data.name.strip(),
            amount=data.amount,
            period=data.period,
            budget_allocation=data.budget_allocation,
        )
        return self._insert(plan, data.parent_id)

    def update(self, plan_id: int, data: ExpensePlanUpdate) -> ExpensePlan:
        plan = self.store.require_plan(plan_id)
        root_id = self.hierarchy.root_plan_id(plan_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with self._mutation(root_id):
            allocation_changed = (
                "budget_allocation" in changes
                and changes["budget_allocation"] != plan.budget_allocation
            )
            if "name" in changes:
                plan.name = changes["name"].strip()
            if "amount" in changes:
                plan.amount = changes["amount"]
            if "budget_allocation" in changes:
                plan.budget_allocation = changes["budget_allocation"]
            self.session.flush()
            if allocation_changed and plan.parent_id is not None:
                logger.info(
                    f"allocation_changed: plan_id={plan.id} "
                    f"allocation={plan.budget_allocation.value}"
                )
                self.reconciler.reconcile_plan(plan.parent_id)
        return plan


class IncomePlanService(_PlanService):
    def __init__(
        self, session: Session, locks: Optional[PlanTreeLocks] = None
    ) -> None:
        super().__init__(session, income_store(session), locks)
        self.reconciler = IncomeReconciler(self.store)

    def create(self, data: IncomePlanIn) -> IncomePlan:
        plan = IncomePlan(name=data.name.strip(), period=data.period)
        return self._insert(plan, data.parent_id)

    def update(self, plan_id: int, data: IncomePlanUpdate) -> IncomePlan:
        plan = self.store.require_plan(plan_id)
        root_id = self.hierarchy.root_plan_id(plan_id)
        with self._mutation(root_id):
            if data.name is not None:
                plan.name = data.name.strip()
        return plan


class _RecordService(_LedgerService):
    def list_for_plan(self, plan_id: int):
        self.store.require_plan(plan_id)
        records = self.store.list_by_plan(plan_id)
        return sorted(
            records, key=lambda r: (r.is_sub_record, -r.date.toordinal(), -r.id)
        )

    def get(self, record_id: int):
        return self.store.require(record_id)

    def list_sub_records(self, record_id: int):
        self.store.require(record_id)
        return self.store.list_by_parent_record(record_id)

    def _ensure_bucket_free(
        self, plan, record_date: date, *, exclude_id: Optional[int] = None
    ) -> None:
        existing = self.store.find_in_bucket(
            plan.id, plan.period, record_date, exclude_id=exclude_id
        )
        if existing is not None:
            raise Conflict(
                f"Plan {plan.id} already has record {existing.id} for the "
                f"{plan.period.value.lower()} starting {existing.date.isoformat()}",
                entity=self.store.record_entity,
                entity_id=existing.id,
            )

    def _resolve_parent(
        self, plan, record_date: date, requested_id: Optional[int]
    ):
        if plan.parent_id is None:
            return None
        parent_plan = self.store.require_plan(plan.parent_id)
        parent = self.store.find_in_bucket(
            parent_plan.id, parent_plan.period, record_date
        )
        if parent is None:
            raise NotFound(
                f"Plan {parent_plan.id} has no record covering "
                f"{record_date.isoformat()}; create it first",
                entity=self.store.record_entity,
                entity_id=requested_id,
            )
        if requested_id is not None and requested_id != parent.id:
            raise Conflict(
                f"Record date {record_date.isoformat()} belongs to parent record "
                f"{parent.id}, not {requested_id}",
                entity=self.store.record_entity,
                entity_id=requested_id,
            )
        return parent

    def _check_new_date(self, record, plan, new_date: date) -> None:
        self._ensure_bucket_free(plan, new_date, exclude_id=record.id)
        if not record.is_sub_record:
            children = self.store.count_by_parent_record(record.id)
            if children and not same_bucket(plan.period, record.date, new_date):
                raise HasDependents(
                    f"Record {record.id} has {children} sub-records in its current "
                    f"{plan.period.value.lower()}; move or delete them first",
                    entity=self.store.record_entity,
                    entity_id=record.id,
                )
            return
        parent = self.store.get(record.parent_record_id)
        parent_plan = self.store.get_plan(plan.parent_id) if plan.parent_id else None
        if parent is None or parent_plan is None:
            raise NotFound(
                f"Parent record {record.parent_record_id} not found for record "
                f"{record.id}",
                entity=self.store.record_entity,
                entity_id=record.id,
            )
        if not same_bucket(parent_plan.period, parent.date, new_date):
            raise Conflict(
                f"Date {new_date.isoformat()} is outside parent record {parent.id}",
                entity=self.store.record_entity,
                entity_id=record.id,
            )

    def reconcile(self, record_id: int):
        record = self.store.require(record_id)
        root_id = self.hierarchy.root_plan_id(record.plan_id)
        with self._mutation(root_id):
            self.reconciler.reconcile(record)
        return record

    def delete(self, record_id: int) -> None:
        record = self.store.require(record_id)
        root_id = self.hierarchy.root_plan_id(record.plan_id)
        with self._mutation(root_id):
            self.hierarchy.ensure_record_deletable(record)
            parent_id = record.parent_record_id if record.is_sub_record else None
            self.store.delete(record)
            logger.info(
                f"record_deleted: kind={self.store.kind} record_id={record_id} "
                f"parent_record_id={parent_id}"
            )
            if parent_id is not None:
                parent = self.store.get(parent_id)
                if parent is not None:
                    self.reconciler.reconcile(parent)


class ExpenseRecordService(_RecordService):
    def __init__(
        self, session: Session, locks: Optional[PlanTreeLocks] = None
    ) -> None:
        super().__init__(session, expense_store(session), locks)
        self.reconciler = ExpenseReconciler(self.store)

    def create(self, data: ExpenseRecordIn) -> ExpenseRecord:
        plan = self.store.require_plan(data.plan_id)
        root_id = self.hierarchy.root_plan_id(plan.id)
        with self._mutation(root_id):
            record_date = bucket_start(plan.period, data.date or local_today())
            self._ensure_bucket_free(plan, record_date)
            parent = self._resolve_parent(plan, record_date, data.parent_record_id)

            if parent is not None:
                default_balance = parent.opening_cumulative_balance
                default_expense = parent.opening_cumulative_expense
            else:
                previous = self.store.latest_before(plan.id, record_date)
                default_balance = previous.closing_cumulative_balance if previous else 0
                default_expense = previous.closing_cumulative_expense if previous else 0
            opening_balance = data.opening_cumulative_balance
            if opening_balance is None:
                opening_balance = default_balance
            opening_expense = data.opening_cumulative_expense
            if opening_expense is None:
                opening_expense = default_expense
            budget = data.budget_amount
            if budget is None:
                budget = plan.amount if parent is None else 0

            record = ExpenseRecord(
                plan_id=plan.id,
                parent_record_id=parent.id if parent is not None else None,
                date=record_date,
                budget_amount=budget,
                actual_amount=data.actual_amount,
                balance=budget - data.actual_amount,
                opening_cumulative_balance=opening_balance,
                closing_cumulative_balance=opening_balance,
                opening_cumulative_expense=opening_expense,
                closing_cumulative_expense=opening_expense,
                is_sub_record=parent is not None,
            )
            self.store.insert(record)
            logger.info(
                f"record_created: kind=expense record_id={record.id} "
                f"plan_id={plan.id} date={record_date.isoformat()} "
                f"parent_record_id={record.parent_record_id}"
            )
            self.reconciler.reconcile(record)
        return record

    def update(
        self,
        record_id: int,
        data: ExpenseRecordUpdate,
        *,
        incremental: bool = False,
    ) -> ExpenseRecord:
        """Merge changes into a record and restore the tree's invariants.

        With ``incremental`` a sub-record is only re-introspected and its
        parent's cumulative summary refreshed from the first and last
        sub-records; budgets are not re-allocated. Use it for plain amount
        edits; anything that changes ordering needs the full reconcile.
        """
        record = self.store.require(record_id)
        plan = self.store.require_plan(record.plan_id)
        root_id = self.hierarchy.root_plan_id(plan.id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with self._mutation(root_id):
            if "date" in changes:
                changes["date"] = bucket_start(plan.period, changes["date"])
                if changes["date"] != record.date:
                    self._check_new_date(record, plan, changes["date"])
            self.store.update(record, **changes)

            if incremental and record.is_sub_record and "date" not in changes:
                self.reconciler.introspect(record, plan)
                self.reconciler.update_parent_summary(record.parent_record_id)
            else:
                self.reconciler.reconcile(record)
        return record


class IncomeRecordService(_RecordService):
    def __init__(
        self, session: Session, locks: Optional[PlanTreeLocks] = None
    ) -> None:
        super().__init__(session, income_store(session), locks)
        self.reconciler = IncomeReconciler(self.store)

    def create(self, data: IncomeRecordIn) -> IncomeRecord:
        plan = self.store.require_plan(data.plan_id)
        root_id = self.hierarchy.root_plan_id(plan.id)
        with self._mutation(root_id):
            record_date = bucket_start(plan.period, data.date or local_today())
            self._ensure_bucket_free(plan, record_date)
            parent = self._resolve_parent(plan, record_date, data.parent_record_id)

            opening = data.opening_cumulative
            if opening is None:
                if parent is not None:
                    opening = parent.opening_cumulative
                else:
                    previous = self.store.latest_before(plan.id, record_date)
                    opening = previous.closing_cumulative if previous else 0

            record = IncomeRecord(
                plan_id=plan.id,
                parent_record_id=parent.id if parent is not None else None,
                date=record_date,
                amount=data.amount,
                opening_cumulative=opening,
                closing_cumulative=opening + data.amount,
                is_sub_record=parent is not None,
            )
            self.store.insert(record)
            logger.info(
                f"record_created: kind=income record_id={record.id} "
                f"plan_id={plan.id} date={record_date.isoformat()} "
                f"parent_record_id={record.parent_record_id}"
            )
            self.reconciler.reconcile(record)
        return record

    def update(
        self,
        record_id: int,
        data: IncomeRecordUpdate,
        *,
        incremental: bool = False,
    ) -> IncomeRecord:
        record = self.store.require(record_id)
        plan = self.store.require_plan(record.plan_id)
        root_id = self.hierarchy.root_plan_id(plan.id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with self._mutation(root_id):
            if "date" in changes:
                changes["date"] = bucket_start(plan.period, changes["date"])
                if changes["date"] != record.date:
                    self._check_new_date(record, plan, changes["date"])
            self.store.update(record, **changes)

            if incremental and record.is_sub_record and "date" not in changes:
                self.reconciler.introspect(record)
                self.reconciler.update_parent_summary(record.parent_record_id)
            else:
                self.reconciler.reconcile(record)
        return record


class ReconcileService:
    def __init__(
        self, session: Session, locks: Optional[PlanTreeLocks] = None
    ) -> None:
        self.session = session
        self.locks = locks or plan_tree_locks

    def _reconcile_roots(self, store: RecordStore, reconciler) -> tuple[int, int]:
        roots = [plan for plan in store.list_plans() if plan.parent_id is None]
        records = 0
        for plan in roots:
            with self.locks.hold(store.kind, plan.id):
                try:
                    records += reconciler.reconcile_plan(plan.id)
                    self.session.commit()
                except Exception:
                    self.session.rollback()
                    raise
        return len(roots), records

    def reconcile_all(self) -> ReconcileSummary:
        expenses = expense_store(self.session)
        incomes = income_store(self.session)
        expense_plans, expense_records = self._reconcile_roots(
            expenses, ExpenseReconciler(expenses)
        )
        income_plans, income_records = self._reconcile_roots(
            incomes, IncomeReconciler(incomes)
        )
        summary = ReconcileSummary(
            expense_plans=expense_plans,
            income_plans=income_plans,
            records=expense_records + income_records,
        )
        logger.info(
            f"reconcile_all: expense_plans={summary.expense_plans} "
            f"income_plans={summary.income_plans} records={summary.records}"
        )
        return summary
