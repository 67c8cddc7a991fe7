"""Reconciliation of plan trees.

Whenever a record changes, the record tree it belongs to is recomputed from
the top: the parent bucket's budget is allocated across its sub-records in
date order, each sub-record's cumulative openings are derived from the
sub-records before it, and the parent's actual figures are rolled up from
its sub-records. Every record touched is written back through the store
before ``reconcile`` returns.
"""

import logging
from abc import ABC, abstractmethod
from typing import Generic, Optional

from allocation import (
    AllocationCalculator,
    RunningTotals,
    introspect_expense,
    introspect_income,
)
from errors import NotFound
from hierarchy import PlanHierarchy
from models import ExpensePlan, ExpenseRecord, IncomePlan, IncomeRecord
from periods import same_bucket
from store import PlanT, RecordStore, RecordT

logger = logging.getLogger(__name__)


class _Reconciler(ABC, Generic[PlanT, RecordT]):
    def __init__(self, store: RecordStore[PlanT, RecordT]) -> None:
        self.store = store
        self.hierarchy = PlanHierarchy(store)

    @property
    def kind(self) -> str:
        return self.store.kind

    def start_point(self, record: RecordT) -> RecordT:
        """Sub-records are only ever reconciled through their parent bucket."""
        if not record.is_sub_record:
            return record
        parent_id = record.parent_record_id
        parent = self.store.get(parent_id) if parent_id is not None else None
        if parent is None:
            raise NotFound(
                f"Parent record {parent_id} not found for record {record.id}",
                entity=self.store.record_entity,
                entity_id=record.id,
            )
        return parent

    def reconcile(self, record: RecordT) -> RecordT:
        start = self.start_point(record)
        logger.info(
            f"reconcile_start: kind={self.kind} record_id={record.id} "
            f"start_record_id={start.id} plan_id={start.plan_id}"
        )
        try:
            result = self._reconcile(start, depth=0)
        except Exception:
            logger.exception(
                f"reconcile_failed: kind={self.kind} start_record_id={start.id} "
                f"plan_id={start.plan_id}; tree may be partially reconciled"
            )
            raise
        logger.info(
            f"reconcile_done: kind={self.kind} start_record_id={result.id} "
            f"plan_id={result.plan_id}"
        )
        return result

    def reconcile_plan(self, plan_id: int) -> int:
        """Reconcile every top-level record of a plan, oldest bucket first."""
        records = [
            record
            for record in self.store.list_by_plan(plan_id)
            if not record.is_sub_record
        ]
        for record in records:
            self._reconcile(record, depth=0)
        logger.info(
            f"reconcile_plan: kind={self.kind} plan_id={plan_id} "
            f"records={len(records)}"
        )
        return len(records)

    def matching_sub_records(
        self, record: RecordT, plan: PlanT, sub_plan: PlanT
    ) -> list[RecordT]:
        candidates = self.store.list_by_plan(sub_plan.id)
        matching = [
            sub for sub in candidates if same_bucket(plan.period, record.date, sub.date)
        ]
        return sorted(matching, key=lambda sub: (sub.date, sub.id))

    @abstractmethod
    def _reconcile(self, record: RecordT, *, depth: int) -> RecordT:
        """Recompute one record and everything below it."""

    @abstractmethod
    def update_parent_summary(self, parent_record_id: int) -> Optional[RecordT]:
        """Refresh a parent's cumulative fields from its first and last sub-records."""


class ExpenseReconciler(_Reconciler[ExpensePlan, ExpenseRecord]):
    def introspect(self, record: ExpenseRecord, plan: ExpensePlan) -> ExpenseRecord:
        figures = introspect_expense(
            is_sub_record=record.is_sub_record,
            allocation=plan.budget_allocation,
            budget_amount=record.budget_amount,
            actual_amount=record.actual_amount,
            opening_cumulative_balance=record.opening_cumulative_balance,
            opening_cumulative_expense=record.opening_cumulative_expense,
        )
        return self.store.update(
            record,
            balance=figures.balance,
            closing_cumulative_balance=figures.closing_cumulative_balance,
            closing_cumulative_expense=figures.closing_cumulative_expense,
        )

    def _reconcile(self, record: ExpenseRecord, *, depth: int) -> ExpenseRecord:
        plan = self.store.get_plan(record.plan_id)
        if plan is None:
            logger.warning(
                f"reconcile_skip: kind=expense record_id={record.id} "
                f"plan_id={record.plan_id} reason=plan_missing"
            )
            return record

        sub_plan = self.hierarchy.sub_plan(plan.id)
        if sub_plan is None:
            logger.debug(
                f"reconcile_leaf: kind=expense record_id={record.id} "
                f"plan_id={plan.id} depth={depth}"
            )
            return self.introspect(record, plan)

        sub_records = self.matching_sub_records(record, plan, sub_plan)
        logger.debug(
            f"reconcile_step: kind=expense record_id={record.id} plan_id={plan.id} "
            f"sub_plan_id={sub_plan.id} allocation={sub_plan.budget_allocation.value} "
            f"sub_records={len(sub_records)} depth={depth}"
        )
        totals = self._fold_sub_records(record, plan, sub_plan, sub_records, depth)

        self.store.update(record, actual_amount=totals.actual)
        return self.introspect(record, plan)

    def _fold_sub_records(
        self,
        record: ExpenseRecord,
        plan: ExpensePlan,
        sub_plan: ExpensePlan,
        sub_records: list[ExpenseRecord],
        depth: int,
    ) -> RunningTotals:
        calculator = AllocationCalculator(
            sub_plan.budget_allocation,
            parent_budget=record.budget_amount,
            parent_opening_balance=record.opening_cumulative_balance,
            parent_opening_expense=record.opening_cumulative_expense,
            parent_period=plan.period,
            sub_period=sub_plan.period,
        )
        totals = RunningTotals()
        for sub_record in sub_records:
            allocation = calculator.allocate(totals)
            logger.debug(
                f"reconcile_allocate: kind=expense record_id={sub_record.id} "
                f"parent_record_id={record.id} budget={allocation.budget_amount} "
                f"opening_balance={allocation.opening_cumulative_balance} "
                f"opening_expense={allocation.opening_cumulative_expense}"
            )
            self.store.update(
                sub_record,
                budget_amount=allocation.budget_amount,
                opening_cumulative_balance=allocation.opening_cumulative_balance,
                opening_cumulative_expense=allocation.opening_cumulative_expense,
            )
            reconciled = self._reconcile(sub_record, depth=depth + 1)
            totals = calculator.advance(
                totals,
                actual_amount=reconciled.actual_amount,
                balance=reconciled.balance,
            )
        return totals

    def update_parent_summary(self, parent_record_id: int) -> Optional[ExpenseRecord]:
        """Copy openings from the first sub-record and closings from the last.

        A cheap incremental refresh; it does not re-allocate budgets, so
        structural changes still need a full ``reconcile``.
        """
        parent = self.store.require(parent_record_id)
        siblings = self.store.list_by_parent_record(parent_record_id)
        if not siblings:
            return None
        first, last = siblings[0], siblings[-1]
        logger.debug(
            f"parent_summary: kind=expense parent_record_id={parent_record_id} "
            f"first_id={first.id} last_id={last.id}"
        )
        return self.store.update(
            parent,
            opening_cumulative_balance=first.opening_cumulative_balance,
            closing_cumulative_balance=last.closing_cumulative_balance,
            opening_cumulative_expense=first.opening_cumulative_expense,
            closing_cumulative_expense=last.closing_cumulative_expense,
        )


class IncomeReconciler(_Reconciler[IncomePlan, IncomeRecord]):
    def introspect(self, record: IncomeRecord) -> IncomeRecord:
        return self.store.update(
            record,
            closing_cumulative=introspect_income(
                opening_cumulative=record.opening_cumulative, amount=record.amount
            ),
        )

    def _reconcile(self, record: IncomeRecord, *, depth: int) -> IncomeRecord:
        plan = self.store.get_plan(record.plan_id)
        if plan is None:
            logger.warning(
                f"reconcile_skip: kind=income record_id={record.id} "
                f"plan_id={record.plan_id} reason=plan_missing"
            )
            return record

        sub_plan = self.hierarchy.sub_plan(plan.id)
        if sub_plan is None:
            logger.debug(
                f"reconcile_leaf: kind=income record_id={record.id} "
                f"plan_id={plan.id} depth={depth}"
            )
            return self.introspect(record)

        sub_records = self.matching_sub_records(record, plan, sub_plan)
        logger.debug(
            f"reconcile_step: kind=income record_id={record.id} plan_id={plan.id} "
            f"sub_plan_id={sub_plan.id} sub_records={len(sub_records)} depth={depth}"
        )
        total_income = 0
        for sub_record in sub_records:
            self.store.update(
                sub_record, opening_cumulative=record.opening_cumulative + total_income
            )
            reconciled = self._reconcile(sub_record, depth=depth + 1)
            total_income += reconciled.amount

        self.store.update(record, amount=total_income)
        return self.introspect(record)

    def update_parent_summary(self, parent_record_id: int) -> Optional[IncomeRecord]:
        parent = self.store.require(parent_record_id)
        siblings = self.store.list_by_parent_record(parent_record_id)
        if not siblings:
            return None
        logger.debug(
            f"parent_summary: kind=income parent_record_id={parent_record_id} "
            f"first_id={siblings[0].id} last_id={siblings[-1].id}"
        )
        return self.store.update(
            parent,
            opening_cumulative=siblings[0].opening_cumulative,
            closing_cumulative=siblings[-1].closing_cumulative,
        )
