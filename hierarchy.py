import logging
from typing import Optional

from errors import Conflict, HasDependents, InvalidPeriod, NotFound
from periods import is_finer_or_equal, require_period
from store import PlanT, RecordStore, RecordT

logger = logging.getLogger(__name__)


class PlanHierarchy:
    """Structural rules of a plan tree.

    Plans reference their parent by id. A plan owns at most one sub-plan,
    sub-plans cannot have sub-plans of their own, and a sub-plan's period
    is never coarser than its parent's.
    """

    def __init__(self, store: RecordStore[PlanT, RecordT]) -> None:
        self.store = store

    def sub_plan(self, plan_id: int) -> Optional[PlanT]:
        return self.store.sub_plan_of(plan_id)

    def root_plan_id(self, plan_id: int) -> int:
        seen: set[int] = set()
        current = self.store.require_plan(plan_id)
        while current.parent_id is not None:
            if current.id in seen:
                raise Conflict(
                    f"Plan {plan_id} has a cyclic parent chain",
                    entity=self.store.plan_entity,
                    entity_id=plan_id,
                )
            seen.add(current.id)
            parent = self.store.get_plan(current.parent_id)
            if parent is None:
                break
            current = parent
        return current.id

    def validate_sub_plan(self, parent_id: int, period) -> PlanT:
        entity = self.store.plan_entity
        parent = self.store.get_plan(parent_id)
        if parent is None:
            raise NotFound(
                f"Parent plan {parent_id} not found", entity=entity, entity_id=parent_id
            )
        if parent.parent_id is not None:
            raise Conflict(
                f"Plan {parent_id} is already a sub-plan and cannot own one",
                entity=entity,
                entity_id=parent_id,
            )
        existing = self.sub_plan(parent_id)
        if existing is not None:
            raise Conflict(
                f"Plan {parent_id} already has sub-plan {existing.id}",
                entity=entity,
                entity_id=parent_id,
            )
        period = require_period(period)
        if not is_finer_or_equal(period, parent.period):
            raise InvalidPeriod(
                f"Sub-plan period {period.value} is coarser than parent period "
                f"{parent.period.value}",
                entity=entity,
                entity_id=parent_id,
            )
        return parent

    def create_sub_plan(self, parent_id: int, plan: PlanT) -> PlanT:
        parent = self.validate_sub_plan(parent_id, plan.period)
        plan.parent_id = parent.id
        self.store.insert_plan(plan)
        parent.sub_period = plan.period
        self.store.session.flush()
        logger.info(
            f"sub_plan_created: kind={self.store.kind} plan_id={plan.id} "
            f"parent_id={parent.id} period={plan.period.value}"
        )
        return plan

    def ensure_plan_deletable(self, plan: PlanT) -> None:
        entity = self.store.plan_entity
        sub = self.sub_plan(plan.id)
        if sub is not None:
            raise HasDependents(
                f"Plan {plan.id} has sub-plan {sub.id}; delete it first",
                entity=entity,
                entity_id=plan.id,
            )
        if self.store.count_by_plan(plan.id) > 0:
            raise HasDependents(
                f"Plan {plan.id} has records; delete them first",
                entity=entity,
                entity_id=plan.id,
            )

    def delete_plan(self, plan_id: int) -> None:
        plan = self.store.require_plan(plan_id)
        self.ensure_plan_deletable(plan)
        parent_id = plan.parent_id
        self.store.delete_plan(plan)
        if parent_id is not None:
            parent = self.store.get_plan(parent_id)
            if parent is not None:
                parent.sub_period = None
                self.store.session.flush()
        logger.info(f"plan_deleted: kind={self.store.kind} plan_id={plan_id}")

    def ensure_record_deletable(self, record: RecordT) -> None:
        count = self.store.count_by_parent_record(record.id)
        if count > 0:
            raise HasDependents(
                f"Record {record.id} has {count} sub-records; delete them first",
                entity=self.store.record_entity,
                entity_id=record.id,
            )
