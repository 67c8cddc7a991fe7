from datetime import date
from typing import Generic, Optional, TypeVar, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from errors import NotFound
from models import ExpensePlan, ExpenseRecord, IncomePlan, IncomeRecord, PeriodType
from periods import bucket_for

PlanT = TypeVar("PlanT", ExpensePlan, IncomePlan)
RecordT = TypeVar("RecordT", ExpenseRecord, IncomeRecord)


class RecordStore(Generic[PlanT, RecordT]):
    """Plan and record persistence for one ledger kind (expense or income).

    Writes are flushed immediately; committing is left to the service that
    owns the session.
    """

    def __init__(
        self,
        session: Session,
        plan_model: type[PlanT],
        record_model: type[RecordT],
        kind: str,
    ) -> None:
        self.session = session
        self.plan_model = plan_model
        self.record_model = record_model
        self.kind = kind

    @property
    def plan_entity(self) -> str:
        return f"{self.kind}_plan"

    @property
    def record_entity(self) -> str:
        return f"{self.kind}_record"

    # plans

    def get_plan(self, plan_id: int) -> Optional[PlanT]:
        return self.session.get(self.plan_model, plan_id)

    def require_plan(self, plan_id: int) -> PlanT:
        plan = self.get_plan(plan_id)
        if plan is None:
            raise NotFound(
                f"Plan {plan_id} not found", entity=self.plan_entity, entity_id=plan_id
            )
        return plan

    def list_plans(self) -> list[PlanT]:
        model = self.plan_model
        stmt = select(model).order_by(
            model.parent_id.is_(None).desc(), model.created_at.desc(), model.id.desc()
        )
        return list(self.session.scalars(stmt).all())

    def sub_plans_of(self, plan_id: int) -> list[PlanT]:
        model = self.plan_model
        stmt = select(model).where(model.parent_id == plan_id).order_by(model.id)
        return list(self.session.scalars(stmt).all())

    def sub_plan_of(self, plan_id: int) -> Optional[PlanT]:
        subs = self.sub_plans_of(plan_id)
        return subs[0] if subs else None

    def insert_plan(self, plan: PlanT) -> PlanT:
        self.session.add(plan)
        self.session.flush()
        return plan

    def delete_plan(self, plan: PlanT) -> None:
        self.session.delete(plan)
        self.session.flush()

    # records

    def get(self, record_id: int) -> Optional[RecordT]:
        return self.session.get(self.record_model, record_id)

    def require(self, record_id: int) -> RecordT:
        record = self.get(record_id)
        if record is None:
            raise NotFound(
                f"Record {record_id} not found",
                entity=self.record_entity,
                entity_id=record_id,
            )
        return record

    def list_by_plan(self, plan_id: int) -> list[RecordT]:
        model = self.record_model
        stmt = (
            select(model)
            .where(model.plan_id == plan_id)
            .order_by(model.date.asc(), model.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def list_by_parent_record(self, parent_record_id: int) -> list[RecordT]:
        model = self.record_model
        stmt = (
            select(model)
            .where(model.parent_record_id == parent_record_id)
            .order_by(model.date.asc(), model.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def count_by_plan(self, plan_id: int) -> int:
        model = self.record_model
        stmt = select(func.count(model.id)).where(model.plan_id == plan_id)
        return int(self.session.execute(stmt).scalar_one())

    def count_by_parent_record(self, parent_record_id: int) -> int:
        model = self.record_model
        stmt = select(func.count(model.id)).where(
            model.parent_record_id == parent_record_id
        )
        return int(self.session.execute(stmt).scalar_one())

    def find_in_bucket(
        self,
        plan_id: int,
        period: Union[PeriodType, str],
        value: date,
        *,
        exclude_id: Optional[int] = None,
    ) -> Optional[RecordT]:
        bucket = bucket_for(period, value)
        model = self.record_model
        stmt = (
            select(model)
            .where(
                model.plan_id == plan_id,
                model.date.between(bucket.start, bucket.end),
            )
            .order_by(model.date.asc(), model.id.asc())
        )
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        return self.session.scalars(stmt).first()

    def latest_before(self, plan_id: int, value: date) -> Optional[RecordT]:
        model = self.record_model
        stmt = (
            select(model)
            .where(model.plan_id == plan_id, model.date < value)
            .order_by(model.date.desc(), model.id.desc())
        )
        return self.session.scalars(stmt).first()

    def insert(self, record: RecordT) -> RecordT:
        self.session.add(record)
        self.session.flush()
        return record

    def update(self, record: RecordT, **fields: object) -> RecordT:
        for name, value in fields.items():
            setattr(record, name, value)
        self.session.flush()
        return record

    def delete(self, record: RecordT) -> None:
        self.session.delete(record)
        self.session.flush()


def expense_store(session: Session) -> RecordStore[ExpensePlan, ExpenseRecord]:
    return RecordStore(session, ExpensePlan, ExpenseRecord, "expense")


def income_store(session: Session) -> RecordStore[IncomePlan, IncomeRecord]:
    return RecordStore(session, IncomePlan, IncomeRecord, "income")
