from fastapi import Depends, FastAPI, HTTPException, Response
from sqlalchemy.orm import Session

from config import configure_logging
from database import get_db
from errors import Conflict, HasDependents, InvalidPeriod, NotFound, PlanLedgerError
from scheduler import SchedulerManager
from schemas import (
    ExpensePlanIn,
    ExpensePlanOut,
    ExpensePlanUpdate,
    ExpenseRecordIn,
    ExpenseRecordOut,
    ExpenseRecordUpdate,
    IncomePlanIn,
    IncomePlanOut,
    IncomePlanUpdate,
    IncomeRecordIn,
    IncomeRecordOut,
    IncomeRecordUpdate,
    ReconcileSummary,
)
from services import (
    ExpensePlanService,
    ExpenseRecordService,
    IncomePlanService,
    IncomeRecordService,
    ReconcileService,
)

configure_logging()

app = FastAPI(title="Plan Ledger")

ERROR_STATUS: dict[type[PlanLedgerError], int] = {
    NotFound: 404,
    Conflict: 409,
    HasDependents: 409,
    InvalidPeriod: 400,
}


def http_error(exc: PlanLedgerError) -> HTTPException:
    status = 400
    for kind, code in ERROR_STATUS.items():
        if isinstance(exc, kind):
            status = code
            break
    return HTTPException(status_code=status, detail=exc.as_dict())


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


# expense plans


@app.get("/api/expense-plans", response_model=list[ExpensePlanOut])
def list_expense_plans(db: Session = Depends(get_db)):
    return ExpensePlanService(db).list_all()


@app.post("/api/expense-plans", response_model=ExpensePlanOut, status_code=201)
def create_expense_plan(data: ExpensePlanIn, db: Session = Depends(get_db)):
    try:
        return ExpensePlanService(db).create(data)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.get("/api/expense-plans/{plan_id}", response_model=ExpensePlanOut)
def get_expense_plan(plan_id: int, db: Session = Depends(get_db)):
    try:
        return ExpensePlanService(db).get(plan_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.patch("/api/expense-plans/{plan_id}", response_model=ExpensePlanOut)
def update_expense_plan(
    plan_id: int, data: ExpensePlanUpdate, db: Session = Depends(get_db)
):
    try:
        return ExpensePlanService(db).update(plan_id, data)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.delete("/api/expense-plans/{plan_id}", status_code=204)
def delete_expense_plan(plan_id: int, db: Session = Depends(get_db)):
    try:
        ExpensePlanService(db).delete(plan_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/expense-plans/{plan_id}/records", response_model=list[ExpenseRecordOut])
def list_expense_records(plan_id: int, db: Session = Depends(get_db)):
    try:
        return ExpenseRecordService(db).list_for_plan(plan_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


# expense records


@app.post("/api/expense-records", response_model=ExpenseRecordOut, status_code=201)
def create_expense_record(data: ExpenseRecordIn, db: Session = Depends(get_db)):
    try:
        return ExpenseRecordService(db).create(data)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.get("/api/expense-records/{record_id}", response_model=ExpenseRecordOut)
def get_expense_record(record_id: int, db: Session = Depends(get_db)):
    try:
        return ExpenseRecordService(db).get(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.patch("/api/expense-records/{record_id}", response_model=ExpenseRecordOut)
def update_expense_record(
    record_id: int,
    data: ExpenseRecordUpdate,
    incremental: bool = False,
    db: Session = Depends(get_db),
):
    try:
        return ExpenseRecordService(db).update(
            record_id, data, incremental=incremental
        )
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.delete("/api/expense-records/{record_id}", status_code=204)
def delete_expense_record(record_id: int, db: Session = Depends(get_db)):
    try:
        ExpenseRecordService(db).delete(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get(
    "/api/expense-records/{record_id}/sub-records",
    response_model=list[ExpenseRecordOut],
)
def list_expense_sub_records(record_id: int, db: Session = Depends(get_db)):
    try:
        return ExpenseRecordService(db).list_sub_records(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.post(
    "/api/expense-records/{record_id}/reconcile", response_model=ExpenseRecordOut
)
def reconcile_expense_record(record_id: int, db: Session = Depends(get_db)):
    try:
        return ExpenseRecordService(db).reconcile(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


# income plans


@app.get("/api/income-plans", response_model=list[IncomePlanOut])
def list_income_plans(db: Session = Depends(get_db)):
    return IncomePlanService(db).list_all()


@app.post("/api/income-plans", response_model=IncomePlanOut, status_code=201)
def create_income_plan(data: IncomePlanIn, db: Session = Depends(get_db)):
    try:
        return IncomePlanService(db).create(data)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.get("/api/income-plans/{plan_id}", response_model=IncomePlanOut)
def get_income_plan(plan_id: int, db: Session = Depends(get_db)):
    try:
        return IncomePlanService(db).get(plan_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.patch("/api/income-plans/{plan_id}", response_model=IncomePlanOut)
def update_income_plan(
    plan_id: int, data: IncomePlanUpdate, db: Session = Depends(get_db)
):
    try:
        return IncomePlanService(db).update(plan_id, data)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.delete("/api/income-plans/{plan_id}", status_code=204)
def delete_income_plan(plan_id: int, db: Session = Depends(get_db)):
    try:
        IncomePlanService(db).delete(plan_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/income-plans/{plan_id}/records", response_model=list[IncomeRecordOut])
def list_income_records(plan_id: int, db: Session = Depends(get_db)):
    try:
        return IncomeRecordService(db).list_for_plan(plan_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


# income records


@app.post("/api/income-records", response_model=IncomeRecordOut, status_code=201)
def create_income_record(data: IncomeRecordIn, db: Session = Depends(get_db)):
    try:
        return IncomeRecordService(db).create(data)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.get("/api/income-records/{record_id}", response_model=IncomeRecordOut)
def get_income_record(record_id: int, db: Session = Depends(get_db)):
    try:
        return IncomeRecordService(db).get(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.patch("/api/income-records/{record_id}", response_model=IncomeRecordOut)
def update_income_record(
    record_id: int,
    data: IncomeRecordUpdate,
    incremental: bool = False,
    db: Session = Depends(get_db),
):
    try:
        return IncomeRecordService(db).update(record_id, data, incremental=incremental)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.delete("/api/income-records/{record_id}", status_code=204)
def delete_income_record(record_id: int, db: Session = Depends(get_db)):
    try:
        IncomeRecordService(db).delete(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get(
    "/api/income-records/{record_id}/sub-records",
    response_model=list[IncomeRecordOut],
)
def list_income_sub_records(record_id: int, db: Session = Depends(get_db)):
    try:
        return IncomeRecordService(db).list_sub_records(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.post("/api/income-records/{record_id}/reconcile", response_model=IncomeRecordOut)
def reconcile_income_record(record_id: int, db: Session = Depends(get_db)):
    try:
        return IncomeRecordService(db).reconcile(record_id)
    except PlanLedgerError as exc:
        raise http_error(exc) from exc


@app.post("/api/reconcile", response_model=ReconcileSummary)
def reconcile_all(db: Session = Depends(get_db)):
    try:
        return ReconcileService(db).reconcile_all()
    except PlanLedgerError as exc:
        raise http_error(exc) from exc
