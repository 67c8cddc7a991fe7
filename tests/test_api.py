from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app


def _client() -> TestClient:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def test_plan_tree_round_trip_over_http() -> None:
    client = _client()

    res = client.post(
        "/api/expense-plans",
        json={"name": "Groceries", "period": "YEAR", "amount": 120000},
    )
    assert res.status_code == 201
    yearly = res.json()
    assert yearly["sub_period"] is None

    res = client.post(
        "/api/expense-plans",
        json={
            "name": "Groceries monthly",
            "period": "MONTH",
            "parent_id": yearly["id"],
            "budget_allocation": "AVERAGE",
        },
    )
    assert res.status_code == 201
    monthly = res.json()
    assert client.get(f"/api/expense-plans/{yearly['id']}").json()["sub_period"] == (
        "MONTH"
    )

    res = client.post(
        "/api/expense-records",
        json={"plan_id": yearly["id"], "date": "2025-03-14"},
    )
    assert res.status_code == 201
    parent = res.json()
    assert parent["date"] == "2025-01-01"
    assert parent["budget_amount"] == 120000

    res = client.post(
        "/api/expense-records",
        json={"plan_id": monthly["id"], "date": "2025-02-10", "actual_amount": 9000},
    )
    assert res.status_code == 201
    sub = res.json()
    assert sub["budget_amount"] == 10000
    assert sub["parent_record_id"] == parent["id"]
    assert sub["is_sub_record"] is True

    res = client.get(f"/api/expense-records/{parent['id']}")
    assert res.json()["actual_amount"] == 9000

    res = client.get(f"/api/expense-records/{parent['id']}/sub-records")
    assert [r["id"] for r in res.json()] == [sub["id"]]

    res = client.patch(
        f"/api/expense-records/{sub['id']}", json={"actual_amount": 0}
    )
    assert res.status_code == 200
    assert client.get(f"/api/expense-records/{parent['id']}").json()[
        "actual_amount"
    ] == 0

    res = client.post(f"/api/expense-records/{sub['id']}/reconcile")
    assert res.status_code == 200
    assert res.json()["id"] == sub["id"]

    res = client.get(f"/api/expense-plans/{monthly['id']}/records")
    assert [r["id"] for r in res.json()] == [sub["id"]]


def test_domain_errors_map_to_status_codes() -> None:
    client = _client()

    res = client.get("/api/expense-plans/999")
    assert res.status_code == 404
    assert res.json()["detail"]["error"] == "not_found"
    assert res.json()["detail"]["entity"] == "expense_plan"

    month = client.post(
        "/api/expense-plans", json={"name": "Gym", "period": "MONTH"}
    ).json()
    res = client.post(
        "/api/expense-plans",
        json={"name": "Gym yearly", "period": "YEAR", "parent_id": month["id"]},
    )
    assert res.status_code == 400
    assert res.json()["detail"]["error"] == "invalid_period"

    record = client.post(
        "/api/expense-records", json={"plan_id": month["id"], "date": "2025-05-01"}
    ).json()
    res = client.post(
        "/api/expense-records", json={"plan_id": month["id"], "date": "2025-05-20"}
    )
    assert res.status_code == 409
    assert res.json()["detail"]["entity_id"] == record["id"]

    res = client.delete(f"/api/expense-plans/{month['id']}")
    assert res.status_code == 409
    assert res.json()["detail"]["error"] == "has_dependents"

    assert client.delete(f"/api/expense-records/{record['id']}").status_code == 204
    assert client.delete(f"/api/expense-plans/{month['id']}").status_code == 204


def test_unknown_period_is_rejected_by_validation() -> None:
    client = _client()
    res = client.post("/api/income-plans", json={"name": "Tips", "period": "DAY"})
    assert res.status_code == 422


def test_income_routes_and_global_reconcile() -> None:
    client = _client()

    salary = client.post(
        "/api/income-plans", json={"name": "Salary", "period": "QUARTER"}
    ).json()
    monthly = client.post(
        "/api/income-plans",
        json={"name": "Salary monthly", "period": "MONTH", "parent_id": salary["id"]},
    ).json()
    quarter = client.post(
        "/api/income-records", json={"plan_id": salary["id"], "date": "2025-01-01"}
    ).json()
    client.post(
        "/api/income-records",
        json={"plan_id": monthly["id"], "date": "2025-02-01", "amount": 4000},
    )

    res = client.get(f"/api/income-records/{quarter['id']}")
    assert res.json()["amount"] == 4000
    assert res.json()["closing_cumulative"] == 4000

    res = client.patch(f"/api/income-plans/{salary['id']}", json={"name": "Pay"})
    assert res.json()["name"] == "Pay"

    res = client.post("/api/reconcile")
    assert res.status_code == 200
    assert res.json() == {"expense_plans": 0, "income_plans": 1, "records": 1}
