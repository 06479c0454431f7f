from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db


def make_client() -> TestClient:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def _expense(**overrides) -> dict:
    payload = {
        "type": "expense",
        "description": "Groceries",
        "category": "alimentação",
        "amount_cents": 300,
        "date": "2025-03-10",
    }
    payload.update(overrides)
    return payload


def test_credit_expense_updates_card_through_api() -> None:
    client = make_client()
    card = client.post("/api/cards", json={"name": "Visa", "limit_cents": 1000}).json()

    resp = client.post(
        "/api/transactions",
        json=_expense(payment_method="credit", card_id=card["id"]),
    )
    assert resp.status_code == 201
    txn = resp.json()
    assert txn["category"] == "Alimentação"

    card = client.get(f"/api/cards/{card['id']}").json()
    assert card["limit_used_cents"] == 300
    assert card["available_limit_cents"] == 700
    assert card["usage_pct"] == 30.0

    client.patch(f"/api/transactions/{txn['id']}", json={"amount_cents": 500})
    assert client.get(f"/api/cards/{card['id']}").json()["limit_used_cents"] == 500

    assert client.delete(f"/api/transactions/{txn['id']}").json() == {"deleted": True}
    assert client.delete(f"/api/transactions/{txn['id']}").json() == {"deleted": False}
    assert client.get(f"/api/cards/{card['id']}").json()["limit_used_cents"] == 0


def test_error_mapping() -> None:
    client = make_client()

    assert client.get("/api/transactions/missing").status_code == 404
    assert client.patch("/api/cards/missing", json={"name": "x"}).status_code == 404
    resp = client.post("/api/transactions", json=_expense(payment_method="credit"))
    assert resp.status_code == 400
    resp = client.post("/api/transactions", json=_expense(amount_cents=-1))
    assert resp.status_code == 422
    resp = client.post(
        "/api/goals", json={"type": "budget", "name": "Food", "target_cents": 100}
    )
    assert resp.status_code == 400


def test_listing_and_metrics() -> None:
    client = make_client()
    client.post(
        "/api/transactions",
        json=_expense(type="income", category="Salário", amount_cents=1000),
    )
    client.post("/api/transactions", json=_expense(amount_cents=80))
    client.post(
        "/api/transactions",
        json=_expense(category="Transporte", amount_cents=20, description="Bus"),
    )

    items = client.get("/api/transactions", params={"type": "expense"}).json()["items"]
    assert len(items) == 2

    summary = client.get("/api/summary").json()
    assert summary["balance_cents"] == 900

    breakdown = client.get("/api/expenses-by-category").json()
    assert {row["category"]: row["amount_cents"] for row in breakdown} == {
        "Alimentação": 80,
        "Transporte": 20,
    }

    evolution = client.get("/api/monthly-evolution", params={"year": 2025}).json()
    assert evolution[2]["income_cents"] == 1000

    assert len(client.get("/api/forecast", params={"months": 3}).json()) == 3
    assert client.get("/api/forecast", params={"months": 0}).status_code == 400
    stats = client.get("/api/statistics", params={"year": 2025}).json()
    assert stats["top_category"] == "Alimentação"
    assert stats["savings_rate"] == 90.0

    bad_period = client.get("/api/summary", params={"period": "custom"})
    assert bad_period.status_code == 400


def test_export_import_and_notifications() -> None:
    client = make_client()
    client.post("/api/transactions", json=_expense())

    envelope = client.get("/api/export").json()
    assert len(envelope["transactions"]) == 1

    resp = client.post("/api/import", json={"transactions": []})
    assert resp.json() == {"replaced": ["transactions"]}
    assert client.get("/api/transactions").json()["items"] == []
    assert client.post("/api/import", json={"cards": [{"name": "x"}]}).status_code == 400

    client.post("/api/notifications", json={"title": "Hi", "message": "hello"})
    data = client.get("/api/notifications").json()
    assert data["unread"] == 1
    note_id = data["items"][0]["id"]
    assert client.post(f"/api/notifications/{note_id}/read").json()["read"] is True
    assert client.delete("/api/notifications").json() == {"removed": 1}


def test_tools_and_settings() -> None:
    client = make_client()

    converted = client.post(
        "/api/tools/convert",
        json={"amount": 100, "from_currency": "EUR", "to_currency": "USD"},
    ).json()
    assert float(converted["converted"]) == 108.0

    settings = client.patch("/api/settings", json={"theme": "dark"}).json()
    assert settings["theme"] == "dark"
    assert settings["currency"] == "EUR"
