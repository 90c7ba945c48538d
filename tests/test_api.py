"""Tests for the Flask REST API."""

import pytest

from api.app import create_app


@pytest.fixture
def client(tmp_path):
    app = create_app(tmp_path / "ledger.json", seed_members=())
    return app.test_client()


def _add_members(client, *names):
    return [client.post("/api/users", json={"name": name}).get_json()["id"] for name in names]


def test_default_members_are_seeded(tmp_path):
    client = create_app(tmp_path / "ledger.json").test_client()

    names = [user["name"] for user in client.get("/api/users").get_json()]

    assert names == ["You", "Alex", "Sam", "Jordan"]


def test_settle_up_flow(client):
    ana, ben = _add_members(client, "Ana", "Ben")
    created = client.post(
        "/api/expenses",
        json={"description": "Taxi", "amount": 100, "paidBy": ana, "splitWith": [ana, ben], "category": "transport"},
    )
    assert created.status_code == 201
    assert created.get_json()["amount"] == "100.00"

    assert client.get("/api/balances").get_json() == {str(ana): "50.00", str(ben): "-50.00"}
    plan = client.get("/api/settlements/plan").get_json()
    assert plan == [{"from": ben, "to": ana, "amount": "50.00"}]

    accepted = client.post("/api/settlements", json=plan[0])
    assert accepted.status_code == 201
    body = accepted.get_json()
    assert body["settlement"]["fromName"] == "Ben"
    assert body["expense"]["isSettlement"] is True
    assert body["expense"]["splitWith"] == [ana]

    assert client.get("/api/balances").get_json() == {str(ana): "0.00", str(ben): "0.00"}
    assert client.get("/api/settlements/plan").get_json() == []
    assert len(client.get("/api/settlements").get_json()) == 1
    expenses = client.get("/api/expenses").get_json()
    assert [expense["isSettlement"] for expense in expenses] == [True, False]


def test_delete_user_with_expenses_conflicts(client):
    ana, ben = _add_members(client, "Ana", "Ben")
    client.post("/api/expenses", json={"description": "Tea", "amount": 4, "paidBy": ana, "splitWith": [ben]})

    response = client.delete(f"/api/users/{ben}")

    assert response.status_code == 409
    assert response.get_json()["error"] == "Cannot delete user with existing expenses."
    assert len(client.get("/api/users").get_json()) == 2


def test_delete_user_without_expenses(client):
    (ana,) = _add_members(client, "Ana")

    response = client.delete(f"/api/users/{ana}")

    assert response.get_json() == {"success": True}
    assert client.get("/api/users").get_json() == []


def test_update_and_delete_expense(client):
    ana, ben = _add_members(client, "Ana", "Ben")
    expense_id = client.post(
        "/api/expenses", json={"description": "Tea", "amount": 4, "paidBy": ana, "splitWith": [ben]}
    ).get_json()["id"]

    updated = client.put(f"/api/expenses/{expense_id}", json={"amount": "6"})
    assert updated.get_json()["amount"] == "6.00"

    assert client.delete(f"/api/expenses/{expense_id}").status_code == 200
    assert client.get(f"/api/expenses/{expense_id}").status_code == 404


def test_unknown_expense_returns_404(client):
    assert client.put("/api/expenses/12", json={"amount": 1}).status_code == 404
    assert client.delete("/api/expenses/12").status_code == 404


def test_validation_errors_return_400(client):
    response = client.post("/api/expenses", json={"description": "x", "amount": 5, "paidBy": 1, "splitWith": [1]})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Validation error"
    assert client.post("/api/users", data="name=Ana").status_code == 400


def test_insights_endpoint(client):
    ana, ben = _add_members(client, "Ana", "Ben")
    client.post(
        "/api/expenses",
        json={"description": "Dinner", "amount": 30, "paidBy": ana, "splitWith": [ana, ben], "category": "food"},
    )

    body = client.get("/api/insights").get_json()

    assert body["insights"][0]["title"] == "Top Spending Category"
    assert body["categories"][0]["category"] == "food"
    assert len(body["trend"]) == 30


def test_oversized_amount_returns_400(client):
    (ana,) = _add_members(client, "Ana")

    response = client.post(
        "/api/expenses", json={"description": "x", "amount": "1e27", "paidBy": ana, "splitWith": [ana]}
    )

    assert response.status_code == 400
    assert client.get("/api/expenses").get_json() == []
