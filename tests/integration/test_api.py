"""Integration tests for API endpoints"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient


def _authorize(client: TestClient, card_id: str, amount: int, transaction_id: str = "txn_api_1", **extra):
    payload = {"id": transaction_id, "card_id": card_id, "amount": amount, "currency": "usd"}
    payload.update(extra)
    return client.post("/v1/webhooks/transactions", json=payload)


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "card-ledger"}


def test_ready_endpoint(client: TestClient):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"


def test_ready_endpoint_reports_unreachable_database(client: TestClient, store, monkeypatch):
    def broken_ping():
        raise RuntimeError("connection refused")

    monkeypatch.setattr(store, "ping", broken_ping)

    response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "unavailable"


def test_metrics_endpoint(client: TestClient, card):
    """Test Prometheus metrics endpoint"""
    _authorize(client, card.id, 1000)

    response = client.get("/metrics")
    assert response.status_code == 200
    assert "ledger_authorization_total" in response.text
    assert "http_request_duration_seconds" in response.text


def test_request_id_is_generated_or_echoed(client: TestClient):
    generated = client.get("/health")
    echoed = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert generated.headers["X-Request-ID"]
    assert echoed.headers["X-Request-ID"] == "req-123"


def test_authorization_webhook_approves(client: TestClient, card, account):
    response = _authorize(
        client,
        card.id,
        250000,
        merchant_data={"category": 5812, "name": "Bistro", "address": {"city": "Denver"}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["approved"] is True
    assert "reason" not in data
    txn = data["transaction"]
    assert txn["id"] == "txn_api_1"
    assert txn["status"] == "pending"
    assert Decimal(txn["new_balance"]) == Decimal("2500.00")
    assert txn["merchant_category_code"] == 5812


def test_authorization_webhook_decline_is_200(client: TestClient, card):
    response = _authorize(client, card.id, 600000)

    assert response.status_code == 200
    data = response.json()
    assert data["approved"] is False
    assert data["decline_code"] == "insufficient_credit"
    assert data["reason"].startswith("Insufficient credit")
    assert "transaction" not in data


def test_authorization_webhook_duplicate_returns_same_transaction(client: TestClient, card, account, balance_of):
    first = _authorize(client, card.id, 5000).json()
    second = _authorize(client, card.id, 5000).json()

    assert first["transaction"]["id"] == second["transaction"]["id"]
    assert balance_of(account.id) == Decimal("50.00")


@pytest.mark.parametrize(
    "payload",
    [
        {"card_id": "card_1", "amount": 100},
        {"id": "txn_1", "amount": 100},
        {"id": "txn_1", "card_id": "card_1"},
        {"id": "txn_1", "card_id": "card_1", "amount": 0},
        {"id": "txn_1", "card_id": "card_1", "amount": -100},
    ],
)
def test_authorization_webhook_rejects_bad_input(client: TestClient, payload):
    response = client.post("/v1/webhooks/transactions", json=payload)
    assert response.status_code == 422


def test_settlement_webhook_with_adjustment(client: TestClient, card, account, balance_of):
    _authorize(client, card.id, 10000)

    response = client.post("/v1/webhooks/settlements", json={"transaction_id": "txn_api_1", "final_amount": "85.00"})

    assert response.status_code == 200
    data = response.json()
    assert data["settled"] is True
    assert data["transaction"]["status"] == "posted"
    assert Decimal(data["transaction"]["amount"]) == Decimal("85.00")
    assert balance_of(account.id) == Decimal("85.00")


def test_settlement_webhook_rejections(client: TestClient, card):
    _authorize(client, card.id, 10000)
    client.post("/v1/webhooks/settlements", json={"transaction_id": "txn_api_1"})

    again = client.post("/v1/webhooks/settlements", json={"transaction_id": "txn_api_1"}).json()
    missing = client.post("/v1/webhooks/settlements", json={"transaction_id": "txn_nope"}).json()

    assert again == {
        "settled": False,
        "reason": "Transaction already posted",
        "rejection_code": "transaction_not_pending",
    }
    assert missing["settled"] is False
    assert missing["reason"] == "Transaction not found"


def test_bulk_settlement_webhook(client: TestClient, card):
    _authorize(client, card.id, 1000, transaction_id="txn_a")
    _authorize(client, card.id, 2000, transaction_id="txn_b")

    response = client.post(
        "/v1/webhooks/settlements/bulk",
        json={
            "settlements": [
                {"transaction_id": "txn_a"},
                {"transaction_id": "txn_b", "final_amount": 15},
                {"transaction_id": "txn_missing"},
            ]
        },
    )

    assert response.status_code == 200
    assert response.json() == {"settled_count": 2, "failed_count": 1}


def test_bulk_settlement_requires_items(client: TestClient):
    response = client.post("/v1/webhooks/settlements/bulk", json={"settlements": []})
    assert response.status_code == 422


def test_payment_endpoint(client: TestClient, make_account):
    account = make_account(current_balance=Decimal("300.00"))

    response = client.post("/v1/payments", json={"account_id": account.id, "amount": "120.50"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["transaction_id"].startswith("payment_")
    assert Decimal(data["previous_balance"]) == Decimal("300.00")
    assert Decimal(data["new_balance"]) == Decimal("179.50")
    assert Decimal(data["amount_paid"]) == Decimal("120.50")


def test_payment_endpoint_overpayment_floors_at_zero(client: TestClient, make_account):
    account = make_account(current_balance=Decimal("40.00"))

    data = client.post("/v1/payments", json={"account_id": account.id, "amount": 100}).json()

    assert Decimal(data["new_balance"]) == Decimal("0.00")


def test_payment_endpoint_unknown_account(client: TestClient):
    response = client.post("/v1/payments", json={"account_id": "acct_missing", "amount": 10})
    assert response.status_code == 404


@pytest.mark.parametrize("amount", [0, -5])
def test_payment_endpoint_rejects_non_positive_amount(client: TestClient, account, amount):
    response = client.post("/v1/payments", json={"account_id": account.id, "amount": amount})
    assert response.status_code == 422


def test_payment_history_endpoint(client: TestClient, make_account):
    account = make_account(current_balance=Decimal("300.00"))
    client.post("/v1/payments", json={"account_id": account.id, "amount": 10})
    client.post("/v1/payments", json={"account_id": account.id, "amount": 20})

    data = client.get(f"/v1/payments/{account.id}").json()

    assert data["count"] == 2
    assert all(p["transaction_type"] == "payment" for p in data["payments"])
    assert all(Decimal(p["amount"]) < 0 for p in data["payments"])


def test_account_endpoint(client: TestClient, card, account):
    _authorize(client, card.id, 120000)

    response = client.get(f"/v1/accounts/{account.id}")

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["current_balance"]) == Decimal("1200.00")
    assert Decimal(data["available_credit"]) == Decimal("3800.00")
    assert data["status"] == "active"


def test_account_endpoint_not_found(client: TestClient):
    assert client.get("/v1/accounts/acct_missing").status_code == 404


def test_account_transactions_endpoint(client: TestClient, card, account):
    _authorize(client, card.id, 1000, transaction_id="txn_first")
    _authorize(client, card.id, 2000, transaction_id="txn_second")
    _authorize(client, card.id, 3000, transaction_id="txn_third")

    data = client.get(f"/v1/accounts/{account.id}/transactions", params={"limit": 2}).json()

    assert data["count"] == 2
    assert {t["id"] for t in data["transactions"]} <= {"txn_first", "txn_second", "txn_third"}


def test_account_spending_endpoint(client: TestClient, card, account):
    _authorize(client, card.id, 1000, transaction_id="txn_food", merchant_data={"category": 5812})
    _authorize(client, card.id, 4000, transaction_id="txn_fuel", merchant_data={"category": 5541})
    _authorize(client, card.id, 9000, transaction_id="txn_open", merchant_data={"category": 5541})
    client.post("/v1/webhooks/settlements", json={"transaction_id": "txn_food"})
    client.post("/v1/webhooks/settlements", json={"transaction_id": "txn_fuel"})

    data = client.get(f"/v1/accounts/{account.id}/spending", params={"days": 30}).json()

    totals = {c["merchant_category_code"]: Decimal(c["total"]) for c in data["categories"]}
    # Pending holds are not spending yet
    assert totals == {5541: Decimal("40.00"), 5812: Decimal("10.00")}
    assert data["days"] == 30


def test_statement_endpoints(client: TestClient, card, account):
    _authorize(client, card.id, 5000)
    client.post("/v1/webhooks/settlements", json={"transaction_id": "txn_api_1"})

    generated = client.post(f"/v1/statements/account/{account.id}/generate").json()
    duplicate = client.post(f"/v1/statements/account/{account.id}/generate").json()

    assert generated["generated"] is True
    statement = generated["statement"]
    assert Decimal(statement["total_purchases"]) == Decimal("50.00")
    assert Decimal(statement["minimum_payment_due"]) == Decimal("25.00")
    assert duplicate == {"generated": False, "reason": "Statement already exists"}

    history = client.get(f"/v1/statements/account/{account.id}").json()
    assert history["count"] == 1

    single = client.get(f"/v1/statements/{statement['id']}")
    assert single.status_code == 200
    assert single.json()["account_id"] == account.id


def test_statement_not_found(client: TestClient):
    assert client.get("/v1/statements/stmt_missing").status_code == 404


def test_statement_batch_endpoint(client: TestClient):
    response = client.post("/v1/statements/generate")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["generated_count"] >= 0
    assert data["skipped_count"] >= 0


def test_user_accounts_endpoint_lists_newest_first(client: TestClient, make_account):
    make_account(account_id="acct_older", user_id="user_multi")
    make_account(account_id="acct_newer", user_id="user_multi", credit_limit=Decimal("1000.00"))
    make_account(account_id="acct_other", user_id="user_else")

    response = client.get("/v1/users/user_multi/accounts")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [a["id"] for a in data["accounts"]] == ["acct_newer", "acct_older"]
    assert Decimal(data["accounts"][0]["available_credit"]) == Decimal("1000.00")


def test_user_accounts_endpoint_unknown_user_is_empty(client: TestClient):
    data = client.get("/v1/users/user_nobody/accounts").json()
    assert data == {"user_id": "user_nobody", "count": 0, "accounts": []}
