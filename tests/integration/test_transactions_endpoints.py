# tests/integration/test_transactions_endpoints.py
from decimal import Decimal

import pytest
from fastapi import Depends
from sqlalchemy.orm import Session

from portfolio_manager.core.dependencies import get_current_user
from portfolio_manager.db.session import get_db
from portfolio_manager.main import app
from portfolio_manager.models import User

@pytest.fixture
def trader(client):
    # Authenticate every request as a fixed user instead of going through /auth
    resp = client.post("/users/", json={"username": "trader", "email": "tx@user.com"})
    assert resp.status_code == 201
    user_id = resp.json()["id"]

    def override_current_user(db: Session = Depends(get_db)):
        return db.get(User, user_id)

    app.dependency_overrides[get_current_user] = override_current_user
    yield user_id
    app.dependency_overrides.pop(get_current_user, None)

@pytest.fixture
def pf_id(client, trader):
    client.post("/assets/", json={"symbol": "MSFT", "name": "Microsoft", "asset_type": "stock", "current_price": "300"})
    resp = client.post("/portfolios/", json={"name": "Tx PF", "initial_cash": "1000"})
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]

def order(client, pf_id, **fields):
    body = {"symbol": "MSFT", "transaction_type": "buy", "quantity": "1", "price_per_share": "300"}
    body.update(fields)
    return client.post(f"/portfolios/{pf_id}/transactions/", json=body)

def test_transaction_crud_flow(client, pf_id):
    # 1) Add three buy transactions on consecutive days
    ids = []
    for i in range(3):
        r = order(client, pf_id, price_per_share=str(300 + i), transaction_date=f"2024-02-0{i + 1}T10:00:00")
        assert r.status_code == 201, r.text
        assert r.json()["settlement_date"] == f"2024-02-0{i + 3}T10:00:00"
        ids.append(r.json()["id"])

    # 2) List with pagination & date filtering
    lst = client.get(f"/portfolios/{pf_id}/transactions/?skip=0&limit=2")
    assert lst.status_code == 200
    assert [t["id"] for t in lst.json()] == [ids[2], ids[1]]
    ranged = client.get(f"/portfolios/{pf_id}/transactions/?start=2024-02-02&end=2024-02-02").json()
    assert [t["id"] for t in ranged] == [ids[1]]

    # 3) Edit a pending transaction
    upd = client.put(f"/portfolios/{pf_id}/transactions/{ids[0]}", json={"quantity": "2"})
    assert upd.status_code == 200
    assert Decimal(upd.json()["total_amount"]) == Decimal("600")

    # 4) Execute, cancel and fail one each
    assert client.post(f"/portfolios/{pf_id}/transactions/{ids[0]}/execute").json()["status"] == "executed"
    cancel = client.post(f"/portfolios/{pf_id}/transactions/{ids[1]}/cancel", json={"reason": "duplicate"})
    assert cancel.json()["status"] == "cancelled"
    assert cancel.json()["notes"] == "duplicate"
    fail = client.post(f"/portfolios/{pf_id}/transactions/{ids[2]}/fail", json={"reason": "rejected"})
    assert fail.json()["status"] == "failed"

    executed = client.get(f"/portfolios/{pf_id}/transactions/?status=executed").json()
    assert [t["id"] for t in executed] == [ids[0]]

    # 5) Terminal transactions cannot change
    again = client.post(f"/portfolios/{pf_id}/transactions/{ids[1]}/execute")
    assert again.status_code == 409
    assert again.json()["error"] == "InvalidTransactionStateError"
    assert client.put(f"/portfolios/{pf_id}/transactions/{ids[0]}", json={"quantity": "5"}).status_code == 409

    pf = client.get(f"/portfolios/{pf_id}").json()
    assert Decimal(pf["cash_balance"]) == Decimal("400")

def test_rejected_execution_is_recorded_as_failed(client, pf_id):
    tx = order(client, pf_id, quantity="4").json()
    resp = client.post(f"/portfolios/{pf_id}/transactions/{tx['id']}/execute")
    assert resp.status_code == 409
    assert resp.json()["error"] == "InsufficientFundsError"

    stored = client.get(f"/portfolios/{pf_id}/transactions/{tx['id']}").json()
    assert stored["status"] == "failed"
    assert client.get(f"/portfolios/{pf_id}/positions").json() == []

    sell = order(client, pf_id, transaction_type="sell").json()
    resp = client.post(f"/portfolios/{pf_id}/transactions/{sell['id']}/execute")
    assert resp.status_code == 409
    assert resp.json()["error"] == "PositionNotFoundError"

def test_invalid_orders(client, pf_id):
    assert order(client, pf_id, quantity="0").status_code == 422
    assert order(client, pf_id, price_per_share="-1").status_code == 422
    assert order(client, pf_id, transaction_type="short").status_code == 422
    assert order(client, pf_id, symbol=None).status_code == 422
    assert order(client, pf_id, symbol="NOPE").status_code == 404
    assert client.get(f"/portfolios/{pf_id}/transactions/999").status_code == 404
    assert client.post(f"/portfolios/{pf_id}/transactions/999/execute").status_code == 404
