from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from portfolio_manager.core.exceptions import InvalidTransactionStateError
from portfolio_manager.crud import transaction as crud_tx
from portfolio_manager.models import TransactionStatus, TransactionType
from portfolio_manager.schemas.transaction import TransactionUpdate
from portfolio_manager.services import portfolio_service, transaction_service

@pytest.fixture
def portfolio(db, user):
    return portfolio_service.create_portfolio(db, user.id, "PF for Tx", Decimal("10000"))

def record(db, portfolio, asset, day, kind=TransactionType.BUY):
    return transaction_service.create_transaction(
        db, portfolio.id, asset.id, kind, Decimal("2"), Decimal("100"),
        transaction_date=datetime(2024, 1, day, 10, 0),
    )

def test_create_and_get_transactions(db, portfolio, stock):
    # Adding 3 transactions
    for day in (10, 11, 12):
        tx = record(db, portfolio, stock, day)
        assert tx.id is not None
        assert tx.asset_id == stock.id
        assert tx.status is TransactionStatus.PENDING
        assert tx.net_amount == Decimal("200.00")

    # Listing transactions without filters, newest first
    txs = crud_tx.get_transactions(db, portfolio_id=portfolio.id, skip=0, limit=10)
    assert len(txs) == 3
    assert [t.transaction_date.day for t in txs] == [12, 11, 10]
    assert crud_tx.get_transaction(db, txs[0].id).id == txs[0].id
    assert crud_tx.get_transaction(db, 999) is None

def test_filter_transactions_by_date_and_status(db, portfolio, stock):
    for day in (10, 11, 12):
        record(db, portfolio, stock, day)

    on_11th = crud_tx.get_transactions(db, portfolio.id, start=date(2024, 1, 11), end=date(2024, 1, 11))
    assert [t.transaction_date.day for t in on_11th] == [11]

    from_11th = crud_tx.get_transactions(db, portfolio.id, start=date(2024, 1, 11))
    assert len(from_11th) == 2

    latest = crud_tx.get_transactions(db, portfolio.id, limit=None)[0]
    transaction_service.execute_transaction(db, portfolio.id, latest.id)
    executed = crud_tx.get_transactions(db, portfolio.id, status=TransactionStatus.EXECUTED)
    assert [t.id for t in executed] == [latest.id]
    assert len(crud_tx.get_transactions(db, portfolio.id, skip=1, limit=1)) == 1

def test_update_pending_transaction(db, portfolio, stock):
    tx = record(db, portfolio, stock, 10)
    updated = crud_tx.update_transaction(
        db, tx, TransactionUpdate(price_per_share=Decimal("120"), commission=Decimal("1"))
    )
    assert updated.price_per_share == Decimal("120")
    assert updated.total_amount == Decimal("240.00")
    assert updated.net_amount == Decimal("241.00")

    moved = crud_tx.update_transaction(db, tx, TransactionUpdate(transaction_date=datetime(2024, 1, 15, 9, 0)))
    assert moved.settlement_date == datetime(2024, 1, 15, 9, 0) + timedelta(days=2)

def test_update_executed_transaction_is_rejected(db, portfolio, stock):
    tx = record(db, portfolio, stock, 10)
    transaction_service.execute_transaction(db, portfolio.id, tx.id)

    with pytest.raises(InvalidTransactionStateError):
        transaction_service.update_transaction(db, portfolio.id, tx.id, TransactionUpdate(quantity=Decimal("50")))

    reloaded = crud_tx.get_transaction(db, tx.id)
    assert reloaded.quantity == Decimal("2")
    assert reloaded.status is TransactionStatus.EXECUTED

def test_executed_transaction_notes_are_frozen(db, portfolio, stock):
    tx = record(db, portfolio, stock, 10)
    transaction_service.execute_transaction(db, portfolio.id, tx.id)

    with pytest.raises(InvalidTransactionStateError):
        transaction_service.update_transaction(db, portfolio.id, tx.id, TransactionUpdate(notes="rewritten"))

    db.expire_all()
    reloaded = crud_tx.get_transaction(db, tx.id)
    assert reloaded.notes is None
    assert reloaded.external_transaction_id is None

def test_pending_notes_can_be_edited(db, portfolio, stock):
    tx = record(db, portfolio, stock, 10)
    updated = transaction_service.update_transaction(db, portfolio.id, tx.id, TransactionUpdate(notes="limit order"))
    db.expire_all()
    assert crud_tx.get_transaction(db, updated.id).notes == "limit order"
