from decimal import Decimal

import pytest

from portfolio_manager.core.exceptions import (
    InsufficientFundsError,
    InsufficientSharesError,
    InvalidTransactionStateError,
    NotFoundError,
    PositionNotFoundError,
    ValidationError,
)
from portfolio_manager.crud import portfolio as crud_pf
from portfolio_manager.crud import transaction as crud_tx
from portfolio_manager.models import Asset, Portfolio, TransactionStatus, TransactionType
from portfolio_manager.services import portfolio_service, transaction_service


@pytest.fixture
def portfolio(db, user):
    return portfolio_service.create_portfolio(db, user.id, "Trading", Decimal("2000"))


def new_tx(db, portfolio, asset, kind, qty, price, **kwargs):
    return transaction_service.create_transaction(
        db, portfolio.id, asset.id, kind, Decimal(qty), Decimal(price), **kwargs
    )


def test_buy_and_sell_are_persisted(db, portfolio, stock):
    buy = new_tx(db, portfolio, stock, TransactionType.BUY, "10", "100", commission=Decimal("5"))
    assert buy.settlement_date is not None

    executed = transaction_service.execute_transaction(db, portfolio.id, buy.id)
    assert executed.status is TransactionStatus.EXECUTED
    assert executed.position_id is not None

    sell = new_tx(db, portfolio, stock, TransactionType.SELL, "4", "120")
    transaction_service.execute_transaction(db, portfolio.id, sell.id)

    db.expire_all()
    pf = db.get(Portfolio, portfolio.id)
    pos = crud_pf.get_position(db, portfolio.id, stock.id)
    assert pf.cash_balance == Decimal("1475.00")
    assert pf.total_value == Decimal("2075.00")
    assert pos.quantity == Decimal("6")
    assert pos.average_cost == Decimal("100")
    assert pos.realized_gain_loss == Decimal("80.00")
    assert pos.total_cost == Decimal("600.00")
    assert crud_tx.get_transaction(db, sell.id).position_id == pos.id


def test_failed_execution_commits_failed_status_only(db, portfolio, stock):
    tx = new_tx(db, portfolio, stock, TransactionType.BUY, "25", "100")

    with pytest.raises(InsufficientFundsError):
        transaction_service.execute_transaction(db, portfolio.id, tx.id)

    db.expire_all()
    stored = crud_tx.get_transaction(db, tx.id)
    assert stored.status is TransactionStatus.FAILED
    assert "Insufficient cash" in stored.notes
    assert db.get(Portfolio, portfolio.id).cash_balance == Decimal("2000.00")
    assert crud_pf.get_positions(db, portfolio.id) == []

    with pytest.raises(InvalidTransactionStateError):
        transaction_service.execute_transaction(db, portfolio.id, tx.id)


@pytest.mark.parametrize("kind,qty,error", [
    (TransactionType.SELL, "1", PositionNotFoundError),
    (TransactionType.TRANSFER_OUT, "1", PositionNotFoundError),
    (TransactionType.SPLIT, "2", PositionNotFoundError),
])
def test_share_operations_need_a_position(db, portfolio, stock, kind, qty, error):
    tx = new_tx(db, portfolio, stock, kind, qty, "100")
    with pytest.raises(error):
        transaction_service.execute_transaction(db, portfolio.id, tx.id)
    assert crud_tx.get_transaction(db, tx.id).status is TransactionStatus.FAILED


def test_oversell_is_rejected(db, portfolio, stock):
    buy = new_tx(db, portfolio, stock, TransactionType.BUY, "3", "100")
    transaction_service.execute_transaction(db, portfolio.id, buy.id)
    sell = new_tx(db, portfolio, stock, TransactionType.SELL, "4", "100")

    with pytest.raises(InsufficientSharesError):
        transaction_service.execute_transaction(db, portfolio.id, sell.id)

    db.expire_all()
    assert crud_pf.get_position(db, portfolio.id, stock.id).quantity == Decimal("3")
    assert db.get(Portfolio, portfolio.id).cash_balance == Decimal("1700.00")


def test_cancel_and_fail_are_persisted(db, portfolio, stock):
    a = new_tx(db, portfolio, stock, TransactionType.BUY, "1", "100")
    b = new_tx(db, portfolio, stock, TransactionType.BUY, "1", "100")

    cancelled = transaction_service.cancel_transaction(db, portfolio.id, a.id, "duplicate order")
    failed = transaction_service.fail_transaction(db, portfolio.id, b.id, "broker rejected")

    assert cancelled.status is TransactionStatus.CANCELLED
    assert cancelled.notes == "duplicate order"
    assert failed.status is TransactionStatus.FAILED
    assert failed.notes == "broker rejected"

    with pytest.raises(InvalidTransactionStateError):
        transaction_service.execute_transaction(db, portfolio.id, a.id)
    with pytest.raises(InvalidTransactionStateError):
        transaction_service.cancel_transaction(db, portfolio.id, b.id)
    assert db.get(Portfolio, portfolio.id).cash_balance == Decimal("2000.00")


def test_lookups_are_scoped_to_the_portfolio(db, user, portfolio, stock):
    other = portfolio_service.create_portfolio(db, user.id, "Other", Decimal("0"))
    tx = new_tx(db, portfolio, stock, TransactionType.BUY, "1", "100")

    with pytest.raises(NotFoundError):
        transaction_service.execute_transaction(db, other.id, tx.id)
    with pytest.raises(NotFoundError):
        transaction_service.execute_transaction(db, portfolio.id, 999)
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(
            db, portfolio.id, 999, TransactionType.BUY, Decimal("1"), Decimal("1")
        )
    assert crud_tx.get_transaction(db, tx.id).status is TransactionStatus.PENDING


def test_inactive_asset_cannot_be_traded(db, portfolio, stock):
    stock.is_active = False
    db.commit()
    with pytest.raises(ValidationError):
        new_tx(db, portfolio, stock, TransactionType.BUY, "1", "100")


def test_split_preserves_value_for_every_holder(db, user, portfolio, stock):
    other = portfolio_service.create_portfolio(db, user.id, "Other", Decimal("1000"))
    transaction_service.execute_transaction(db, portfolio.id, new_tx(db, portfolio, stock, TransactionType.BUY, "10", "100").id)
    transaction_service.execute_transaction(db, other.id, new_tx(db, other, stock, TransactionType.BUY, "5", "100").id)
    assert portfolio_service.get_portfolio_value(db, portfolio.id) == Decimal("2000.00")

    split = new_tx(db, portfolio, stock, TransactionType.SPLIT, "2", "50")
    transaction_service.execute_transaction(db, portfolio.id, split.id)

    db.expire_all()
    pos = crud_pf.get_position(db, portfolio.id, stock.id)
    assert pos.quantity == Decimal("20")
    assert pos.average_cost == Decimal("50")
    assert pos.unrealized_gain_loss == 0
    assert db.get(Asset, stock.id).current_price == Decimal("50")
    assert portfolio_service.get_portfolio_value(db, portfolio.id) == Decimal("2000.00")

    # The other holder is re-priced now and whole again once it records the split
    assert portfolio_service.get_portfolio_value(db, other.id) == Decimal("750.00")
    other_split = new_tx(db, other, stock, TransactionType.SPLIT, "2", "50")
    transaction_service.execute_transaction(db, other.id, other_split.id)
    assert portfolio_service.get_portfolio_value(db, other.id) == Decimal("1000.00")
    assert db.get(Asset, stock.id).previous_close == Decimal("50")
