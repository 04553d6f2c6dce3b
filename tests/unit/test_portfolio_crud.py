from decimal import Decimal

import pytest

from portfolio_manager.core.exceptions import NotFoundError, ValidationError
from portfolio_manager.crud import portfolio as crud_pf
from portfolio_manager.models import TransactionType
from portfolio_manager.services import portfolio_service, transaction_service

def test_create_and_get_portfolio(db, user):
    # creare
    p = portfolio_service.create_portfolio(db, user.id, "Test PF", Decimal("2500"), description="Long only")
    assert p.id is not None
    assert p.name == "Test PF"
    assert p.user_id == user.id
    assert p.initial_cash == Decimal("2500")
    assert p.cash_balance == Decimal("2500")
    assert p.total_value == Decimal("2500")
    assert p.version_id == 1

    # listare
    all_p = crud_pf.get_portfolios(db, user_id=user.id)
    assert len(all_p) == 1
    assert all_p[0].id == p.id

def test_get_nonexistent_portfolio(db):
    p = crud_pf.get_portfolio(db, portfolio_id=999)
    assert p is None

def test_create_portfolio_validates_input(db, user):
    with pytest.raises(NotFoundError):
        portfolio_service.create_portfolio(db, 999, "Orphan")
    with pytest.raises(ValidationError):
        portfolio_service.create_portfolio(db, user.id, "Negative", Decimal("-1"))
    with pytest.raises(ValidationError):
        portfolio_service.create_portfolio(db, user.id, "X")

def test_position_lookups(db, user, stock):
    p = portfolio_service.create_portfolio(db, user.id, "Holder", Decimal("1000"))
    assert crud_pf.get_position(db, p.id, stock.id) is None

    for kind, qty in ((TransactionType.BUY, "5"), (TransactionType.SELL, "5")):
        tx = transaction_service.create_transaction(db, p.id, stock.id, kind, Decimal(qty), Decimal("100"))
        transaction_service.execute_transaction(db, p.id, tx.id)

    pos = crud_pf.get_position(db, p.id, stock.id)
    assert pos is not None
    assert pos.quantity == 0
    assert len(crud_pf.get_positions(db, p.id)) == 1
    assert crud_pf.get_positions(db, p.id, active_only=True) == []
    assert [x.id for x in crud_pf.get_positions_for_asset(db, stock.id)] == [pos.id]
    assert [x.id for x in crud_pf.get_all_positions_for_asset_by_user(db, user.id, stock.id)] == [pos.id]
    assert crud_pf.get_all_positions_for_asset_by_user(db, user.id + 1, stock.id) == []

def test_delete_portfolio_cascades(db, user, stock):
    p = portfolio_service.create_portfolio(db, user.id, "Short lived", Decimal("500"))
    tx = transaction_service.create_transaction(db, p.id, stock.id, TransactionType.BUY, Decimal("1"), Decimal("100"))
    transaction_service.execute_transaction(db, p.id, tx.id)

    crud_pf.delete_portfolio(db, p)

    assert crud_pf.get_portfolio(db, p.id) is None
    assert crud_pf.get_positions_for_asset(db, stock.id) == []
