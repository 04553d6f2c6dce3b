from datetime import timedelta
from decimal import Decimal

import pytest

from portfolio_manager.core.exceptions import ValidationError
from portfolio_manager.models import Asset, AssetType


def make_asset(**kwargs):
    fields = dict(id=1, symbol="AAPL", name="Apple Inc.", asset_type=AssetType.STOCK, current_price=Decimal("100"))
    fields.update(kwargs)
    return Asset(**fields)


def test_symbol_is_uppercased_and_previous_close_defaults_to_price():
    a = make_asset(symbol=" msft ")
    assert a.symbol == "MSFT"
    assert a.previous_close == Decimal("100")
    assert a.is_active is True
    assert a.price_change() == 0
    assert not a.is_price_up() and not a.is_price_down()


def test_update_price_shifts_previous_close():
    a = make_asset()
    a.update_price(Decimal("110"))
    assert a.current_price == Decimal("110")
    assert a.previous_close == Decimal("100")
    assert a.price_change() == Decimal("10")
    assert a.price_change_percent() == Decimal("10")
    assert a.is_price_up()

    a.update_price("99")
    assert a.previous_close == Decimal("110")
    assert a.is_price_down()


@pytest.mark.parametrize("bad", [0, Decimal("-1"), "-0.01"])
def test_update_price_rejects_non_positive(bad):
    a = make_asset()
    with pytest.raises(ValidationError):
        a.update_price(bad)
    assert a.current_price == Decimal("100")
    assert a.previous_close == Decimal("100")


def test_constructor_rejects_non_positive_price():
    with pytest.raises(ValidationError):
        make_asset(current_price=Decimal("0"))


def test_price_change_percent_is_zero_without_previous_close():
    a = make_asset(previous_close=Decimal("0"))
    assert a.price_change() == 0
    assert a.price_change_percent() == 0


def test_settlement_lag_per_asset_type():
    assert AssetType.STOCK.settlement_lag == timedelta(days=2)
    assert AssetType.ETF.settlement_lag == timedelta(days=2)
    assert AssetType.BOND.settlement_lag == timedelta(days=1)
    assert AssetType.CRYPTO.settlement_lag == timedelta(days=0)
    assert AssetType.MUTUAL_FUND.settlement_lag == timedelta(days=1)
    assert AssetType.STOCK.is_equity
    assert not AssetType.BOND.is_equity


def test_split_reprices_once():
    a = make_asset(current_price=Decimal("120"))
    assert a.apply_split(Decimal("3"), Decimal("41")) is True
    assert a.current_price == Decimal("41")
    assert a.previous_close == Decimal("40")
    assert a.price_change() == Decimal("1")

    # A second holder recording the same split leaves the price alone
    assert a.apply_split(Decimal("3"), Decimal("41")) is False
    assert a.previous_close == Decimal("40")
