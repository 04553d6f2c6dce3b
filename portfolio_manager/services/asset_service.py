from typing import Dict, Set
import logging

from sqlalchemy.orm import Session

from portfolio_manager.core.exceptions import NotFoundError, ValidationError
from portfolio_manager.crud import asset as crud_asset
from portfolio_manager.crud import portfolio as crud_portfolio
from portfolio_manager.models.asset import Asset
from portfolio_manager.schemas.asset import AssetCreate
from portfolio_manager.services.portfolio_service import commit

logger = logging.getLogger(__name__)


def get_asset_or_raise(db: Session, asset_id: int) -> Asset:
    asset = crud_asset.get_asset(db, asset_id)
    if asset is None:
        raise NotFoundError("Asset", asset_id)
    return asset


def create_asset(db: Session, data: AssetCreate) -> Asset:
    """Registers a tradable asset.

    Args:
        db (Session): The SQLAlchemy database session.
        data (AssetCreate): The validated asset fields.

    Returns:
        Asset: The persisted asset.

    Raises:
        ValidationError: If an asset with the same symbol already exists.
    """
    if crud_asset.get_asset_by_symbol(db, data.symbol) is not None:
        raise ValidationError(f"Asset {data.symbol} already exists")
    asset = crud_asset.create_asset(db, data)
    logger.info("Registered asset %s (%s) at %s", asset.symbol, asset.asset_type.value, asset.current_price)
    return asset


def update_asset_price(db: Session, asset_id: int, new_price) -> Asset:
    """Records a new market price and re-values everything that holds the asset.

    Every position in the asset is re-priced, then every portfolio owning one
    of those positions recomputes its total value; all of it is committed
    together.

    Args:
        db (Session): The SQLAlchemy database session.
        asset_id (int): The ID of the asset.
        new_price: The new price; must be greater than zero.

    Returns:
        Asset: The updated asset.

    Raises:
        NotFoundError: If the asset does not exist.
        ValidationError: If the price is not positive.
        ConcurrentModificationError: If an affected portfolio changed underneath us.
    """
    asset = get_asset_or_raise(db, asset_id)
    asset.update_price(new_price)
    portfolio_ids = revalue_holders(db, asset)

    commit(db, f"Asset {asset.symbol}")
    db.refresh(asset)
    logger.info(
        "Asset %s repriced to %s; revalued %d portfolios",
        asset.symbol, asset.current_price, len(portfolio_ids),
    )
    return asset


def revalue_holders(db: Session, asset: Asset) -> Set[int]:
    """Re-prices every position in ``asset`` and the portfolios owning them.

    Nothing is committed.

    Returns:
        Set[int]: The IDs of the re-valued portfolios.
    """
    portfolio_ids = set()
    for position in crud_portfolio.get_positions_for_asset(db, asset.id):
        position.update_current_value()
        portfolio_ids.add(position.portfolio_id)
    for portfolio_id in sorted(portfolio_ids):
        crud_portfolio.get_portfolio(db, portfolio_id).update_total_value()
    return portfolio_ids


def get_asset_quote(db: Session, asset_id: int) -> Dict:
    """Returns the asset's price movement since its previous close."""
    asset = get_asset_or_raise(db, asset_id)
    return {
        "symbol": asset.symbol,
        "current_price": asset.current_price,
        "previous_close": asset.previous_close,
        "change_amount": asset.price_change(),
        "change_percent": asset.price_change_percent(),
    }
