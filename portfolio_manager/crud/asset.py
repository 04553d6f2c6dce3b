from sqlalchemy.orm import Session
from typing import List, Optional

from portfolio_manager.models.asset import Asset, AssetType
from portfolio_manager.schemas.asset import AssetCreate

def get_asset(db: Session, asset_id: int) -> Optional[Asset]:
    """Retrieves a single asset by its unique ID.

    Args:
        db (Session): The SQLAlchemy database session.
        asset_id (int): The ID of the asset to retrieve.

    Returns:
        Optional[Asset]: The Asset object if found, otherwise None.
    """
    return db.query(Asset).filter(Asset.id == asset_id).first()

def get_asset_by_symbol(db: Session, symbol: str) -> Optional[Asset]:
    """Retrieves a single asset by its ticker symbol (case-insensitive).

    Args:
        db (Session): The SQLAlchemy database session.
        symbol (str): The ticker to look up, e.g. "AAPL".

    Returns:
        Optional[Asset]: The Asset object if found, otherwise None.
    """
    return db.query(Asset).filter(Asset.symbol == symbol.strip().upper()).first()

def get_assets(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    asset_type: Optional[AssetType] = None,
    active_only: bool = False,
) -> List[Asset]:
    """Retrieves assets ordered by symbol, with optional filtering.

    Args:
        db (Session): The SQLAlchemy database session.
        skip (int): Number of records to skip for pagination.
        limit (int): Maximum number of records to return.
        asset_type (Optional[AssetType]): Only return assets of this type.
        active_only (bool): Only return tradable assets.

    Returns:
        List[Asset]: A list of Asset objects.
    """
    q = db.query(Asset)
    if asset_type is not None:
        q = q.filter(Asset.asset_type == asset_type)
    if active_only:
        q = q.filter(Asset.is_active.is_(True))
    return q.order_by(Asset.symbol).offset(skip).limit(limit).all()

def create_asset(db: Session, data: AssetCreate) -> Asset:
    """Inserts a new asset and commits it.

    Args:
        db (Session): The SQLAlchemy database session.
        data (AssetCreate): The validated asset fields.

    Returns:
        Asset: The newly created Asset object.
    """
    asset = Asset(**data.model_dump())
    db.add(asset); db.commit(); db.refresh(asset)
    return asset
