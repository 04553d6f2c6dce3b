from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from portfolio_manager.core.dependencies import get_current_user
from portfolio_manager.crud import asset as crud_asset
from portfolio_manager.db.session import get_db
from portfolio_manager.models.asset import AssetType
from portfolio_manager.schemas.asset import Asset, AssetCreate, AssetPriceUpdate, AssetQuote
from portfolio_manager.services import asset_service

router = APIRouter(prefix="/assets", tags=["Assets"], dependencies=[Depends(get_current_user)])

@router.post("/", response_model=Asset, status_code=status.HTTP_201_CREATED)
def create_asset(data: AssetCreate, db: Session = Depends(get_db)):
    """Registers a new tradable asset.

    Args:
        data (AssetCreate): Symbol, name, type and opening price.
        db (Session): The database session dependency.

    Returns:
        Asset: The newly created asset.
    """
    return asset_service.create_asset(db, data)

@router.get("/", response_model=List[Asset])
def list_assets(
    asset_type: Optional[AssetType] = Query(None),
    active_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, gt=0, le=500),
    db: Session = Depends(get_db),
):
    """Lists assets ordered by symbol, optionally filtered by type and tradability."""
    return crud_asset.get_assets(db, skip=skip, limit=limit, asset_type=asset_type, active_only=active_only)

@router.get("/by-symbol/{symbol}", response_model=Asset)
def get_asset_by_symbol(symbol: str, db: Session = Depends(get_db)):
    """Looks an asset up by its ticker.

    Raises:
        HTTPException: 404 if no asset has this symbol.
    """
    asset = crud_asset.get_asset_by_symbol(db, symbol)
    if asset is None:
        raise HTTPException(404, "Asset not found")
    return asset

@router.get("/{asset_id}", response_model=Asset)
def get_asset(asset_id: int = Path(..., gt=0), db: Session = Depends(get_db)):
    """Retrieves a single asset by ID."""
    return asset_service.get_asset_or_raise(db, asset_id)

@router.put("/{asset_id}/price", response_model=Asset)
def update_asset_price(
    data: AssetPriceUpdate,
    asset_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    """Records a new market price and re-values every portfolio holding the asset.

    Args:
        data (AssetPriceUpdate): The new price.
        asset_id (int): The ID of the asset.
        db (Session): The database session dependency.

    Returns:
        Asset: The repriced asset.
    """
    return asset_service.update_asset_price(db, asset_id, data.price)

@router.get("/{asset_id}/quote", response_model=AssetQuote)
def get_asset_quote(asset_id: int = Path(..., gt=0), db: Session = Depends(get_db)):
    """Returns the price change of an asset since its previous close."""
    return asset_service.get_asset_quote(db, asset_id)
