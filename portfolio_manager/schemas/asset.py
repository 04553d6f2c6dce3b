from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional
from portfolio_manager.models.asset import AssetType
import re

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.\-]{1,10}$")

def normalize_symbol(v: Optional[str]) -> Optional[str]:
    """Uppercases a ticker and checks it against the accepted format."""
    if v is None:
        return v
    v = v.strip().upper()
    if not SYMBOL_PATTERN.match(v):
        raise ValueError("Invalid ticker format")
    return v

class AssetCreate(BaseModel):
    """Schema for registering a tradable asset."""
    symbol: str = Field(..., examples=["AAPL"])
    name: str = Field(..., min_length=2, max_length=200, examples=["Apple Inc."])
    asset_type: AssetType
    current_price: Decimal = Field(..., gt=0, examples=[Decimal("189.25")])
    previous_close: Optional[Decimal] = Field(None, ge=0)
    sector: Optional[str] = Field(None, max_length=50)
    exchange: Optional[str] = Field(None, max_length=50)

    @field_validator("symbol")
    @classmethod
    def symbol_format(cls, v):
        return normalize_symbol(v)

class AssetPriceUpdate(BaseModel):
    """Schema for pushing a new market price for an asset."""
    price: Decimal = Field(..., gt=0)

class Asset(BaseModel):
    """Schema for an asset retrieved from the database."""
    id: int
    symbol: str
    name: str
    asset_type: AssetType
    current_price: Decimal
    previous_close: Optional[Decimal] = None
    sector: Optional[str] = None
    exchange: Optional[str] = None
    is_active: bool
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True

class AssetQuote(BaseModel):
    """Price movement of an asset since its previous close."""
    symbol: str
    current_price: Decimal
    previous_close: Optional[Decimal] = None
    change_amount: Decimal
    change_percent: Decimal
