from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional
from portfolio_manager.models.transaction import TransactionType, TransactionStatus
from portfolio_manager.schemas.asset import normalize_symbol

class TransactionBase(BaseModel):
    """Base schema for a transaction, containing core fields and validation."""
    transaction_type: TransactionType
    quantity: Decimal = Field(..., gt=0, examples=[Decimal("10")])
    price_per_share: Decimal = Field(..., gt=0, examples=[Decimal("150.50")])
    commission: Decimal = Field(Decimal("0"), ge=0)
    fees: Decimal = Field(Decimal("0"), ge=0)
    transaction_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)
    external_transaction_id: Optional[str] = Field(None, max_length=100)

class TransactionCreate(TransactionBase):
    """Schema used for recording a new transaction.

    The asset is identified either by ``asset_id`` or by ``symbol``.
    """
    asset_id: Optional[int] = Field(None, gt=0)
    symbol: Optional[str] = Field(None, examples=["AAPL"])

    @field_validator("symbol")
    @classmethod
    def symbol_format(cls, v):
        return normalize_symbol(v)

    @model_validator(mode="after")
    def asset_reference(self):
        if self.asset_id is None and self.symbol is None:
            raise ValueError("Either asset_id or symbol is required")
        return self

class TransactionUpdate(BaseModel):
    """Schema for editing a pending transaction, with all fields optional."""
    transaction_type: Optional[TransactionType] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    price_per_share: Optional[Decimal] = Field(None, gt=0)
    commission: Optional[Decimal] = Field(None, ge=0)
    fees: Optional[Decimal] = Field(None, ge=0)
    transaction_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)

class TransactionCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)

class TransactionFail(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

class Transaction(BaseModel):
    """Schema for a transaction retrieved from the database."""
    id: int
    portfolio_id: int
    asset_id: int
    position_id: Optional[int] = None
    transaction_type: TransactionType
    quantity: Decimal
    price_per_share: Decimal
    total_amount: Decimal
    commission: Decimal
    fees: Decimal
    net_amount: Decimal
    transaction_date: datetime
    settlement_date: Optional[datetime] = None
    status: TransactionStatus
    notes: Optional[str] = None
    external_transaction_id: Optional[str] = None
    executed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
