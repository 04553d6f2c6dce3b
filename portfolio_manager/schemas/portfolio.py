from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

class Position(BaseModel):
    """Schema for a position retrieved from the database."""
    id: int
    asset_id: int
    quantity: Decimal
    average_cost: Decimal
    total_cost: Decimal
    current_value: Decimal
    unrealized_gain_loss: Decimal
    realized_gain_loss: Decimal
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True

class PortfolioCreate(BaseModel):
    """Schema for creating a new portfolio."""
    name: str = Field(..., min_length=2, max_length=100, examples=["Retirement Fund"])
    description: Optional[str] = Field(None, max_length=500)
    initial_cash: Decimal = Field(Decimal("0"), ge=0, examples=[Decimal("10000.00")])

class Portfolio(BaseModel):
    """Schema for a portfolio retrieved from the database, including its positions."""
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    initial_cash: Decimal
    cash_balance: Decimal
    total_value: Decimal
    created_at: Optional[datetime] = None
    positions: List[Position] = []

    class Config:
        from_attributes = True

class CashAdjustment(BaseModel):
    """A signed cash movement: positive deposits, negative withdraws."""
    amount: Decimal = Field(..., examples=[Decimal("-250.00")])
    reason: str = Field(..., min_length=1, max_length=200, examples=["Monthly contribution"])

class PortfolioValue(BaseModel):
    """Current total value of a portfolio."""
    portfolio_id: int
    value: Decimal

class PortfolioPerformance(BaseModel):
    """Performance figures of a portfolio since it was opened."""
    portfolio_id: int
    current_value: Decimal
    initial_cash: Decimal
    cash_balance: Decimal
    total_return: Decimal
    return_percentage: Decimal
    cash_allocation: Decimal
    realized_gain_loss: Decimal
    unrealized_gain_loss: Decimal
    position_count: int
