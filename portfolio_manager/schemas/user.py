from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

class UserBase(BaseModel):
    """Base user schema with fields common to all user-related operations."""
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = True

class UserCreate(UserBase):
    """Schema for creating a new user. Inherits base fields and makes some required."""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr

class UserUpdate(BaseModel):
    """Schema for updating a user's profile. All fields are optional."""
    full_name: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None

class User(UserBase):
    """Schema for a user object as returned by the API (public-facing)."""
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MagicLinkRequest(BaseModel):
    """Body of a sign-in request: the mailbox the magic link is sent to."""
    email: EmailStr

class MagicLinkSent(BaseModel):
    """Acknowledges a sign-in request without revealing whether the account exists."""
    msg: str

class Token(BaseModel):
    """A bearer token issued in exchange for a verified magic link."""
    access_token: str
    token_type: str = "bearer"

class UserSummary(BaseModel):
    """The caller's holdings across all of their portfolios, at current prices."""
    id: int
    username: str
    portfolio_count: int
    cash_balance: Decimal
    total_value: Decimal
