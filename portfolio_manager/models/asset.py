from datetime import timedelta
from decimal import Decimal
import enum
import logging

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, Enum as SAEnum
from sqlalchemy.orm import validates

from portfolio_manager.core.utils import (
    ZERO,
    percent_of,
    require_non_negative,
    require_positive,
    round_price,
    utcnow,
)
from portfolio_manager.core.exceptions import ValidationError
from portfolio_manager.db.session import Base

logger = logging.getLogger(__name__)


class AssetType(str, enum.Enum):
    STOCK = "stock"
    BOND = "bond"
    ETF = "etf"
    MUTUAL_FUND = "mutual_fund"
    CRYPTO = "crypto"
    COMMODITY = "commodity"
    REIT = "reit"
    PREFERRED_STOCK = "preferred_stock"
    CASH = "cash"
    OTHER = "other"

    @property
    def is_equity(self) -> bool:
        return self in _EQUITY_TYPES

    @property
    def settlement_lag(self) -> timedelta:
        """Calendar days between trade date and settlement for this asset type."""
        return timedelta(days=_SETTLEMENT_DAYS.get(self, 1))


_EQUITY_TYPES = frozenset({AssetType.STOCK, AssetType.ETF, AssetType.REIT, AssetType.PREFERRED_STOCK})

_SETTLEMENT_DAYS = {
    AssetType.STOCK: 2,
    AssetType.ETF: 2,
    AssetType.REIT: 2,
    AssetType.PREFERRED_STOCK: 2,
    AssetType.BOND: 1,
    AssetType.CRYPTO: 0,
}


class Asset(Base):
    """Represents a tradable instrument and its latest known price.

    Prices arrive from an external feed; ``update_price`` shifts the old price
    into ``previous_close`` so that the daily change can be derived.

    Attributes:
        id (int): Primary key for the asset.
        symbol (str): Unique ticker, always stored uppercase (e.g. "AAPL").
        name (str): Human-readable instrument name.
        asset_type (AssetType): Instrument class; drives the settlement lag.
        current_price (Decimal): Latest price, always greater than zero.
        previous_close (Decimal): Price before the latest update.
        sector (str): Optional sector label.
        exchange (str): Optional listing exchange.
        is_active (bool): Whether the asset can currently be traded.
        last_updated (datetime): When the price was last changed.
    """
    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(10), unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=False)
    asset_type = Column(SAEnum(AssetType), nullable=False)
    current_price = Column(Numeric(15, 4), nullable=False)
    previous_close = Column(Numeric(15, 4), nullable=True)
    sector = Column(String(50), nullable=True)
    exchange = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_updated = Column(DateTime(timezone=False), nullable=True)
    created_at = Column(DateTime(timezone=False), default=utcnow)
    updated_at = Column(DateTime(timezone=False), default=utcnow, onupdate=utcnow)

    def __init__(self, **kwargs):
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("last_updated", utcnow())
        super().__init__(**kwargs)
        if self.previous_close is None:
            self.previous_close = self.current_price

    @validates("symbol")
    def _normalize_symbol(self, key, value):
        if not value or not value.strip():
            raise ValidationError("symbol is required")
        return value.strip().upper()

    @validates("current_price")
    def _validate_current_price(self, key, value):
        return require_positive(value, "current_price")

    @validates("previous_close")
    def _validate_previous_close(self, key, value):
        if value is None:
            return None
        return require_non_negative(value, "previous_close")

    def update_price(self, new_price) -> None:
        """Records a new market price.

        Args:
            new_price: The new price; must be greater than zero.

        Raises:
            ValidationError: If the price is not positive. Nothing changes.
        """
        price = require_positive(new_price, "new_price")
        old_price = self.current_price
        self.previous_close = old_price
        self.current_price = price
        self.last_updated = utcnow()
        logger.debug("Asset %s price %s -> %s", self.symbol, old_price, price)

    def apply_split(self, ratio, post_split_price) -> bool:
        """Re-prices the asset for a stock split.

        The previous price is divided by the ratio so the reported change
        reflects trading rather than the split itself. An asset that already
        carries ``post_split_price`` is left alone, since every holder records
        the same split.

        Args:
            ratio: Shares received per share held (2 for 2-for-1).
            post_split_price: The market price after the split.

        Returns:
            bool: True if the price was changed.

        Raises:
            ValidationError: If the ratio or the price is not positive.
        """
        factor = require_positive(ratio, "ratio")
        price = require_positive(post_split_price, "post_split_price")
        if self.current_price == price:
            return False
        self.previous_close = round_price(self.current_price / factor)
        self.current_price = price
        self.last_updated = utcnow()
        logger.info("Asset %s split %s-for-1, repriced to %s", self.symbol, factor, price)
        return True

    def price_change(self) -> Decimal:
        if self.previous_close is None or self.previous_close <= 0:
            return ZERO
        return self.current_price - self.previous_close

    def price_change_percent(self) -> Decimal:
        return percent_of(self.price_change(), self.previous_close)

    def is_price_up(self) -> bool:
        return self.price_change() > 0

    def is_price_down(self) -> bool:
        return self.price_change() < 0

    def __repr__(self):
        return f"<Asset(id={self.id}, symbol='{self.symbol}', price={self.current_price})>"
