from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, validates

from portfolio_manager.core.exceptions import (
    InsufficientFundsError,
    InsufficientSharesError,
    ValidationError,
)
from portfolio_manager.core.utils import (
    ZERO,
    percent_of,
    require_non_negative,
    require_positive,
    round_money,
    round_price,
    utcnow,
)
from portfolio_manager.db.session import Base


class Portfolio(Base):
    """Represents a user's investment portfolio.

    A portfolio owns a cash balance, one position per held asset, and an
    append-only history of transactions. ``total_value`` is a cached
    projection of ``cash_balance + sum(position.current_value)``; it is
    recomputed by every method that changes either side and by
    ``refresh_valuation`` before it is reported.

    Concurrent writers are detected through ``version_id``: an UPDATE issued
    from a stale copy of the row fails instead of overwriting the balance.

    Attributes:
        id (int): Primary key for the portfolio.
        user_id (int): Foreign key linking to the owner user.
        name (str): The user-defined name for the portfolio (e.g., "Retirement Fund").
        description (str): Optional free-text description.
        initial_cash (Decimal): Cash the portfolio was opened with.
        cash_balance (Decimal): Uninvested cash, never negative.
        total_value (Decimal): Cached cash + market value of positions.
        version_id (int): Optimistic concurrency counter.
        positions (relationship): The positions held in this portfolio.
        transactions (relationship): The transaction history of this portfolio.
    """
    __tablename__ = "portfolios"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    initial_cash = Column(Numeric(15, 2), nullable=False)
    cash_balance = Column(Numeric(15, 2), nullable=False)
    total_value = Column(Numeric(15, 2), nullable=False)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=False), default=utcnow)
    updated_at = Column(DateTime(timezone=False), default=utcnow, onupdate=utcnow)

    positions = relationship("Position", order_by="Position.id", cascade="all, delete-orphan")
    transactions = relationship("Transaction", order_by="Transaction.id", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version_id}

    def __init__(self, **kwargs):
        cash = require_non_negative(kwargs.pop("cash_balance", ZERO), "cash_balance")
        kwargs.setdefault("initial_cash", cash)
        super().__init__(cash_balance=cash, **kwargs)
        self.total_value = self.cash_balance

    @validates("name")
    def _validate_name(self, key, value):
        if value is None or len(value.strip()) < 2:
            raise ValidationError("Portfolio name must be between 2 and 100 characters")
        return value.strip()

    @validates("initial_cash", "cash_balance")
    def _validate_cash(self, key, value):
        return round_money(require_non_negative(value, key))

    def add_cash(self, amount) -> Decimal:
        """Deposits cash into the portfolio.

        Args:
            amount: Cash to add; must be greater than zero.

        Returns:
            Decimal: The new cash balance.

        Raises:
            ValidationError: If the amount is not positive.
        """
        value = require_positive(amount, "amount")
        self.cash_balance = round_money(self.cash_balance + value)
        self.update_total_value()
        return self.cash_balance

    def withdraw_cash(self, amount) -> Decimal:
        """Withdraws cash from the portfolio.

        Args:
            amount: Cash to remove; must be greater than zero and no more
                than the current balance.

        Returns:
            Decimal: The new cash balance.

        Raises:
            ValidationError: If the amount is not positive.
            InsufficientFundsError: If the amount exceeds the balance.
        """
        value = require_positive(amount, "amount")
        if not self.has_sufficient_cash(value):
            raise InsufficientFundsError(value, self.cash_balance)
        self.cash_balance = round_money(self.cash_balance - value)
        self.update_total_value()
        return self.cash_balance

    def has_sufficient_cash(self, amount) -> bool:
        return self.cash_balance >= amount

    def update_total_value(self) -> Decimal:
        positions_value = sum((p.current_value or ZERO for p in self.positions), ZERO)
        self.total_value = round_money(self.cash_balance + positions_value)
        return self.total_value

    def refresh_valuation(self) -> Decimal:
        """Re-prices every position from its asset and recomputes the total value."""
        for position in self.positions:
            position.update_current_value()
        return self.update_total_value()

    def get_position(self, asset_id) -> Optional["Position"]:
        for position in self.positions:
            if position.held_asset_id == asset_id:
                return position
        return None

    def add_position(self, position: "Position") -> None:
        if self.get_position(position.held_asset_id) is not None:
            raise ValidationError(f"Portfolio already holds asset {position.held_asset_id}")
        self.positions.append(position)
        self.update_total_value()

    def remove_position(self, position: "Position") -> None:
        self.positions.remove(position)
        self.update_total_value()

    def add_transaction(self, transaction) -> None:
        self.transactions.append(transaction)

    @property
    def active_positions(self) -> List["Position"]:
        return [p for p in self.positions if p.has_shares]

    @property
    def position_count(self) -> int:
        return len(self.active_positions)

    @property
    def total_profit_loss(self) -> Decimal:
        return self.total_value - self.initial_cash

    @property
    def return_percentage(self) -> Decimal:
        return percent_of(self.total_profit_loss, self.initial_cash)

    @property
    def cash_allocation_percentage(self) -> Decimal:
        return percent_of(self.cash_balance, self.total_value)

    @property
    def realized_gain_loss(self) -> Decimal:
        return sum((p.realized_gain_loss for p in self.positions), ZERO)

    @property
    def unrealized_gain_loss(self) -> Decimal:
        return sum((p.unrealized_gain_loss for p in self.positions), ZERO)

    def performance_summary(self) -> Dict[str, object]:
        return {
            "current_value": self.total_value,
            "initial_cash": self.initial_cash,
            "cash_balance": self.cash_balance,
            "total_return": self.total_profit_loss,
            "return_percentage": self.return_percentage,
            "cash_allocation": self.cash_allocation_percentage,
            "realized_gain_loss": self.realized_gain_loss,
            "unrealized_gain_loss": self.unrealized_gain_loss,
            "position_count": self.position_count,
        }

    def __repr__(self):
        return f"<Portfolio(id={self.id}, name='{self.name}', user_id={self.user_id})>"


class Position(Base):
    """Represents a single asset holding within a portfolio.

    Cost basis is tracked as a weighted average: buys blend the purchase
    price into ``average_cost`` and sells realize gain against it without
    changing it. ``total_cost``, ``current_value`` and
    ``unrealized_gain_loss`` are cached projections recomputed after every
    mutation.

    A position whose quantity falls to zero is kept as a closed record.

    Attributes:
        id (int): Primary key for the position.
        portfolio_id (int): Foreign key linking to the owning portfolio.
        asset_id (int): Foreign key linking to the held asset.
        quantity (Decimal): Units held, never negative.
        average_cost (Decimal): Weighted average price paid per unit held.
        total_cost (Decimal): quantity x average_cost.
        current_value (Decimal): quantity x the asset's current price.
        unrealized_gain_loss (Decimal): current_value - total_cost.
        realized_gain_loss (Decimal): Cumulative gain locked in by sales.
        version_id (int): Optimistic concurrency counter.
        asset (relationship): The held asset.
    """
    __tablename__ = "positions"
    __table_args__ = (
        UniqueConstraint("portfolio_id", "asset_id", name="uq_positions_portfolio_asset"),
    )

    id = Column(Integer, primary_key=True, index=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=False, index=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    quantity = Column(Numeric(15, 4), nullable=False)
    average_cost = Column(Numeric(15, 4), nullable=False)
    total_cost = Column(Numeric(15, 2), nullable=False)
    current_value = Column(Numeric(15, 2), nullable=False)
    unrealized_gain_loss = Column(Numeric(15, 2), nullable=False)
    realized_gain_loss = Column(Numeric(15, 2), nullable=False)
    last_updated = Column(DateTime(timezone=False), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=False), default=utcnow)
    updated_at = Column(DateTime(timezone=False), default=utcnow, onupdate=utcnow)

    asset = relationship("Asset")

    __mapper_args__ = {"version_id_col": version_id}

    def __init__(self, **kwargs):
        kwargs.setdefault("quantity", ZERO)
        kwargs.setdefault("average_cost", ZERO)
        kwargs.setdefault("realized_gain_loss", ZERO)
        kwargs.setdefault("current_value", ZERO)
        kwargs.setdefault("last_updated", utcnow())
        asset = kwargs.get("asset")
        if asset is not None and kwargs.get("asset_id") is None:
            kwargs["asset_id"] = asset.id
        super().__init__(**kwargs)
        self.quantity = require_non_negative(self.quantity, "quantity")
        self.average_cost = require_non_negative(self.average_cost, "average_cost")
        if self.quantity > 0 and self.average_cost <= 0:
            raise ValidationError("average_cost must be greater than 0 while shares are held")
        self.recalculate()

    @property
    def held_asset_id(self):
        if self.asset_id is not None:
            return self.asset_id
        return self.asset.id if self.asset is not None else None

    def recalculate(self) -> None:
        self.total_cost = round_money(self.quantity * self.average_cost)
        self.update_current_value()

    def update_current_value(self) -> None:
        """Re-prices the holding from the asset's current price."""
        if self.asset is not None and self.asset.current_price is not None:
            self.current_value = round_money(self.quantity * self.asset.current_price)
        self.unrealized_gain_loss = self.current_value - self.total_cost

    def buy_shares(self, quantity, price) -> None:
        """Adds shares and blends their price into the average cost.

        Args:
            quantity: Units bought; must be greater than zero.
            price: Price per unit; must be greater than zero.

        Raises:
            ValidationError: If quantity or price is not positive.
        """
        qty = require_positive(quantity, "quantity")
        px = require_positive(price, "price")
        new_quantity = self.quantity + qty
        self.average_cost = round_price(
            (self.quantity * self.average_cost + qty * px) / new_quantity
        )
        self.quantity = new_quantity
        self.last_updated = utcnow()
        self.recalculate()

    def sell_shares(self, quantity, price) -> Decimal:
        """Sells shares at ``price`` and realizes the gain against average cost.

        The average cost of the remaining shares is unchanged.

        Args:
            quantity: Units sold; must be greater than zero and no more than held.
            price: Sale price per unit; must be greater than zero.

        Returns:
            Decimal: The gain (or loss, if negative) realized by this sale.

        Raises:
            ValidationError: If quantity or price is not positive.
            InsufficientSharesError: If more shares are sold than are held.
        """
        qty = require_positive(quantity, "quantity")
        px = require_positive(price, "price")
        self._ensure_held(qty)
        gain = round_money(qty * (px - self.average_cost))
        self.realized_gain_loss = self.realized_gain_loss + gain
        self.quantity = self.quantity - qty
        self.last_updated = utcnow()
        self.recalculate()
        return gain

    def remove_shares(self, quantity) -> None:
        """Removes shares at cost, realizing nothing (transfers out)."""
        qty = require_positive(quantity, "quantity")
        self._ensure_held(qty)
        self.quantity = self.quantity - qty
        self.last_updated = utcnow()
        self.recalculate()

    def apply_split(self, ratio) -> None:
        """Scales quantity up and average cost down by a split ratio (2 for 2-for-1)."""
        factor = require_positive(ratio, "ratio")
        self.quantity = round_price(self.quantity * factor)
        self.average_cost = round_price(self.average_cost / factor)
        self.last_updated = utcnow()
        self.recalculate()

    def _ensure_held(self, quantity: Decimal) -> None:
        if quantity > self.quantity:
            raise InsufficientSharesError(quantity, self.quantity)

    @property
    def unrealized_gain_loss_percent(self) -> Decimal:
        return percent_of(self.unrealized_gain_loss, self.total_cost)

    @property
    def total_gain_loss(self) -> Decimal:
        return self.realized_gain_loss + self.unrealized_gain_loss

    def portfolio_weight(self, portfolio_total_value) -> Decimal:
        return percent_of(self.current_value, portfolio_total_value)

    @property
    def is_profitable(self) -> bool:
        return self.unrealized_gain_loss > 0

    @property
    def is_at_loss(self) -> bool:
        return self.unrealized_gain_loss < 0

    @property
    def has_shares(self) -> bool:
        return self.quantity > 0

    def __repr__(self):
        return f"<Position(id={self.id}, asset_id={self.asset_id}, portfolio_id={self.portfolio_id}, quantity={self.quantity})>"
