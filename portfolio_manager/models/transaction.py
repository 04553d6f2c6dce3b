from datetime import datetime
from decimal import Decimal
from typing import Optional
import enum
import logging

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship, validates

from portfolio_manager.core.exceptions import (
    InsufficientFundsError,
    InsufficientResourceError,
    InsufficientSharesError,
    InvalidTransactionStateError,
    PositionNotFoundError,
    ValidationError,
)
from portfolio_manager.core.utils import (
    ZERO,
    require_non_negative,
    require_positive,
    round_money,
    utcnow,
)
from portfolio_manager.db.session import Base
from portfolio_manager.models.portfolio import Position

logger = logging.getLogger(__name__)


class TransactionType(str, enum.Enum):
    BUY = "buy"
    SELL = "sell"
    DIVIDEND = "dividend"
    SPLIT = "split"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    INTEREST = "interest"
    FEE = "fee"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


# Types that may open a position, and types that need shares already held.
_OPENS_POSITION = frozenset({TransactionType.BUY, TransactionType.TRANSFER_IN})
_NEEDS_SHARES = frozenset({TransactionType.SELL, TransactionType.TRANSFER_OUT, TransactionType.SPLIT})

_CASH_DEBIT = frozenset({TransactionType.BUY, TransactionType.FEE})
_CASH_CREDIT = frozenset({TransactionType.SELL, TransactionType.DIVIDEND, TransactionType.INTEREST})

_FINANCIAL_FIELDS = ("transaction_type", "quantity", "price_per_share", "commission", "fees")


class Transaction(Base):
    """Represents a single event that moves cash and/or shares in a portfolio.

    A transaction is created PENDING. While pending its fields may be edited,
    and ``total_amount``, ``net_amount`` and ``settlement_date``
    are re-derived on every edit. ``execute`` applies its effects to the
    portfolio and moves it to EXECUTED, or, when the portfolio lacks the cash
    or shares it needs, moves it to FAILED without touching anything else.
    EXECUTED, CANCELLED and FAILED are terminal: nothing on a terminal
    transaction can be edited, and ``version_id`` makes a write issued from a
    stale PENDING copy fail instead of overwriting the final status.

    Net amount sign convention: BUY adds commission and fees to the cash
    outflow, SELL subtracts them from the proceeds, every other type uses the
    gross amount.

    Attributes:
        id (int): Primary key for the transaction.
        portfolio_id (int): Foreign key linking to the parent portfolio.
        asset_id (int): Foreign key linking to the traded asset.
        position_id (int): Foreign key to the position this transaction touched.
        transaction_type (TransactionType): What kind of event this is.
        quantity (Decimal): Units transacted (for SPLIT, the split ratio).
        price_per_share (Decimal): Price per unit.
        total_amount (Decimal): quantity x price_per_share.
        commission (Decimal): Broker commission.
        fees (Decimal): Other fees.
        net_amount (Decimal): Cash actually moved, see above.
        transaction_date (datetime): When the trade happened.
        settlement_date (datetime): When the trade settles.
        status (TransactionStatus): Lifecycle state.
        notes (str): Free text; holds the reason for a failure or cancellation.
        version_id (int): Optimistic concurrency counter.
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=False, index=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    position_id = Column(Integer, ForeignKey("positions.id"), nullable=True)
    transaction_type = Column(SAEnum(TransactionType), nullable=False)
    quantity = Column(Numeric(15, 4), nullable=False)
    price_per_share = Column(Numeric(15, 4), nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)
    commission = Column(Numeric(10, 2), nullable=False)
    fees = Column(Numeric(10, 2), nullable=False)
    net_amount = Column(Numeric(15, 2), nullable=False)
    transaction_date = Column(DateTime(timezone=False), nullable=False)
    settlement_date = Column(DateTime(timezone=False), nullable=True)
    status = Column(SAEnum(TransactionStatus), nullable=False, index=True)
    notes = Column(String(500), nullable=True)
    external_transaction_id = Column(String(100), nullable=True)
    executed_at = Column(DateTime(timezone=False), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=False), default=utcnow)
    updated_at = Column(DateTime(timezone=False), default=utcnow, onupdate=utcnow)

    asset = relationship("Asset")
    position = relationship("Position")

    __mapper_args__ = {"version_id_col": version_id}

    def __init__(self, **kwargs):
        kwargs.setdefault("commission", ZERO)
        kwargs.setdefault("fees", ZERO)
        kwargs.setdefault("transaction_date", utcnow())
        asset = kwargs.get("asset")
        if asset is not None and kwargs.get("asset_id") is None:
            kwargs["asset_id"] = asset.id
        super().__init__(**kwargs)
        if self.status is None:
            self.status = TransactionStatus.PENDING
        self.recalculate()

    # -- field guards -----------------------------------------------------

    @validates("transaction_type")
    def _validate_type(self, key, value):
        self._ensure_editable(key)
        try:
            kind = TransactionType(value)
        except ValueError:
            raise ValidationError(f"Unknown transaction type {value!r}")
        self._derive_amounts(transaction_type=kind)
        return kind

    @validates("quantity", "price_per_share")
    def _validate_positive(self, key, value):
        self._ensure_editable(key)
        amount = require_positive(value, key)
        self._derive_amounts(**{key: amount})
        return amount

    @validates("commission", "fees")
    def _validate_costs(self, key, value):
        self._ensure_editable(key)
        amount = require_non_negative(value, key)
        self._derive_amounts(**{key: amount})
        return amount

    @validates("transaction_date")
    def _validate_transaction_date(self, key, value):
        if value is None:
            raise ValidationError("transaction_date is required")
        self._ensure_editable(key)
        self.settlement_date = self._settlement_for(self.asset, value)
        return value

    @validates("notes", "external_transaction_id")
    def _validate_text(self, key, value):
        self._ensure_editable(key)
        return value

    @validates("asset")
    def _validate_asset(self, key, value):
        self._ensure_editable(key)
        if value is not None and value.id is not None:
            self.asset_id = value.id
        self.settlement_date = self._settlement_for(value, self.transaction_date)
        return value

    def _ensure_editable(self, key: str) -> None:
        if self.status is not None and self.status.is_terminal:
            raise InvalidTransactionStateError(self.id, self.status.value, f"modify {key} of")

    # -- derived values ---------------------------------------------------

    def _derive_amounts(self, **overrides) -> None:
        fields = {name: getattr(self, name) for name in _FINANCIAL_FIELDS}
        fields.update(overrides)
        kind = fields["transaction_type"]
        if kind is None or fields["quantity"] is None or fields["price_per_share"] is None:
            return
        total = round_money(fields["quantity"] * fields["price_per_share"])
        costs = (fields["commission"] or ZERO) + (fields["fees"] or ZERO)
        if kind is TransactionType.BUY:
            net = total + costs
        elif kind is TransactionType.SELL:
            net = total - costs
        else:
            net = total
        self.total_amount = total
        self.net_amount = round_money(net)

    @staticmethod
    def _settlement_for(asset, transaction_date: Optional[datetime]) -> Optional[datetime]:
        if asset is None or asset.asset_type is None or transaction_date is None:
            return None
        return transaction_date + asset.asset_type.settlement_lag

    def recalculate(self) -> None:
        """Re-derives total/net amounts and the settlement date from source fields."""
        self._derive_amounts()
        self.settlement_date = self._settlement_for(self.asset, self.transaction_date)

    def cash_effect(self) -> Decimal:
        """Signed change this transaction makes to the portfolio cash balance."""
        if self.transaction_type in _CASH_DEBIT:
            return -self.net_amount
        if self.transaction_type in _CASH_CREDIT:
            return self.net_amount
        return ZERO

    # -- lifecycle --------------------------------------------------------

    def execute(self, portfolio) -> Optional[Position]:
        """Applies this transaction to ``portfolio`` and marks it EXECUTED.

        Every precondition (cash for debits, a position with enough shares
        for sells, transfers out and splits) is checked before anything is
        mutated. When one fails the transaction becomes FAILED with the
        reason in ``notes``, the portfolio and its positions are left as they
        were, and the error is re-raised.

        Args:
            portfolio (Portfolio): The portfolio that owns this transaction.

        Returns:
            Optional[Position]: The position the transaction touched, if any.

        Raises:
            InvalidTransactionStateError: If the transaction is not PENDING.
            InsufficientFundsError: If a debit exceeds the cash balance.
            InsufficientSharesError: If more shares are removed than held.
            PositionNotFoundError: If the portfolio holds no such position.
        """
        self.ensure_pending("execute")
        self.recalculate()
        try:
            position = self._apply(portfolio)
        except InsufficientResourceError as exc:
            self.fail(exc.message)
            logger.warning(
                "Transaction %s (%s) failed on portfolio %s: %s",
                self.id, self.transaction_type.value, portfolio.id, exc.message,
            )
            raise
        if position is not None:
            position.update_current_value()
            self.position = position
        portfolio.update_total_value()
        self.status = TransactionStatus.EXECUTED
        self.executed_at = utcnow()
        return position

    def _apply(self, portfolio) -> Optional[Position]:
        kind = self.transaction_type
        position = portfolio.get_position(self.asset_id)

        cash_delta = self.cash_effect()
        if cash_delta < 0 and not portfolio.has_sufficient_cash(-cash_delta):
            raise InsufficientFundsError(-cash_delta, portfolio.cash_balance)
        if kind in _NEEDS_SHARES:
            if position is None:
                raise PositionNotFoundError(portfolio.id, self.asset_id)
            if kind is TransactionType.SPLIT:
                if not position.has_shares:
                    raise PositionNotFoundError(portfolio.id, self.asset_id)
            elif self.quantity > position.quantity:
                raise InsufficientSharesError(self.quantity, position.quantity)

        if kind in _OPENS_POSITION and position is None:
            position = Position(
                portfolio_id=portfolio.id,
                asset_id=self.asset_id,
                asset=self.asset,
                quantity=ZERO,
                average_cost=self.price_per_share,
            )
            portfolio.add_position(position)

        if kind in _OPENS_POSITION:
            position.buy_shares(self.quantity, self.price_per_share)
        elif kind is TransactionType.SELL:
            position.sell_shares(self.quantity, self.price_per_share)
        elif kind is TransactionType.TRANSFER_OUT:
            position.remove_shares(self.quantity)
        elif kind is TransactionType.SPLIT:
            # price_per_share is the post-split price
            if self.asset is not None:
                self.asset.apply_split(self.quantity, self.price_per_share)
            position.apply_split(self.quantity)

        if cash_delta > 0:
            portfolio.add_cash(cash_delta)
        elif cash_delta < 0:
            portfolio.withdraw_cash(-cash_delta)
        return position

    def cancel(self, reason: Optional[str] = None) -> None:
        self.ensure_pending("cancel")
        if reason:
            self.notes = reason
        self.status = TransactionStatus.CANCELLED

    def fail(self, reason: str) -> None:
        self.ensure_pending("fail")
        self.notes = reason[:500] if reason else reason
        self.status = TransactionStatus.FAILED

    def ensure_pending(self, action: str) -> None:
        """Raises InvalidTransactionStateError unless the transaction is PENDING."""
        if self.status is not TransactionStatus.PENDING:
            raise InvalidTransactionStateError(self.id, self.status.value, action)

    def is_settled(self, now: Optional[datetime] = None) -> bool:
        """True once an EXECUTED transaction is past its settlement date."""
        if self.status is not TransactionStatus.EXECUTED or self.settlement_date is None:
            return False
        return (now or utcnow()) > self.settlement_date

    # -- presentation helpers ---------------------------------------------

    @property
    def total_fees(self) -> Decimal:
        return self.commission + self.fees

    @property
    def is_buy(self) -> bool:
        return self.transaction_type is TransactionType.BUY

    @property
    def is_sell(self) -> bool:
        return self.transaction_type is TransactionType.SELL

    @property
    def is_executed(self) -> bool:
        return self.status is TransactionStatus.EXECUTED

    @property
    def description(self) -> str:
        symbol = self.asset.symbol if self.asset is not None else "Unknown"
        return f"{self.transaction_type.value} {self.quantity} shares of {symbol} at ${self.price_per_share}"

    def __repr__(self):
        return f"<Transaction(id={self.id}, type='{self.transaction_type}', status='{self.status}', portfolio_id={self.portfolio_id})>"
