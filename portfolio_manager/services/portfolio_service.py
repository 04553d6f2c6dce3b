from decimal import Decimal
from typing import Dict, Optional
import logging

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from portfolio_manager.core.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    PortfolioError,
    ValidationError,
)
from portfolio_manager.core.utils import ZERO, to_decimal
from portfolio_manager.crud import portfolio as crud_portfolio
from portfolio_manager.crud import user as crud_user
from portfolio_manager.models.portfolio import Portfolio

logger = logging.getLogger(__name__)


def commit(db: Session, what: str) -> None:
    """Commits the unit of work, translating a version conflict.

    Args:
        db (Session): The SQLAlchemy database session.
        what (str): Short description of the object being written, for the error.

    Raises:
        ConcurrentModificationError: If another writer changed a versioned row
            since it was loaded. The session is rolled back.
    """
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent modification of %s: %s", what, exc)
        raise ConcurrentModificationError(f"{what} was modified concurrently; reload and retry")


def get_portfolio_or_raise(db: Session, portfolio_id: int, user_id: Optional[int] = None) -> Portfolio:
    """Loads a portfolio, optionally checking its owner.

    A portfolio owned by someone else is reported as not found.

    Raises:
        NotFoundError: If no such portfolio exists for the user.
    """
    portfolio = crud_portfolio.get_portfolio(db, portfolio_id)
    if portfolio is None or (user_id is not None and portfolio.user_id != user_id):
        raise NotFoundError("Portfolio", portfolio_id)
    return portfolio


def create_portfolio(
    db: Session,
    user_id: int,
    name: str,
    initial_cash=ZERO,
    description: Optional[str] = None,
) -> Portfolio:
    """Opens a new portfolio funded with ``initial_cash``.

    Args:
        db (Session): The SQLAlchemy database session.
        user_id (int): The ID of the owning user.
        name (str): Display name, 2 to 100 characters.
        initial_cash: Opening cash balance; must not be negative.
        description (Optional[str]): Free-text description.

    Returns:
        Portfolio: The persisted portfolio, with total value equal to its cash.

    Raises:
        NotFoundError: If the user does not exist.
        ValidationError: If the name or the opening cash is invalid.
    """
    if crud_user.get_user(db, user_id) is None:
        raise NotFoundError("User", user_id)
    portfolio = Portfolio(
        user_id=user_id,
        name=name,
        description=description,
        cash_balance=initial_cash,
    )
    db.add(portfolio)
    db.commit()
    db.refresh(portfolio)
    logger.info(
        "Created portfolio %s '%s' for user %s with cash %s",
        portfolio.id, portfolio.name, user_id, portfolio.cash_balance,
    )
    return portfolio


def _refresh_valuation(db: Session, portfolio: Portfolio) -> Decimal:
    # Only write back when re-pricing moved a value
    value = portfolio.refresh_valuation()
    if any(db.is_modified(obj) for obj in [portfolio, *portfolio.positions]):
        commit(db, f"Portfolio {portfolio.id}")
    return value


def get_portfolio_value(db: Session, portfolio_id: int) -> Decimal:
    """Re-prices a portfolio from current asset prices and returns its total value.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.

    Returns:
        Decimal: cash_balance plus the current value of every position.

    Raises:
        NotFoundError: If the portfolio does not exist.
    """
    portfolio = get_portfolio_or_raise(db, portfolio_id)
    return _refresh_valuation(db, portfolio)


def get_portfolio_performance(db: Session, portfolio_id: int) -> Dict[str, object]:
    """Computes the performance figures of a portfolio at current prices.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.

    Returns:
        Dict[str, object]: current_value, initial_cash, cash_balance,
            total_return, return_percentage, cash_allocation,
            realized_gain_loss, unrealized_gain_loss and position_count.

    Raises:
        NotFoundError: If the portfolio does not exist.
    """
    portfolio = get_portfolio_or_raise(db, portfolio_id)
    _refresh_valuation(db, portfolio)
    return portfolio.performance_summary()


def get_user_summary(db: Session, user_id: int) -> Dict[str, object]:
    """Totals cash and value over every portfolio the user owns, at current prices.

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = crud_user.get_user(db, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    portfolios = crud_portfolio.get_portfolios(db, user_id)
    total_value = sum((_refresh_valuation(db, p) for p in portfolios), ZERO)
    return {
        "id": user.id,
        "username": user.username,
        "portfolio_count": len(portfolios),
        "cash_balance": sum((p.cash_balance for p in portfolios), ZERO),
        "total_value": total_value,
    }


def adjust_cash(db: Session, portfolio_id: int, amount, reason: str) -> Portfolio:
    """Deposits (positive amount) or withdraws (negative amount) cash.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.
        amount: Signed cash movement; zero is rejected.
        reason (str): Why the cash moved; recorded in the log.

    Returns:
        Portfolio: The updated portfolio.

    Raises:
        NotFoundError: If the portfolio does not exist.
        ValidationError: If the amount is zero or not a number.
        InsufficientFundsError: If a withdrawal exceeds the cash balance.
        ConcurrentModificationError: If the portfolio changed underneath us.
    """
    portfolio = get_portfolio_or_raise(db, portfolio_id)
    value = to_decimal(amount, "amount")
    if value == 0:
        raise ValidationError("amount must not be zero")
    try:
        if value > 0:
            portfolio.add_cash(value)
        else:
            portfolio.withdraw_cash(-value)
    except PortfolioError as exc:
        db.rollback()
        logger.warning("Cash adjustment of %s on portfolio %s rejected: %s", value, portfolio_id, exc.message)
        raise
    commit(db, f"Portfolio {portfolio_id}")
    db.refresh(portfolio)
    logger.info(
        "Adjusted cash of portfolio %s by %s (%s); balance now %s",
        portfolio_id, value, reason, portfolio.cash_balance,
    )
    return portfolio
