from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.orm import Session

from portfolio_manager.core.exceptions import (
    InsufficientResourceError,
    NotFoundError,
    PortfolioError,
    ValidationError,
)
from portfolio_manager.crud import asset as crud_asset
from portfolio_manager.crud import transaction as crud_tx
from portfolio_manager.models.transaction import Transaction, TransactionType
from portfolio_manager.schemas.transaction import TransactionUpdate
from portfolio_manager.services.asset_service import revalue_holders
from portfolio_manager.services.portfolio_service import commit, get_portfolio_or_raise

logger = logging.getLogger(__name__)


def get_transaction_or_raise(db: Session, portfolio_id: int, transaction_id: int) -> Transaction:
    """Loads a transaction that belongs to the given portfolio.

    Raises:
        NotFoundError: If the transaction does not exist in that portfolio.
    """
    tx = crud_tx.get_transaction(db, transaction_id)
    if tx is None or tx.portfolio_id != portfolio_id:
        raise NotFoundError("Transaction", transaction_id)
    return tx


def create_transaction(
    db: Session,
    portfolio_id: int,
    asset_id: int,
    transaction_type: TransactionType,
    quantity,
    price_per_share,
    commission=None,
    fees=None,
    transaction_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    external_transaction_id: Optional[str] = None,
) -> Transaction:
    """Records a PENDING transaction against a portfolio and an asset.

    Nothing is applied to the portfolio until the transaction is executed.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.
        asset_id (int): The ID of the asset being transacted.
        transaction_type (TransactionType): The kind of event.
        quantity: Units transacted, or the ratio for a SPLIT; must be positive.
        price_per_share: Price per unit; must be positive.
        commission: Broker commission, defaults to zero.
        fees: Other fees, defaults to zero.
        transaction_date (Optional[datetime]): Trade time, defaults to now.
        notes (Optional[str]): Free text.
        external_transaction_id (Optional[str]): Broker reference.

    Returns:
        Transaction: The persisted PENDING transaction with derived amounts
            and settlement date.

    Raises:
        NotFoundError: If the portfolio or asset does not exist.
        ValidationError: If a field is invalid or the asset is inactive.
    """
    portfolio = get_portfolio_or_raise(db, portfolio_id)
    asset = crud_asset.get_asset(db, asset_id)
    if asset is None:
        raise NotFoundError("Asset", asset_id)
    if not asset.is_active:
        raise ValidationError(f"Asset {asset.symbol} is not active")

    optional = {
        "commission": commission,
        "fees": fees,
        "transaction_date": transaction_date,
        "notes": notes,
        "external_transaction_id": external_transaction_id,
    }
    tx = Transaction(
        portfolio_id=portfolio.id,
        asset=asset,
        transaction_type=transaction_type,
        quantity=quantity,
        price_per_share=price_per_share,
        **{k: v for k, v in optional.items() if v is not None},
    )
    portfolio.add_transaction(tx)
    commit(db, f"Portfolio {portfolio_id}")
    db.refresh(tx)
    logger.info(
        "Recorded %s transaction %s on portfolio %s: %s x %s %s (net %s)",
        tx.transaction_type.value, tx.id, portfolio_id, tx.quantity,
        asset.symbol, tx.price_per_share, tx.net_amount,
    )
    return tx


def update_transaction(
    db: Session, portfolio_id: int, transaction_id: int, tx_in: TransactionUpdate
) -> Transaction:
    """Edits a PENDING transaction.

    Raises:
        NotFoundError: If the transaction does not exist in the portfolio.
        InvalidTransactionStateError: If it is no longer PENDING.
        ValidationError: If a new value is invalid.
        ConcurrentModificationError: If another request settled it meanwhile.
    """
    tx = get_transaction_or_raise(db, portfolio_id, transaction_id)
    try:
        crud_tx.update_transaction(db, tx, tx_in)
    except PortfolioError:
        db.rollback()
        raise
    commit(db, f"Transaction {transaction_id}")
    db.refresh(tx)
    logger.info("Updated transaction %s on portfolio %s", transaction_id, portfolio_id)
    return tx


def execute_transaction(db: Session, portfolio_id: int, transaction_id: int) -> Transaction:
    """Applies a PENDING transaction to its portfolio.

    On success the position and cash changes and the EXECUTED status are
    committed together. When the portfolio lacks the cash or shares the
    transaction needs, its FAILED status is committed, the portfolio is left
    untouched, and the error is re-raised.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.
        transaction_id (int): The ID of the transaction to execute.

    Returns:
        Transaction: The EXECUTED transaction.

    Raises:
        NotFoundError: If the transaction does not exist in the portfolio.
        InvalidTransactionStateError: If the transaction is not PENDING.
        InsufficientFundsError: If a debit exceeds the cash balance.
        InsufficientSharesError: If more shares are removed than are held.
        PositionNotFoundError: If the asset is not held.
        ConcurrentModificationError: If the portfolio or the transaction changed
            underneath us.
    """
    portfolio = get_portfolio_or_raise(db, portfolio_id)
    tx = get_transaction_or_raise(db, portfolio_id, transaction_id)
    try:
        tx.execute(portfolio)
    except InsufficientResourceError:
        commit(db, f"Transaction {transaction_id}")
        raise
    except PortfolioError as exc:
        db.rollback()
        logger.warning("Execution of transaction %s rejected: %s", transaction_id, exc.message)
        raise
    if tx.transaction_type is TransactionType.SPLIT:
        revalue_holders(db, tx.asset)
    commit(db, f"Portfolio {portfolio_id}")
    db.refresh(tx)
    logger.info(
        "Executed transaction %s on portfolio %s; cash %s, total value %s",
        tx.id, portfolio_id, portfolio.cash_balance, portfolio.total_value,
    )
    return tx


def cancel_transaction(
    db: Session, portfolio_id: int, transaction_id: int, reason: Optional[str] = None
) -> Transaction:
    """Moves a PENDING transaction to CANCELLED without applying it.

    Raises:
        NotFoundError: If the transaction does not exist in the portfolio.
        InvalidTransactionStateError: If it is not PENDING.
        ConcurrentModificationError: If another request settled it meanwhile.
    """
    tx = get_transaction_or_raise(db, portfolio_id, transaction_id)
    tx.cancel(reason)
    commit(db, f"Transaction {transaction_id}")
    db.refresh(tx)
    logger.info("Cancelled transaction %s on portfolio %s", transaction_id, portfolio_id)
    return tx


def fail_transaction(db: Session, portfolio_id: int, transaction_id: int, reason: str) -> Transaction:
    """Moves a PENDING transaction to FAILED, recording the reason in its notes.

    Raises:
        NotFoundError: If the transaction does not exist in the portfolio.
        InvalidTransactionStateError: If it is not PENDING.
        ConcurrentModificationError: If another request settled it meanwhile.
    """
    tx = get_transaction_or_raise(db, portfolio_id, transaction_id)
    tx.fail(reason)
    commit(db, f"Transaction {transaction_id}")
    db.refresh(tx)
    logger.warning("Marked transaction %s on portfolio %s as failed: %s", transaction_id, portfolio_id, reason)
    return tx
