from datetime import date, datetime, time, timedelta
from sqlalchemy.orm import Session
from typing import List, Optional, Union
from portfolio_manager.models.transaction import Transaction as TxModel, TransactionStatus
from portfolio_manager.schemas.transaction import TransactionUpdate

def _day_start(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)

def get_transaction(db: Session, tx_id: int) -> Optional[TxModel]:
    """Retrieves a single transaction by its unique ID.

    Args:
        db (Session): The SQLAlchemy database session.
        tx_id (int): The ID of the transaction.

    Returns:
        Optional[TxModel]: The Transaction object if found, otherwise None.
    """
    return db.query(TxModel).filter(TxModel.id == tx_id).first()

def get_transactions(
    db: Session, portfolio_id: int,
    skip: int = 0, limit: Optional[int] = 50,
    start: Optional[date] = None, end: Optional[date] = None,
    status: Optional[TransactionStatus] = None,
) -> List[TxModel]:
    """Retrieves transactions for a portfolio with optional filtering.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.
        skip (int): Number of records to skip for pagination.
        limit (Optional[int]): Maximum number of records to return, or None for all.
        start (Optional[date]): Earliest transaction date to include.
        end (Optional[date]): Latest transaction date to include (whole day).
        status (Optional[TransactionStatus]): Only return transactions in this status.

    Returns:
        List[TxModel]: Transaction objects, newest first.
    """
    q = db.query(TxModel).filter(TxModel.portfolio_id == portfolio_id)
    if start:
        q = q.filter(TxModel.transaction_date >= _day_start(start))
    if end:
        if isinstance(end, datetime):
            q = q.filter(TxModel.transaction_date <= end)
        else:
            q = q.filter(TxModel.transaction_date < _day_start(end) + timedelta(days=1))
    if status is not None:
        q = q.filter(TxModel.status == status)
    q = q.order_by(TxModel.transaction_date.desc(), TxModel.id.desc()).offset(skip)
    if limit is not None:
        q = q.limit(limit)
    return q.all()

def update_transaction(
    db: Session, tx: TxModel, tx_in: TransactionUpdate
) -> TxModel:
    """Applies edits to a pending transaction; amounts and settlement are re-derived.

    The caller commits.

    Args:
        db (Session): The SQLAlchemy database session.
        tx (TxModel): The transaction to update.
        tx_in (TransactionUpdate): The fields to update.

    Returns:
        TxModel: The edited Transaction object.

    Raises:
        InvalidTransactionStateError: If the transaction is no longer PENDING.
    """
    tx.ensure_pending("update")
    for field, value in tx_in.model_dump(exclude_unset=True).items():
        setattr(tx, field, value)
    db.add(tx)
    return tx
