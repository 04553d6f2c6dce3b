from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query
from sqlalchemy.orm import Session

from portfolio_manager.core.dependencies import get_current_user
from portfolio_manager.core.exceptions import NotFoundError
from portfolio_manager.crud import asset as crud_asset
from portfolio_manager.crud import transaction as crud_tx
from portfolio_manager.db.session import get_db
from portfolio_manager.models.transaction import TransactionStatus
from portfolio_manager.models.user import User
from portfolio_manager.schemas.transaction import (
    Transaction,
    TransactionCancel,
    TransactionCreate,
    TransactionFail,
    TransactionUpdate,
)
from portfolio_manager.services import transaction_service
from portfolio_manager.services.portfolio_service import get_portfolio_or_raise

router = APIRouter(prefix="/portfolios/{pf_id}/transactions", tags=["Transactions"])

@router.post(
    "/",
    response_model=Transaction,
    status_code=201,
    summary="Record a new pending transaction"
)
def add_transaction(
    tx_in: TransactionCreate,
    pf_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Records a new PENDING transaction for a specified portfolio.

    The asset may be given by ID or by symbol. Nothing is applied to the
    portfolio until the transaction is executed.

    Args:
        tx_in (TransactionCreate): The details of the transaction.
        pf_id (int): The ID of the portfolio for the transaction.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        Transaction: The newly created transaction object.

    Raises:
        NotFoundError: 404 if the portfolio or asset is not found.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    asset_id = tx_in.asset_id
    if asset_id is None:
        asset = crud_asset.get_asset_by_symbol(db, tx_in.symbol)
        if asset is None:
            raise NotFoundError("Asset", tx_in.symbol)
        asset_id = asset.id
    return transaction_service.create_transaction(
        db,
        portfolio_id=pf_id,
        asset_id=asset_id,
        transaction_type=tx_in.transaction_type,
        quantity=tx_in.quantity,
        price_per_share=tx_in.price_per_share,
        commission=tx_in.commission,
        fees=tx_in.fees,
        transaction_date=tx_in.transaction_date,
        notes=tx_in.notes,
        external_transaction_id=tx_in.external_transaction_id,
    )

@router.get(
    "/",
    response_model=List[Transaction],
    summary="List transactions with pagination & date filtering"
)
def list_transactions(
    pf_id: int = Path(..., gt=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, gt=0, le=200),
    start: Optional[date] = Query(None, description="YYYY-MM-DD"),
    end:   Optional[date] = Query(None, description="YYYY-MM-DD"),
    tx_status: Optional[TransactionStatus] = Query(None, alias="status"),
    db:    Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Lists transactions for a portfolio, newest first.

    Args:
        pf_id (int): The ID of the portfolio.
        skip (int): The number of transactions to skip for pagination.
        limit (int): The maximum number of transactions to return.
        start (Optional[date]): The first trade date to include.
        end (Optional[date]): The last trade date to include.
        tx_status (Optional[TransactionStatus]): Only return transactions in this status.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        List[Transaction]: A list of transaction objects.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    return crud_tx.get_transactions(
        db, pf_id, skip=skip, limit=limit, start=start, end=end, status=tx_status
    )

@router.get("/{tx_id}", response_model=Transaction)
def get_transaction(
    pf_id: int = Path(..., gt=0),
    tx_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Retrieves a single transaction of a portfolio."""
    get_portfolio_or_raise(db, pf_id, current_user.id)
    return transaction_service.get_transaction_or_raise(db, pf_id, tx_id)

@router.put(
    "/{tx_id}",
    response_model=Transaction,
    summary="Edit a pending transaction"
)
def update_transaction(
    tx_in: TransactionUpdate,
    pf_id: int = Path(..., gt=0),
    tx_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Updates the details of a transaction that has not been executed yet.

    Args:
        tx_in (TransactionUpdate): The new data for the transaction.
        pf_id (int): The ID of the portfolio containing the transaction.
        tx_id (int): The ID of the transaction to update.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        Transaction: The updated transaction object.

    Raises:
        NotFoundError: 404 if the portfolio or transaction is not found.
        InvalidTransactionStateError: 409 if the transaction is no longer pending.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    return transaction_service.update_transaction(db, pf_id, tx_id, tx_in)

@router.post("/{tx_id}/execute", response_model=Transaction)
def execute_transaction(
    pf_id: int = Path(..., gt=0),
    tx_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Applies a pending transaction to its portfolio.

    Raises:
        InsufficientResourceError: 409 when cash or shares are lacking; the
            transaction is left FAILED.
        InvalidTransactionStateError: 409 if the transaction is not pending.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    return transaction_service.execute_transaction(db, pf_id, tx_id)

@router.post("/{tx_id}/cancel", response_model=Transaction)
def cancel_transaction(
    pf_id: int = Path(..., gt=0),
    tx_id: int = Path(..., gt=0),
    data: Optional[TransactionCancel] = Body(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancels a pending transaction without applying it."""
    get_portfolio_or_raise(db, pf_id, current_user.id)
    reason = data.reason if data else None
    return transaction_service.cancel_transaction(db, pf_id, tx_id, reason)

@router.post("/{tx_id}/fail", response_model=Transaction)
def fail_transaction(
    data: TransactionFail,
    pf_id: int = Path(..., gt=0),
    tx_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Marks a pending transaction as failed, e.g. when the broker rejected it."""
    get_portfolio_or_raise(db, pf_id, current_user.id)
    return transaction_service.fail_transaction(db, pf_id, tx_id, data.reason)
