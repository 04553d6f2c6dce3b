from fastapi import APIRouter, Depends, HTTPException, Path, status, Query
from sqlalchemy.orm import Session
from typing import List

from portfolio_manager.core.dependencies import get_current_user
from portfolio_manager.db.session import get_db
from portfolio_manager.crud import portfolio as crud
from portfolio_manager.models.user import User
from portfolio_manager.schemas.portfolio import (
    CashAdjustment,
    Portfolio,
    PortfolioCreate,
    PortfolioPerformance,
    PortfolioValue,
    Position,
)
from portfolio_manager.services import portfolio_service
from portfolio_manager.services.portfolio_service import get_portfolio_or_raise

router = APIRouter(prefix="/portfolios", tags=["Portfolios"])

@router.post("/", response_model=Portfolio, status_code=status.HTTP_201_CREATED)
def create_portfolio(
    data: PortfolioCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Creates a new portfolio for the currently authenticated user.

    Args:
        data (PortfolioCreate): The name, description and opening cash.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        Portfolio: The newly created portfolio object.
    """
    return portfolio_service.create_portfolio(
        db,
        user_id=current_user.id,
        name=data.name,
        initial_cash=data.initial_cash,
        description=data.description,
    )

@router.get("/", response_model=List[Portfolio])
def list_portfolios(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Lists all portfolios belonging to the currently authenticated user.

    Args:
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        List[Portfolio]: A list of the user's portfolios.
    """
    return crud.get_portfolios(db, current_user.id)

@router.get("/{pf_id}", response_model=Portfolio)
def get_portfolio(
    pf_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Retrieves one of the user's portfolios with its positions.

    Raises:
        NotFoundError: 404 if the portfolio is not found for the current user.
    """
    return get_portfolio_or_raise(db, pf_id, current_user.id)

@router.delete("/{pf_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_portfolio(
    pf_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Deletes a portfolio together with its positions and transaction history."""
    p = get_portfolio_or_raise(db, pf_id, current_user.id)
    crud.delete_portfolio(db, p)
    return

@router.get("/{pf_id}/value", response_model=PortfolioValue)
def get_portfolio_value(
    pf_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Computes and returns the current market value of a portfolio.

    Args:
        pf_id (int): The ID of the portfolio.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        PortfolioValue: The portfolio ID and its total value at current prices.

    Raises:
        NotFoundError: 404 if the portfolio is not found for the current user.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    value = portfolio_service.get_portfolio_value(db, pf_id)
    return {"portfolio_id": pf_id, "value": value}

@router.get("/{pf_id}/performance", response_model=PortfolioPerformance)
def get_portfolio_performance(
    pf_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Returns return, allocation and realized/unrealized gain figures for a portfolio.

    Args:
        pf_id (int): The ID of the portfolio.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        PortfolioPerformance: The performance summary.

    Raises:
        NotFoundError: 404 if the portfolio is not found for the current user.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    summary = portfolio_service.get_portfolio_performance(db, pf_id)
    return {"portfolio_id": pf_id, **summary}

@router.post("/{pf_id}/cash", response_model=Portfolio)
def adjust_cash(
    data: CashAdjustment,
    pf_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Deposits a positive amount or withdraws a negative amount of cash.

    Args:
        data (CashAdjustment): The signed amount and the reason for it.
        pf_id (int): The ID of the portfolio.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        Portfolio: The updated portfolio.

    Raises:
        ValidationError: 422 for a zero amount.
        InsufficientFundsError: 409 if a withdrawal exceeds the cash balance.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    return portfolio_service.adjust_cash(db, pf_id, data.amount, data.reason)

@router.get("/{pf_id}/positions", response_model=List[Position])
def list_positions(
    pf_id: int = Path(..., gt=0),
    active_only: bool = Query(False, description="Skip closed positions"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Lists the positions within a specific portfolio.

    Args:
        pf_id (int): The ID of the portfolio.
        active_only (bool): Only return positions that still hold shares.
        db (Session): The database session dependency.
        current_user: The authenticated user dependency.

    Returns:
        List[Position]: A list of positions in the portfolio.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    return crud.get_positions(db, pf_id, active_only=active_only)

@router.get("/{pf_id}/positions/{asset_id}", response_model=Position)
def get_position(
    pf_id: int = Path(..., gt=0),
    asset_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Retrieves the position a portfolio holds in one asset.

    Raises:
        HTTPException: 404 if the portfolio holds no position in the asset.
    """
    get_portfolio_or_raise(db, pf_id, current_user.id)
    pos = crud.get_position(db, pf_id, asset_id)
    if pos is None:
        raise HTTPException(404, "Position not found")
    return pos

@router.get("/positions/by-asset/{asset_id}", response_model=List[Position])
def get_all_user_positions_by_asset(
    asset_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Retrieves the user's positions in one asset across all their portfolios."""
    return crud.get_all_positions_for_asset_by_user(db=db, user_id=current_user.id, asset_id=asset_id)
