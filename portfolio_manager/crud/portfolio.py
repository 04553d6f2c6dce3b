from sqlalchemy.orm import Session
from typing import List, Optional
from portfolio_manager.models.portfolio import Portfolio, Position

def get_portfolios(db: Session, user_id: int) -> List[Portfolio]:
    """Retrieves all portfolios belonging to a specific user.

    Args:
        db (Session): The SQLAlchemy database session.
        user_id (int): The ID of the user.

    Returns:
        List[Portfolio]: A list of the user's Portfolio objects.
    """
    return db.query(Portfolio).filter(Portfolio.user_id == user_id).order_by(Portfolio.id).all()

def get_portfolio(db: Session, portfolio_id: int) -> Optional[Portfolio]:
    """Retrieves a single portfolio by its unique ID.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio to retrieve.

    Returns:
        Optional[Portfolio]: The Portfolio object if found, otherwise None.
    """
    return db.query(Portfolio).filter(Portfolio.id == portfolio_id).first()

def get_positions(db: Session, portfolio_id: int, active_only: bool = False) -> List[Position]:
    """Retrieves the positions held within a specific portfolio.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.
        active_only (bool): Skip closed positions whose quantity is zero.

    Returns:
        List[Position]: A list of Position objects in the portfolio.
    """
    q = db.query(Position).filter(Position.portfolio_id == portfolio_id)
    if active_only:
        q = q.filter(Position.quantity > 0)
    return q.order_by(Position.id).all()

def get_position(db: Session, portfolio_id: int, asset_id: int) -> Optional[Position]:
    """Retrieves the position a portfolio holds in one asset.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio_id (int): The ID of the portfolio.
        asset_id (int): The ID of the asset.

    Returns:
        Optional[Position]: The Position object if found, otherwise None.
    """
    return (
        db.query(Position)
        .filter(Position.portfolio_id == portfolio_id)
        .filter(Position.asset_id == asset_id)
        .first()
    )

def get_positions_for_asset(db: Session, asset_id: int) -> List[Position]:
    """Retrieves every position in an asset, across all portfolios.

    Args:
        db (Session): The SQLAlchemy database session.
        asset_id (int): The ID of the asset.

    Returns:
        List[Position]: A list of matching Position objects.
    """
    return db.query(Position).filter(Position.asset_id == asset_id).order_by(Position.id).all()

def get_all_positions_for_asset_by_user(db: Session, user_id: int, asset_id: int) -> List[Position]:
    """Retrieves all positions in an asset across all of a user's portfolios.

    Args:
        db (Session): The SQLAlchemy database session.
        user_id (int): The ID of the user.
        asset_id (int): The ID of the asset to search for.

    Returns:
        List[Position]: A list of matching Position objects.
    """
    return (
        db.query(Position)
        .join(Portfolio, Position.portfolio_id == Portfolio.id)
        .filter(Portfolio.user_id == user_id)
        .filter(Position.asset_id == asset_id)
        .all()
    )

def delete_portfolio(db: Session, portfolio: Portfolio) -> None:
    """Deletes a portfolio together with its positions and transactions.

    Args:
        db (Session): The SQLAlchemy database session.
        portfolio (Portfolio): The Portfolio object to delete.
    """
    db.delete(portfolio); db.commit()
