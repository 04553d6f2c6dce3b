# Importing every model here registers all tables and relationship targets
# on Base before any mapper is configured.
from portfolio_manager.models.user import User
from portfolio_manager.models.asset import Asset, AssetType
from portfolio_manager.models.portfolio import Portfolio, Position
from portfolio_manager.models.transaction import Transaction, TransactionStatus, TransactionType

__all__ = [
    "User",
    "Asset",
    "AssetType",
    "Portfolio",
    "Position",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
