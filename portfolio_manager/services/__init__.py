"""
Service package: unit-of-work operations over the models.

Each function loads what it needs through the crud modules, applies the
domain operation, and commits once.
"""

from .portfolio_service import (
    adjust_cash,
    create_portfolio,
    get_portfolio_performance,
    get_portfolio_value,
    get_user_summary,
)
from .transaction_service import (
    cancel_transaction,
    create_transaction,
    execute_transaction,
    fail_transaction,
    update_transaction,
)
from .asset_service import create_asset, revalue_holders, update_asset_price
