"""Error hierarchy shared by the models, services and routers.

Models raise these before mutating anything, so a caught error always means
the object it was raised from is unchanged (apart from a transaction being
moved to FAILED, which is the recorded outcome of a rejected execution).
"""


class PortfolioError(Exception):
    """Base class for every accounting error raised by this package."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortfolioError, ValueError):
    """Non-positive quantity, price or amount, or a missing required field."""

    status_code = 422


class NotFoundError(PortfolioError):
    """An id did not resolve to a stored user, portfolio, asset or transaction."""

    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InsufficientResourceError(PortfolioError):
    """An operation needed more cash or shares than are available."""

    status_code = 409


class InsufficientFundsError(InsufficientResourceError):
    def __init__(self, required, available):
        super().__init__(f"Insufficient cash: required {required}, available {available}")
        self.required = required
        self.available = available


class InsufficientSharesError(InsufficientResourceError):
    def __init__(self, requested, held):
        super().__init__(f"Insufficient shares: requested {requested}, held {held}")
        self.requested = requested
        self.held = held


class PositionNotFoundError(InsufficientResourceError):
    def __init__(self, portfolio_id, asset_id):
        super().__init__(f"Portfolio {portfolio_id} holds no position in asset {asset_id}")
        self.portfolio_id = portfolio_id
        self.asset_id = asset_id


class InvalidTransactionStateError(PortfolioError):
    """execute/cancel/fail (or an edit) was attempted on a terminal transaction."""

    status_code = 409

    def __init__(self, transaction_id, status, action: str):
        super().__init__(f"Cannot {action} transaction {transaction_id} in status {status}")
        self.transaction_id = transaction_id
        self.status = status
        self.action = action


class ConcurrentModificationError(PortfolioError):
    """The portfolio row was changed by another writer since it was loaded."""

    status_code = 409
