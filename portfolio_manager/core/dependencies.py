from fastapi import Depends, HTTPException, Header, status
from jose import JWTError
from sqlalchemy.orm import Session

from portfolio_manager.core.utils import ACCESS_PURPOSE, decode_token
from portfolio_manager.db.session import get_db
from portfolio_manager.crud import user as crud_user
from portfolio_manager.models.user import User


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(authorization: str) -> str:
    if authorization is None:
        raise _unauthorized("Not authenticated")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token.strip():
        raise _unauthorized("Invalid authentication credentials")
    return token.strip()


def get_current_user(
    authorization: str = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """FastAPI dependency resolving the 'Authorization: Bearer <token>' header to a user.

    Only access tokens are accepted. A magic-link token proves control of a
    mailbox and must first be exchanged at ``/auth/verify-token``.

    Args:
        authorization (str, optional): The content of the Authorization header.
        db (Session, optional): The database session dependency.

    Returns:
        User: The authenticated, active user.

    Raises:
        HTTPException: 401 for a missing, malformed, expired or wrong-purpose
            token, 404 if the account no longer exists, 403 if it is inactive.
    """
    try:
        email = decode_token(_bearer_token(authorization), ACCESS_PURPOSE)
    except JWTError as e:
        raise _unauthorized(f"Invalid token: {e}")

    user = crud_user.get_user_by_email(db, email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")
    return user
