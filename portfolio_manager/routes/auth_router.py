import logging

from fastapi import APIRouter, HTTPException, Query, Depends, status
from jose import JWTError
from sqlalchemy.orm import Session

from portfolio_manager.core.utils import (
    MAGIC_LINK_PURPOSE,
    create_access_token,
    create_magic_token,
    decode_token,
    send_email_link,
)
from portfolio_manager.db.session import get_db
from portfolio_manager.crud import user as crud_user
from portfolio_manager.schemas.user import MagicLinkRequest, MagicLinkSent, Token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/request-token", response_model=MagicLinkSent)
def request_token(data: MagicLinkRequest):
    """Emails a magic sign-in link to the given address.

    The token travels only inside the email, so asking for a link to someone
    else's address grants nothing. The response is the same whether or not an
    account exists for the address.
    """
    token = create_magic_token(data.email)
    try:
        send_email_link(data.email, token)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not send email: {e}",
        )
    return MagicLinkSent(msg=f"Magic link sent to {data.email}")


@router.get("/verify-token", response_model=Token)
def verify_token(
    token: str = Query(...),
    db:    Session = Depends(get_db),
):
    """Exchanges a magic-link token for a bearer access token.

    If the user is signing in for the first time, their account is created.

    Raises:
        HTTPException: 401 if the token is invalid, expired or not a magic-link
            token, 403 if the account is inactive.
    """
    try:
        email = decode_token(token, MAGIC_LINK_PURPOSE)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    user = crud_user.get_or_create_user_by_email(db, email)
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")
    logger.info("User %s signed in", user.id)
    return Token(access_token=create_access_token(user.email))
