from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional
import logging

from jose import JWTError, jwt
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from portfolio_manager.core.config import settings
from portfolio_manager.core.exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")
PRICE_STEP = Decimal("0.0001")

MAGIC_LINK_PURPOSE = "magic-link"
ACCESS_PURPOSE = "access"

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Returns the current UTC time as a naive datetime, matching the DB columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_decimal(value, field: str = "value") -> Decimal:
    """Coerces ints, strings and floats to Decimal.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Raises:
        ValidationError: If the value is missing or not a finite number.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number, got {value!r}")
    return result


def require_positive(value, field: str) -> Decimal:
    amount = to_decimal(value, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than 0, got {amount}")
    return amount


def require_non_negative(value, field: str) -> Decimal:
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative, got {amount}")
    return amount


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def round_price(value: Decimal) -> Decimal:
    return value.quantize(PRICE_STEP, rounding=ROUND_HALF_UP)


def percent_of(part: Decimal, whole: Optional[Decimal]) -> Decimal:
    """Returns part / whole x 100 with a 4dp quotient, or zero when whole <= 0."""
    if whole is None or whole <= 0:
        return ZERO
    return (part / whole).quantize(PRICE_STEP, rounding=ROUND_HALF_UP) * HUNDRED


def _encode_token(email: str, purpose: str, minutes: int) -> str:
    payload = {
        "sub": email,
        "purpose": purpose,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_magic_token(email: str) -> str:
    """Creates a short-lived JWT for a passwordless "magic link" login.

    The token only proves control of the mailbox; it is exchanged for an
    access token at ``/auth/verify-token`` and is not accepted as a bearer
    credential.

    Args:
        email (str): The user's email address to be encoded in the token.

    Returns:
        str: The generated JSON Web Token.
    """
    return _encode_token(email, MAGIC_LINK_PURPOSE, settings.MAGIC_LINK_EXPIRE_MINUTES)


def create_access_token(email: str, expires_minutes: Optional[int] = None) -> str:
    """Creates a signed bearer JWT identifying a user by email.

    Args:
        email (str): The user's email address, stored as the token subject.
        expires_minutes (Optional[int]): Token lifetime; defaults to the
            configured ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: The encoded JSON Web Token.
    """
    return _encode_token(email, ACCESS_PURPOSE, expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def decode_token(token: str, purpose: str) -> str:
    """Verifies a token issued for ``purpose`` and returns its subject email.

    Raises:
        JWTError: If the token is malformed, expired, signed with another key,
            has no subject, or was issued for a different purpose.
    """
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    email = payload.get("sub")
    if not email:
        raise JWTError("Missing subject")
    if payload.get("purpose") != purpose:
        raise JWTError(f"Token was not issued for {purpose}")
    return email


def send_email_link(recipient: str, token: str) -> None:
    """Sends the magic login link to ``recipient`` via SendGrid.

    Raises:
        Exception: Whatever the SendGrid client raised; the caller reports it.
    """
    login_url = f"{settings.FRONTEND_BASE_URL.rstrip('/')}/login/magic-link?token={token}"
    html = f"""
<p>Use the link below to sign in to Portfolio Manager.</p>
<p><a href="{login_url}">Sign in</a></p>
<p>Or paste this address into your browser:<br>{login_url}</p>
<p>The link expires in {settings.MAGIC_LINK_EXPIRE_MINUTES} minutes. If you did not ask for it, ignore this email.</p>
"""
    message = Mail(
        from_email=settings.EMAIL_SENDER,
        to_emails=recipient,
        subject="Your Portfolio Manager sign-in link",
        html_content=html,
    )
    try:
        SendGridAPIClient(settings.SENDGRID_API_KEY).send(message)
    except Exception:
        logger.exception("SendGrid could not deliver the sign-in link to %s", recipient)
        raise
    logger.info("Sent sign-in link to %s", recipient)
