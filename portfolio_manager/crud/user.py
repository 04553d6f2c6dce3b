from sqlalchemy.orm import Session
from typing import Optional
import logging

from portfolio_manager.models.user import User
from portfolio_manager.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = 50


def _normalize_email(email: str) -> str:
    return email.strip().lower()

def get_user(db: Session, user_id: int) -> Optional[User]:
    """Retrieves a single user by their unique ID, or None."""
    return db.get(User, user_id)

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Retrieves a single user by email address, ignoring case.

    Args:
        db (Session): The SQLAlchemy database session.
        email (str): The email address of the user.

    Returns:
        Optional[User]: The User object if found, otherwise None.
    """
    return db.query(User).filter(User.email == _normalize_email(email)).first()

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()

def create_user(db: Session, user_in: UserCreate) -> User:
    """Creates a new user; the email is stored lowercased.

    Args:
        db (Session): The SQLAlchemy database session.
        user_in (UserCreate): The data for the new user.

    Returns:
        User: The newly created User object.
    """
    db_user = User(
        email=_normalize_email(user_in.email),
        username=user_in.username,
        full_name=user_in.full_name,
        is_active=True if user_in.is_active is None else user_in.is_active,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("Created user %s (%s)", db_user.id, db_user.username)
    return db_user

def get_or_create_user_by_email(db: Session, email: str) -> User:
    """Returns the account for a verified email, opening one on first sign-in.

    The username defaults to the local part of the address; when that is too
    short or already taken, the whole address (truncated) is used instead.

    Args:
        db (Session): The SQLAlchemy database session.
        email (str): An address whose ownership has been verified.

    Returns:
        User: The existing or newly created user.
    """
    user = get_user_by_email(db, email)
    if user is not None:
        return user
    email = _normalize_email(email)
    username = email.split("@")[0]
    if len(username) < 3 or get_user_by_username(db, username) is not None:
        username = email[:USERNAME_MAX_LENGTH]
    return create_user(db, UserCreate(username=username, email=email))

def update_user(db: Session, db_user: User, user_in: UserUpdate) -> User:
    """Applies the fields set on ``user_in`` to an existing user.

    Args:
        db (Session): The SQLAlchemy database session.
        db_user (User): The existing User object to update.
        user_in (UserUpdate): The new data to apply.

    Returns:
        User: The updated User object.
    """
    for field, value in user_in.model_dump(exclude_unset=True).items():
        setattr(db_user, field, value)
    db.commit()
    db.refresh(db_user)
    logger.info("Updated user %s", db_user.id)
    return db_user

def delete_user(db: Session, db_user: User) -> None:
    """Deletes a user together with their portfolios, positions and transactions."""
    user_id = db_user.id
    db.delete(db_user)
    db.commit()
    logger.info("Deleted user %s", user_id)
