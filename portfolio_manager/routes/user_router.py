from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.orm import Session

from portfolio_manager.crud import user as crud_user
from portfolio_manager.core.dependencies import get_current_user
from portfolio_manager.db.session import get_db
from portfolio_manager.models.user import User as UserModel
from portfolio_manager.schemas.user import User, UserCreate, UserSummary, UserUpdate
from portfolio_manager.services import portfolio_service

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


def own_account(
    user_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> UserModel:
    """Resolves ``user_id`` to an account, allowing only the caller's own.

    Raises:
        HTTPException: 404 if the user is not found, 403 if it is someone else.
    """
    db_user = crud_user.get_user(db, user_id)
    if db_user is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")
    if db_user.id != current_user.id:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not enough permissions")
    return db_user


@router.post(
    "/",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
):
    """Registers an account ahead of its first sign-in.

    Raises:
        HTTPException: 400 if the email or username is already registered.
    """
    if crud_user.get_user_by_email(db, user_in.email):
        raise HTTPException(400, "Email already registered")
    if crud_user.get_user_by_username(db, user_in.username):
        raise HTTPException(400, "Username already taken")
    return crud_user.create_user(db, user_in)


@router.get("/me", response_model=User)
def read_current_user(current_user: UserModel = Depends(get_current_user)):
    """Gets the profile of the currently authenticated user."""
    return current_user


@router.get("/me/summary", response_model=UserSummary)
def read_current_user_summary(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Totals the caller's cash and holdings across all of their portfolios."""
    return portfolio_service.get_user_summary(db, current_user.id)


@router.get("/{user_id}", response_model=User)
def read_user(db_user: UserModel = Depends(own_account)):
    return db_user


@router.put("/{user_id}", response_model=User)
def update_user(
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    db_user: UserModel = Depends(own_account),
):
    """Updates the caller's profile."""
    return crud_user.update_user(db, db_user, user_in)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    db: Session = Depends(get_db),
    db_user: UserModel = Depends(own_account),
):
    """Deletes the caller's account together with their portfolios."""
    crud_user.delete_user(db, db_user)
