from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from portfolio_manager.db.session import Base


class User(Base):
    """Represents a user of the application.

    Users are the owners of portfolios and the subject of authentication
    tokens. Ownership is by id: a portfolio stores its ``user_id`` and the
    user reaches its portfolios through a one-directional relationship.

    Attributes:
        id (int): Primary key for the user.
        username (str): The user's unique username.
        email (str): The user's unique email address.
        full_name (str): The user's full name.
        is_active (bool): Flag indicating if the user's account is active.
        created_at (datetime): Timestamp of when the account was created.
        portfolios (relationship): The user's investment portfolios.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=False), server_default=func.now())

    portfolios = relationship("Portfolio", order_by="Portfolio.id", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}')>"
