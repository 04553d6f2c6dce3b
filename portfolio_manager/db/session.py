from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from portfolio_manager.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args = connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """FastAPI dependency to get a database session.

    This function is a generator that yields a SQLAlchemy session and ensures
    it's closed after the request is finished, even if an error occurs.

    Yields:
        Session: A SQLAlchemy database session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
