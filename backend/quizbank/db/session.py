"""Database session management."""

from typing import Generator

from sqlalchemy.orm import Session, sessionmaker

from quizbank.db.engine import engine

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Prevent lazy loading issues
)


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables on the bound engine (dev/test; production uses migrations)."""
    import quizbank.models  # noqa: F401
    from quizbank.db.base import Base

    Base.metadata.create_all(bind=engine)
