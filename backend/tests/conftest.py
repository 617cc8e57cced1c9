"""Pytest configuration and shared fixtures."""

import os
import uuid
from collections.abc import Generator

# Point the global engine at an in-memory database before the app is imported
os.environ.setdefault("ENV", "test")
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

import quizbank.models  # noqa: E402,F401
from quizbank.db.base import Base  # noqa: E402
from quizbank.db.engine import engine  # noqa: E402
from quizbank.db.session import SessionLocal, get_db  # noqa: E402
from quizbank.main import create_app  # noqa: E402
from tests.helpers.seed import seed_question_bank  # noqa: E402


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema and session per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def question_bank(db):
    """Small question bank: {title: Question} across two sections."""
    return seed_question_bank(db)


@pytest.fixture
def client(db) -> Generator[TestClient, None, None]:
    """Test client sharing the test session."""
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}
