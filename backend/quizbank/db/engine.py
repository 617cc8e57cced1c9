"""Database engine configuration."""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from quizbank.core.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # noqa: ARG001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create SQLAlchemy engine.

    Storage calls are bounded: PostgreSQL gets a server-side
    ``statement_timeout``, SQLite a busy timeout. A timeout surfaces as an
    ``OperationalError`` which the transaction helper maps to
    ``PersistenceError``.
    """
    url = make_url(database_url or settings.DATABASE_URL)
    timeout_ms = settings.DB_STATEMENT_TIMEOUT_MS

    if url.get_backend_name() == "sqlite":
        kwargs: dict = {
            "connect_args": {"check_same_thread": False, "timeout": timeout_ms / 1000},
            "echo": settings.DB_ECHO,
        }
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
        pool_timeout=max(1, timeout_ms // 1000),
        connect_args={"options": f"-c statement_timeout={timeout_ms}"},
        echo=settings.DB_ECHO,
    )


# Global engine instance
engine = create_db_engine()
