"""Unit-of-work helper: the only place where service code commits.

A mutating operation either commits every row it touched or rolls all of
them back. Storage failures never escape as raw SQLAlchemy errors:

- a uniqueness ``IntegrityError`` becomes ``ConflictError`` (retryable by the caller)
- other ``IntegrityError``s (CHECK, foreign key, NOT NULL) become ``PersistenceError``
- any other ``SQLAlchemyError`` (timeouts included) becomes ``PersistenceError``
- application errors raised inside the block propagate unchanged
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from quizbank.core.app_exceptions import ConflictError, PersistenceError
from quizbank.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# SQLSTATE unique_violation
_PG_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Whether the integrity error comes from a unique key or primary key."""
    if getattr(exc.orig, "pgcode", None) == _PG_UNIQUE_VIOLATION:
        return True
    message = str(exc.orig)
    return "UNIQUE constraint failed" in message or "PRIMARY KEY must be unique" in message


@contextmanager
def atomic(db: Session, operation: str) -> Iterator[Session]:
    """Run the block in one transaction and commit on success."""
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_unique_violation(exc):
            logger.error(
                "Integrity violation",
                extra={"operation": operation, "error": str(exc.orig)},
            )
            raise PersistenceError(
                f"{operation} violated a data integrity constraint",
                {"operation": operation},
            ) from exc
        raise ConflictError(
            f"{operation} violated a uniqueness constraint",
            {"operation": operation},
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Storage failure",
            extra={"operation": operation, "error": str(exc)},
            exc_info=True,
        )
        raise PersistenceError(
            f"{operation} could not be completed",
            {"operation": operation},
        ) from exc
    except BaseException:
        db.rollback()
        raise


def run_with_retry(
    operation: str,
    work: Callable[[], T],
    max_retries: int,
) -> T:
    """Call ``work`` and retry it on ``ConflictError`` up to ``max_retries`` times.

    ``work`` must open its own ``atomic`` block so every attempt starts from
    freshly read state. Once retries are exhausted the conflict is reported
    as a plain ``PersistenceError``.
    """
    attempt = 0
    while True:
        try:
            return work()
        except ConflictError as exc:
            if attempt >= max_retries:
                raise PersistenceError(
                    f"{operation} kept conflicting with concurrent writes",
                    {"operation": operation, "attempts": attempt + 1},
                ) from exc
            attempt += 1
            logger.warning(
                "Retrying after write conflict",
                extra={"operation": operation, "attempt": attempt},
            )
