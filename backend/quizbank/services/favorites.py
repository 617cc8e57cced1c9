"""Favorites set: user bookmarks on questions, independent of test attempts."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizbank.core.app_exceptions import NotFoundError
from quizbank.core.logging import get_logger
from quizbank.db.transaction import atomic, run_with_retry
from quizbank.domain.entities import FavoriteEntity, parse_favorite
from quizbank.models.favorite import Favorite
from quizbank.models.question import Question

logger = get_logger(__name__)

# One retry is enough: the second pass sees the concurrently inserted row
_FAVORITE_WRITE_RETRIES = 1


def _require_question(db: Session, question_id: int) -> None:
    if db.get(Question, question_id) is None:
        raise NotFoundError("Question", question_id)


def _get_favorite(db: Session, user_id: UUID, question_id: int) -> Favorite | None:
    return db.scalar(
        select(Favorite).where(
            Favorite.user_id == user_id,
            Favorite.question_id == question_id,
        )
    )


def add_favorite(db: Session, user_id: UUID, question_id: int) -> FavoriteEntity:
    """
    Bookmark a question. Adding an existing bookmark returns it unchanged.

    Raises:
        NotFoundError: If the question does not exist
    """

    def write() -> Favorite:
        with atomic(db, "add_favorite"):
            _require_question(db, question_id)
            favorite = _get_favorite(db, user_id, question_id)
            if favorite is None:
                favorite = Favorite(user_id=user_id, question_id=question_id)
                db.add(favorite)
                db.flush()
        return favorite

    favorite = run_with_retry("add_favorite", write, _FAVORITE_WRITE_RETRIES)
    return parse_favorite(favorite)


def remove_favorite(db: Session, user_id: UUID, question_id: int) -> bool:
    """Remove a bookmark. Returns whether one existed."""
    with atomic(db, "remove_favorite"):
        _require_question(db, question_id)
        favorite = _get_favorite(db, user_id, question_id)
        if favorite is not None:
            db.delete(favorite)
            db.flush()
    return favorite is not None


def toggle_favorite(db: Session, user_id: UUID, question_id: int) -> bool:
    """
    Flip the bookmark state of a question.

    Returns:
        True if the question is a favorite after the call
    """

    def write() -> bool:
        with atomic(db, "toggle_favorite"):
            _require_question(db, question_id)
            favorite = _get_favorite(db, user_id, question_id)
            if favorite is None:
                db.add(Favorite(user_id=user_id, question_id=question_id))
                is_favorite = True
            else:
                db.delete(favorite)
                is_favorite = False
            db.flush()
        return is_favorite

    is_favorite = run_with_retry("toggle_favorite", write, _FAVORITE_WRITE_RETRIES)
    logger.info(
        "Favorite toggled",
        extra={"user_id": str(user_id), "question_id": question_id, "favorite": is_favorite},
    )
    return is_favorite


def list_favorites(db: Session, user_id: UUID) -> list[FavoriteEntity]:
    """All bookmarks of a user, most recent first."""
    rows = db.scalars(
        select(Favorite)
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
    ).all()
    return [parse_favorite(row) for row in rows]


def favorites_for_questions(
    db: Session, user_id: UUID, question_ids: list[int]
) -> list[FavoriteEntity]:
    """The user's bookmarks restricted to the given questions (one query)."""
    if not question_ids:
        return []
    rows = db.scalars(
        select(Favorite).where(
            Favorite.user_id == user_id,
            Favorite.question_id.in_(question_ids),
        )
    ).all()
    return [parse_favorite(row) for row in rows]
