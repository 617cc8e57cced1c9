"""Question bank endpoints and per-question favorite state."""

from fastapi import APIRouter, Query

from quizbank.api.deps import CurrentUserId, DbSession
from quizbank.schemas.question import (
    FavoriteStateOut,
    QuestionBankOut,
    QuestionDetailOut,
)
from quizbank.services import favorites as favorites_service
from quizbank.services import question_bank
from quizbank.services.question_filters import QuestionFilters

router = APIRouter()


@router.get("", response_model=QuestionBankOut)
def list_questions(
    db: DbSession,
    user_id: CurrentUserId,
    section: str | None = Query(None, description="Section name"),
    subsection: str | None = Query(None, description="Subsection name"),
    section_id: int | None = Query(None),
    subsection_id: int | None = Query(None),
    tag: str | None = Query(None, description="Tag name"),
    question_id: int | None = Query(None, alias="id"),
    favorite: bool | None = Query(None, description="Only favorites (true) or non-favorites (false)"),
):
    """
    Question bank with the current user's statistics.

    Each row carries attempts, accuracy, last response and the favorite flag.
    """
    filters = QuestionFilters(
        section_id=section_id,
        section=section,
        subsection_id=subsection_id,
        subsection=subsection,
        tag=tag,
        question_id=question_id,
        favorite=favorite,
    )
    return question_bank.list_questions(db, user_id, filters)


@router.get("/{question_id}", response_model=QuestionDetailOut)
def get_question(question_id: int, db: DbSession, user_id: CurrentUserId):
    """Single question with metadata and the current user's statistics."""
    return question_bank.get_question(db, user_id, question_id)


@router.post("/{question_id}/favorite/toggle", response_model=FavoriteStateOut)
def toggle_favorite(question_id: int, db: DbSession, user_id: CurrentUserId):
    """Flip the favorite state of a question."""
    is_favorite = favorites_service.toggle_favorite(db, user_id, question_id)
    return FavoriteStateOut(question_id=question_id, favorite=is_favorite)


@router.put("/{question_id}/favorite", response_model=FavoriteStateOut)
def add_favorite(question_id: int, db: DbSession, user_id: CurrentUserId):
    """Mark a question as favorite (idempotent)."""
    favorites_service.add_favorite(db, user_id, question_id)
    return FavoriteStateOut(question_id=question_id, favorite=True)


@router.delete("/{question_id}/favorite", response_model=FavoriteStateOut)
def remove_favorite(question_id: int, db: DbSession, user_id: CurrentUserId):
    """Unmark a question as favorite (idempotent)."""
    favorites_service.remove_favorite(db, user_id, question_id)
    return FavoriteStateOut(question_id=question_id, favorite=False)
