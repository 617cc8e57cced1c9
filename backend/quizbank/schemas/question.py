"""Pydantic schemas for the question bank and favorites."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from quizbank.domain.entities import FavoriteEntity
from quizbank.schemas.response import ResponseOut


class QuestionRow(BaseModel):
    """Question bank table row with the user's statistics."""

    id: int
    type: str
    title: str | None
    section: str | None
    subsection: str | None
    tags: list[str]
    attempts: int
    accuracy: int  # percent, 0 without attempts
    last_response: ResponseOut | None
    favorite: bool


class QuestionBankOverviewOut(BaseModel):
    total_questions: int
    sections: int
    subsections: int
    tags: int


class QuestionBankOut(BaseModel):
    questions: list[QuestionRow]
    overview: QuestionBankOverviewOut


class QuestionDetailOut(QuestionRow):
    """Full question with metadata."""

    prompt: str
    explanation: str | None
    explanation_md: str | None
    options: dict[str, str]
    correct_answers: list[str]


class FavoriteOut(BaseModel):
    id: int | None
    user_id: UUID
    question_id: int
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: FavoriteEntity) -> "FavoriteOut":
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            question_id=entity.question_id,
            created_at=entity.created_at,
        )


class FavoriteStateOut(BaseModel):
    question_id: int
    favorite: bool
