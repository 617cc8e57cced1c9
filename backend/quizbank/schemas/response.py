"""Pydantic schemas for recorded responses."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from quizbank.domain.entities import ResponseEntity


class ResponseSubmit(BaseModel):
    """Submit an answer for one question of a test."""

    question_id: int = Field(..., description="Question ID")
    selected_answers: list[str] = Field(..., description="Selected option keys, e.g. ['A', 'C']")


class ResponseOut(BaseModel):
    """Recorded response."""

    id: int | None
    test_id: UUID
    question_id: int
    selected_answers: list[str]
    is_correct: bool
    submitted_at: datetime

    @classmethod
    def from_entity(cls, entity: ResponseEntity) -> "ResponseOut":
        return cls(
            id=entity.id,
            test_id=entity.test_id,
            question_id=entity.question_id,
            selected_answers=sorted(entity.selected_answers),
            is_correct=entity.is_correct,
            submitted_at=entity.submitted_at,
        )
