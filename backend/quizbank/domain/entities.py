"""Typed domain entities parsed from store rows.

The core never works on raw ORM rows or joined mappings directly: every
row crosses this boundary first and malformed rows are rejected with
``ValidationError`` instead of leaking half-valid shapes into scoring or
statistics.
"""

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from quizbank.core.app_exceptions import ValidationError
from quizbank.models.favorite import Favorite
from quizbank.models.question import Question, QuestionType
from quizbank.models.response import UserResponse
from quizbank.models.test import Test

EntityT = TypeVar("EntityT", bound=BaseModel)


def _as_key_set(value: Any) -> Any:
    """Accept a list/set of option keys or a comma separated string."""
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple, set, frozenset)):
        keys = []
        for key in value:
            if not isinstance(key, str):
                raise ValueError("option keys must be strings")
            key = key.strip()
            if not key:
                raise ValueError("option keys must not be blank")
            keys.append(key)
        return frozenset(keys)
    return value


class Entity(BaseModel):
    """Immutable base for domain entities."""

    model_config = ConfigDict(frozen=True)


class QuestionDraft(Entity):
    """Question content before it has been assigned an identifier."""

    type: QuestionType
    title: str | None = None
    prompt: str = Field(min_length=1)
    explanation: str | None = None
    explanation_md: str | None = None
    options: dict[str, str]
    correct_answers: frozenset[str]
    section: str | None = None
    subsection: str | None = None
    tags: tuple[str, ...] = ()

    split_correct_answers = field_validator("correct_answers", mode="before")(_as_key_set)

    @field_validator("options")
    @classmethod
    def check_options(cls, value: dict[str, str]) -> dict[str, str]:
        if not value:
            raise ValueError("question must have at least one option")
        if any(not key.strip() for key in value):
            raise ValueError("option keys must not be blank")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def drop_blank_tags(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple, set)):
            return tuple(sorted({str(tag).strip() for tag in value if str(tag).strip()}))
        return value

    @model_validator(mode="after")
    def check_correct_answers(self):
        if not self.correct_answers:
            raise ValueError("correct answer must name at least one option")
        unknown = self.correct_answers - self.options.keys()
        if unknown:
            raise ValueError(f"correct answer references unknown options: {sorted(unknown)}")
        if self.type == QuestionType.SINGLE_SELECT and len(self.correct_answers) != 1:
            raise ValueError("single-select questions have exactly one correct option")
        return self


class QuestionEntity(QuestionDraft):
    """Published question as seen by the core."""

    id: int
    section_id: int | None = None
    subsection_id: int | None = None


class TestEntity(Entity):
    """Test attempt with its stored aggregates and ordered question ids."""

    __test__ = False

    id: UUID
    user_id: UUID
    attempt_num: int = Field(ge=1)
    created_at: datetime
    completed_at: datetime | None = None
    score: Decimal | None = Field(default=None, ge=0, le=100)
    total_questions: int = Field(ge=0)
    completed_questions: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    wrong_answers: int = Field(default=0, ge=0)
    question_ids: tuple[int, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @model_validator(mode="after")
    def check_counts(self):
        if self.completed_questions > self.total_questions:
            raise ValueError("completed_questions exceeds total_questions")
        if self.correct_answers + self.wrong_answers != self.completed_questions:
            raise ValueError("correct_answers + wrong_answers must equal completed_questions")
        if self.question_ids and len(self.question_ids) != self.total_questions:
            raise ValueError("total_questions does not match the number of test questions")
        return self


class ResponseEntity(Entity):
    """Recorded answer for one (user, test, question)."""

    id: int | None = None
    user_id: UUID
    test_id: UUID
    question_id: int
    selected_answers: frozenset[str]
    is_correct: bool
    submitted_at: datetime

    split_selected_answers = field_validator("selected_answers", mode="before")(_as_key_set)

    @field_validator("selected_answers")
    @classmethod
    def check_not_empty(cls, value: frozenset[str]) -> frozenset[str]:
        if not value:
            raise ValueError("a response selects at least one option")
        return value


class FavoriteEntity(Entity):
    """Bookmark on a question."""

    id: int | None = None
    user_id: UUID
    question_id: int
    created_at: datetime


def _validate(model: type[EntityT], data: Mapping[str, Any], kind: str) -> EntityT:
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Malformed {kind} row",
            {
                "id": str(data.get("id")) if data.get("id") is not None else None,
                "errors": exc.errors(include_url=False, include_context=False, include_input=False),
            },
        ) from exc


def parse_question(row: Question | Mapping[str, Any]) -> QuestionEntity:
    """Build a QuestionEntity from an ORM row or a raw joined mapping."""
    if isinstance(row, Question):
        data = {
            "id": row.id,
            "type": row.type,
            "title": row.title_short,
            "prompt": row.prompt,
            "explanation": row.explanation,
            "explanation_md": row.explanation_md,
            "options": row.options,
            "correct_answers": row.correct_answers,
            "section_id": row.section_id,
            "subsection_id": row.subsection_id,
            "section": row.section.name if row.section else None,
            "subsection": row.subsection.name if row.subsection else None,
            "tags": [tag.name for tag in row.tags],
        }
    else:
        data = row
    return _validate(QuestionEntity, data, "question")


def parse_question_draft(data: Mapping[str, Any]) -> QuestionDraft:
    """Validate question content that is about to be written to the store."""
    return _validate(QuestionDraft, data, "question")


def parse_test(row: Test | Mapping[str, Any], include_aggregates: bool = True) -> TestEntity:
    """Build a TestEntity.

    With ``include_aggregates=False`` the stored counters are left out, so a
    row whose counters need repair can still be parsed and re-scored.
    """
    if isinstance(row, Test):
        data = {
            "id": row.id,
            "user_id": row.user_id,
            "attempt_num": row.attempt_num,
            "created_at": row.created_at,
            "completed_at": row.completed_at,
            "score": row.score,
            "total_questions": row.total_questions,
            "completed_questions": row.completed_questions,
            "correct_answers": row.correct_answers,
            "wrong_answers": row.wrong_answers,
            "question_ids": [link.question_id for link in row.questions],
        }
    else:
        data = row
    if not include_aggregates:
        data = {
            key: value
            for key, value in dict(data).items()
            if key not in ("score", "completed_questions", "correct_answers", "wrong_answers")
        }
    return _validate(TestEntity, data, "test")


def parse_response(row: UserResponse | Mapping[str, Any]) -> ResponseEntity:
    if isinstance(row, UserResponse):
        data = {
            "id": row.id,
            "user_id": row.user_id,
            "test_id": row.test_id,
            "question_id": row.question_id,
            "selected_answers": row.selected_answers,
            "is_correct": row.is_correct,
            "submitted_at": row.submitted_at,
        }
    else:
        data = row
    return _validate(ResponseEntity, data, "response")


def parse_favorite(row: Favorite | Mapping[str, Any]) -> FavoriteEntity:
    if isinstance(row, Favorite):
        data = {
            "id": row.id,
            "user_id": row.user_id,
            "question_id": row.question_id,
            "created_at": row.created_at,
        }
    else:
        data = row
    return _validate(FavoriteEntity, data, "favorite")
