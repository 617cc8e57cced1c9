"""Pydantic schemas for tests."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from quizbank.domain.entities import TestEntity
from quizbank.schemas.response import ResponseOut

# ============================================================================
# Test Schemas
# ============================================================================


class TestCreate(BaseModel):
    """Request to create a test. Without filters the whole bank is sampled."""

    __test__ = False

    section_id: int | None = Field(None, description="Only questions of this section")
    section: str | None = Field(None, description="Only questions of the section with this name")
    subsection_id: int | None = Field(None, description="Only questions of this subsection")
    subsection: str | None = Field(None, description="Only questions of the subsection with this name")
    tag: str | None = Field(None, description="Only questions carrying this tag")
    count: int | None = Field(None, ge=1, description="Number of questions (default from settings)")
    seed: str | None = Field(None, max_length=200, description="Seed for a reproducible sample")
    all_questions: bool = Field(False, description="Use every matching question in id order")


class TestCreateResponse(BaseModel):
    """Response after creating a test."""

    __test__ = False

    test_id: UUID
    attempt_num: int
    total_questions: int
    redirect: str


class TestOut(BaseModel):
    """Test with its stored aggregates."""

    __test__ = False

    id: UUID
    user_id: UUID
    attempt_num: int
    created_at: datetime
    completed_at: datetime | None
    score: float | None
    total_questions: int
    completed_questions: int
    correct_answers: int
    wrong_answers: int

    @classmethod
    def from_entity(cls, entity: TestEntity) -> "TestOut":
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            attempt_num=entity.attempt_num,
            created_at=entity.created_at,
            completed_at=entity.completed_at,
            score=float(entity.score) if entity.score is not None else None,
            total_questions=entity.total_questions,
            completed_questions=entity.completed_questions,
            correct_answers=entity.correct_answers,
            wrong_answers=entity.wrong_answers,
        )


class TestListItem(TestOut):
    """Row of the test history table."""

    sections: list[str] = Field(default_factory=list)


class TestHistoryOverviewOut(BaseModel):
    total_tests: int
    completed_tests: int
    total_questions: int
    correct_answers: int


class TestHistoryOut(BaseModel):
    tests: list[TestListItem]
    overview: TestHistoryOverviewOut


# ============================================================================
# Test View Schemas
# ============================================================================


class TestQuestionView(BaseModel):
    """Question as shown inside a test.

    The correct answer and explanation are only present once the question
    has been answered in this test.
    """

    __test__ = False

    position: int  # 0-based
    question_id: int
    type: str
    title: str | None
    prompt: str
    options: dict[str, str]
    section: str | None
    subsection: str | None
    tags: list[str]
    is_favorited: bool
    response: ResponseOut | None = None
    correct_answers: list[str] | None = None
    explanation: str | None = None
    explanation_md: str | None = None


class TestDetailOut(BaseModel):
    test: TestOut
    questions: list[TestQuestionView]
    attempted_count: int


class ResponseSubmitResponse(BaseModel):
    """Recorded response plus the re-scored test."""

    response: ResponseOut
    test: TestOut
