"""Test endpoints: create, history, view and response submission."""

from uuid import UUID

from fastapi import APIRouter, status

from quizbank.api.deps import CurrentUserId, DbSession
from quizbank.core.app_exceptions import ValidationError
from quizbank.core.config import settings
from quizbank.schemas.response import ResponseOut, ResponseSubmit
from quizbank.schemas.test import (
    ResponseSubmitResponse,
    TestCreate,
    TestCreateResponse,
    TestDetailOut,
    TestHistoryOut,
)
from quizbank.services import scoring, test_generator, test_views
from quizbank.services.question_filters import QuestionFilters
from quizbank.services.selection import AllQuestionsPolicy, RandomSamplePolicy, SelectionPolicy

router = APIRouter()


def build_selection_policy(request: TestCreate) -> SelectionPolicy:
    """Translate a create-test request into a selection policy."""
    filters = QuestionFilters(
        section_id=request.section_id,
        section=request.section,
        subsection_id=request.subsection_id,
        subsection=request.subsection,
        tag=request.tag,
    )
    if request.all_questions:
        return AllQuestionsPolicy(filters=filters)

    count = request.count or settings.DEFAULT_TEST_SIZE
    if count > settings.MAX_TEST_SIZE:
        raise ValidationError(
            "Too many questions requested",
            {"requested_count": count, "max_count": settings.MAX_TEST_SIZE},
        )
    return RandomSamplePolicy(count=count, filters=filters, seed=request.seed)


@router.post("", response_model=TestCreateResponse, status_code=status.HTTP_201_CREATED)
def create_test(
    db: DbSession,
    user_id: CurrentUserId,
    request: TestCreate | None = None,
):
    """
    Create a new test for the current user.

    Selects questions and returns the id of the new test along with the
    path the client should navigate to.
    """
    policy = build_selection_policy(request or TestCreate())
    test = test_generator.create_test(db, user_id, policy)
    return TestCreateResponse(
        test_id=test.id,
        attempt_num=test.attempt_num,
        total_questions=test.total_questions,
        redirect=f"/tests/{test.id}",
    )


@router.get("", response_model=TestHistoryOut)
def list_tests(db: DbSession, user_id: CurrentUserId):
    """Test history of the current user with overview statistics."""
    return test_views.list_tests(db, user_id)


@router.get("/{test_id}", response_model=TestDetailOut)
def get_test(test_id: UUID, db: DbSession, user_id: CurrentUserId):
    """One test with its ordered questions and the user's responses."""
    return test_views.get_test(db, user_id, test_id)


@router.post("/{test_id}/responses", response_model=ResponseSubmitResponse)
def submit_response(
    test_id: UUID,
    payload: ResponseSubmit,
    db: DbSession,
    user_id: CurrentUserId,
):
    """
    Record the answer to one question of the test.

    Resubmitting replaces the previous answer. Returns the response and the
    re-scored test.
    """
    response = scoring.submit_response(
        db, user_id, test_id, payload.question_id, payload.selected_answers
    )
    return ResponseSubmitResponse(
        response=ResponseOut.from_entity(response),
        test=test_views.get_test_summary(db, user_id, test_id),
    )
