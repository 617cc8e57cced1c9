"""Scoring engine: answer evaluation, response recording and test aggregates."""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizbank.common.time import utcnow
from quizbank.core.app_exceptions import NotFoundError, StateError, ValidationError
from quizbank.core.config import settings
from quizbank.core.logging import get_logger
from quizbank.db.transaction import atomic, run_with_retry
from quizbank.domain.entities import (
    QuestionEntity,
    ResponseEntity,
    TestEntity,
    parse_question,
    parse_response,
    parse_test,
)
from quizbank.models.question import QuestionType
from quizbank.models.response import UserResponse
from quizbank.models.test import Test, TestQuestion
from quizbank.services import statistics

logger = get_logger(__name__)

Evaluator = Callable[[frozenset[str], frozenset[str]], bool]

EVALUATORS: dict[QuestionType, Evaluator] = {}


def register_evaluator(question_type: QuestionType) -> Callable[[Evaluator], Evaluator]:
    """Register the correctness rule for a question type."""

    def decorator(func: Evaluator) -> Evaluator:
        EVALUATORS[question_type] = func
        return func

    return decorator


@register_evaluator(QuestionType.SINGLE_SELECT)
def _evaluate_single_select(selected: frozenset[str], correct: frozenset[str]) -> bool:
    # Extra selections on a single-answer question are wrong
    return len(correct) == 1 and selected == correct


@register_evaluator(QuestionType.MULTI_SELECT)
def _evaluate_multi_select(selected: frozenset[str], correct: frozenset[str]) -> bool:
    # Set equality, no partial credit
    return selected == correct


def normalize_selection(selected_keys: Iterable[Any]) -> frozenset[str]:
    """Turn submitted option keys into a set, rejecting empty or malformed input."""
    if isinstance(selected_keys, str) or selected_keys is None:
        raise ValidationError("selected option keys must be a list")
    keys = []
    for key in selected_keys:
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Malformed option key", {"key": repr(key)})
        keys.append(key.strip())
    if not keys:
        raise ValidationError("At least one option must be selected")
    return frozenset(keys)


def evaluate_response(question: QuestionEntity, selected_keys: Iterable[str]) -> bool:
    """Whether the selection answers the question correctly (order-independent)."""
    evaluator = EVALUATORS.get(question.type)
    if evaluator is None:
        raise ValidationError(
            "Unsupported question type",
            {"question_id": question.id, "type": str(question.type)},
        )
    return evaluator(frozenset(selected_keys), question.correct_answers)


def _lock_user_test(db: Session, user_id: UUID, test_id: UUID) -> Test:
    """Load the test row FOR UPDATE so concurrent writers on it serialize."""
    test = db.scalar(
        select(Test)
        .where(Test.id == test_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if test is None or test.user_id != user_id:
        raise NotFoundError("Test", test_id)
    return test


def _apply_aggregates(db: Session, test: Test, now: datetime) -> statistics.TestSummary:
    """Recompute the test's counters from the full ledger and store them."""
    rows = db.scalars(select(UserResponse).where(UserResponse.test_id == test.id)).all()
    summary = statistics.test_summary(
        parse_test(test, include_aggregates=False), [parse_response(r) for r in rows]
    )

    test.completed_questions = summary.completed_questions
    test.correct_answers = summary.correct_answers
    test.wrong_answers = summary.wrong_answers
    test.score = summary.score
    if summary.completed_questions == summary.total_questions and test.completed_at is None:
        test.completed_at = now
    return summary


def submit_response(
    db: Session,
    user_id: UUID,
    test_id: UUID,
    question_id: int,
    selected_keys: Iterable[Any],
) -> ResponseEntity:
    """
    Record a user's answer to one question of a test and re-score the test.

    A second submission for the same (user, test, question) replaces the
    first one. The test's counters are rebuilt from every stored response,
    never incremented, so repeated or concurrent submissions cannot drift.

    Raises:
        ValidationError: Empty selection or keys that are not options of the question
        NotFoundError: Test not owned by the user, or question not part of the test
        StateError: Test already completed (unless revisions are enabled)
        PersistenceError: Storage failure; nothing is changed then
    """
    selected = normalize_selection(selected_keys)

    def write_response() -> tuple[UserResponse, Test, bool]:
        with atomic(db, "submit_response"):
            test = _lock_user_test(db, user_id, test_id)
            was_completed = test.completed_at is not None
            if was_completed and not settings.ALLOW_RESPONSE_REVISION:
                raise StateError(
                    "Test is already completed",
                    {"test_id": str(test_id), "completed_at": test.completed_at.isoformat()},
                )

            link = db.scalar(
                select(TestQuestion).where(
                    TestQuestion.test_id == test.id,
                    TestQuestion.question_id == question_id,
                )
            )
            if link is None:
                raise NotFoundError("Question", question_id, {"test_id": str(test_id)})

            question = parse_question(link.question)
            unknown = selected - question.options.keys()
            if unknown:
                raise ValidationError(
                    "Selected keys are not options of this question",
                    {"question_id": question_id, "unknown_keys": sorted(unknown)},
                )

            now = utcnow()
            response = db.scalar(
                select(UserResponse)
                .where(
                    UserResponse.user_id == user_id,
                    UserResponse.test_id == test.id,
                    UserResponse.question_id == question_id,
                )
                .execution_options(populate_existing=True)
            )
            if response is None:
                response = UserResponse(
                    user_id=user_id,
                    test_id=test.id,
                    question_id=question_id,
                    created_at=now,
                )
                db.add(response)

            response.selected_answers = sorted(selected)
            response.is_correct = evaluate_response(question, selected)
            response.submitted_at = now
            db.flush()

            _apply_aggregates(db, test, now)
            db.flush()
        return response, test, was_completed

    # A concurrent first insert for the same key loses on the unique
    # constraint; the retry then finds the winner's row and updates it.
    response, test, was_completed = run_with_retry(
        "submit_response", write_response, settings.RESPONSE_WRITE_MAX_RETRIES
    )

    logger.info(
        "Response recorded",
        extra={
            "user_id": str(user_id),
            "test_id": str(test_id),
            "question_id": question_id,
            "is_correct": response.is_correct,
            "completed_questions": test.completed_questions,
            "total_questions": test.total_questions,
        },
    )
    if test.completed_at is not None and not was_completed:
        logger.info(
            "Test completed",
            extra={"user_id": str(user_id), "test_id": str(test_id), "score": str(test.score)},
        )
    return parse_response(response)


def rebuild_test_aggregates(db: Session, test_id: UUID) -> TestEntity:
    """Recompute and store a test's aggregates from the ledger (data repair)."""
    with atomic(db, "rebuild_test_aggregates"):
        test = db.scalar(
            select(Test)
            .where(Test.id == test_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if test is None:
            raise NotFoundError("Test", test_id)
        _apply_aggregates(db, test, utcnow())
        db.flush()

    logger.info("Test aggregates rebuilt", extra={"test_id": str(test_id)})
    return parse_test(test)


def check_test_consistency(db: Session, test_id: UUID) -> dict[str, tuple]:
    """Compare stored aggregates with the ones derived from the ledger.

    Returns:
        {field: (stored, derived)} for every differing field; empty when consistent
    """
    test = db.get(Test, test_id)
    if test is None:
        raise NotFoundError("Test", test_id)
    rows = db.scalars(select(UserResponse).where(UserResponse.test_id == test_id)).all()
    summary = statistics.test_summary(
        parse_test(test, include_aggregates=False), [parse_response(r) for r in rows]
    )
    return statistics.summary_mismatches(test, summary)
