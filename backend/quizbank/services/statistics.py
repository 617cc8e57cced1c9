"""Pure statistics over already-fetched entities.

Nothing here touches the database: callers load questions, tests,
responses and favorites in bulk and fold over them, so rendering a page
never issues one query per row.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from quizbank.domain.entities import (
    FavoriteEntity,
    QuestionEntity,
    ResponseEntity,
    TestEntity,
)

SCORE_MIN = Decimal("0.00")
SCORE_MAX = Decimal("100.00")
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class TestSummary:
    """Aggregates of one test derived from its responses."""

    __test__ = False

    total_questions: int
    completed_questions: int
    correct_answers: int
    wrong_answers: int
    score: Decimal | None


@dataclass(frozen=True)
class QuestionStats:
    attempts: int
    accuracy: int
    last_response: ResponseEntity | None


@dataclass(frozen=True)
class TestHistoryOverview:
    __test__ = False

    total_tests: int
    completed_tests: int
    total_questions: int
    correct_answers: int


@dataclass(frozen=True)
class QuestionBankOverview:
    total_questions: int
    sections: int
    subsections: int
    tags: int


def compute_score(correct: int, total: int) -> Decimal:
    """Percentage of correct answers over all questions of the test.

    Rounded half-up to two decimals and clamped to [0, 100].
    """
    if total <= 0:
        return SCORE_MIN
    raw = (Decimal(correct) * 100 / Decimal(total)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return min(max(raw, SCORE_MIN), SCORE_MAX)


def compute_accuracy(correct: int, attempts: int) -> int:
    """Integer percent, half-up; 0 when there are no attempts."""
    if attempts <= 0:
        return 0
    return int((Decimal(correct) * 100 / Decimal(attempts)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def latest_response(responses: Iterable[ResponseEntity]) -> ResponseEntity | None:
    """Response with the greatest submission time; ties go to the highest id."""
    return max(responses, key=lambda r: (r.submitted_at, r.id or 0), default=None)


def _responses_by_question(
    test: TestEntity, responses: Iterable[ResponseEntity]
) -> dict[int, ResponseEntity]:
    allowed = set(test.question_ids)
    by_question: dict[int, list[ResponseEntity]] = {}
    for response in responses:
        if response.test_id != test.id or response.user_id != test.user_id:
            continue
        if allowed and response.question_id not in allowed:
            continue
        by_question.setdefault(response.question_id, []).append(response)
    return {qid: latest_response(items) for qid, items in by_question.items()}


def test_summary(test: TestEntity, responses: Iterable[ResponseEntity]) -> TestSummary:
    """
    Derive a test's aggregates from the response ledger.

    Only responses of the test's owner, for questions of the test, count;
    each question counts once. ``score`` stays ``None`` until at least
    one question has been answered, matching a freshly created test.
    """
    answered = _responses_by_question(test, responses)
    completed = len(answered)
    correct = sum(1 for r in answered.values() if r.is_correct)
    return TestSummary(
        total_questions=test.total_questions,
        completed_questions=completed,
        correct_answers=correct,
        wrong_answers=completed - correct,
        score=compute_score(correct, test.total_questions) if completed else None,
    )


def attempted_count(test: TestEntity, responses: Iterable[ResponseEntity]) -> int:
    """Number of the test's questions that have a response."""
    return len(_responses_by_question(test, responses))


def question_stats(question: QuestionEntity, responses: Iterable[ResponseEntity]) -> QuestionStats:
    """Attempts, accuracy and most recent response for one question."""
    own = [r for r in responses if r.question_id == question.id]
    correct = sum(1 for r in own if r.is_correct)
    return QuestionStats(
        attempts=len(own),
        accuracy=compute_accuracy(correct, len(own)),
        last_response=latest_response(own),
    )


def favorite_flag(question: QuestionEntity, favorites_for_user: Iterable[FavoriteEntity]) -> bool:
    return any(f.question_id == question.id for f in favorites_for_user)


def test_history_overview(
    tests: Sequence[TestEntity], responses: Iterable[ResponseEntity]
) -> TestHistoryOverview:
    """Dashboard numbers for a user's test history."""
    test_ids = {t.id for t in tests}
    return TestHistoryOverview(
        total_tests=len(tests),
        completed_tests=sum(1 for t in tests if t.completed_at is not None),
        total_questions=sum(t.total_questions for t in tests),
        correct_answers=sum(1 for r in responses if r.test_id in test_ids and r.is_correct),
    )


def question_bank_overview(questions: Sequence[QuestionEntity]) -> QuestionBankOverview:
    return QuestionBankOverview(
        total_questions=len(questions),
        sections=len({q.section for q in questions if q.section}),
        subsections=len({q.subsection for q in questions if q.subsection}),
        tags=len({tag for q in questions for tag in q.tags}),
    )


def summary_mismatches(test: Any, summary: TestSummary) -> dict[str, tuple]:
    """Fields whose stored value differs from the derived one: {field: (stored, derived)}.

    ``test`` is anything exposing the stored counters (entity or ORM row).
    """
    mismatches = {}
    for field in ("total_questions", "completed_questions", "correct_answers", "wrong_answers", "score"):
        stored = getattr(test, field)
        derived = getattr(summary, field)
        if stored != derived:
            mismatches[field] = (stored, derived)
    return mismatches
