"""Tests for answer evaluation, response recording and test aggregates."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from quizbank.common.time import utcnow
from quizbank.core.app_exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    StateError,
    ValidationError,
)
from quizbank.core.config import settings
from quizbank.domain.entities import parse_question
from quizbank.models.response import UserResponse
from quizbank.models.test import Test
from quizbank.services import scoring, statistics
from quizbank.services.test_generator import create_test
from tests.helpers.seed import FixedPolicy


def _make_test(db, user_id, questions, titles):
    return create_test(db, user_id, FixedPolicy([questions[t].id for t in titles]))


def _stored_test(db, test_id) -> Test:
    return db.scalar(
        select(Test).where(Test.id == test_id).execution_options(populate_existing=True)
    )


def test_single_select_correct_only_with_exact_key(db, question_bank):
    """Single-select answers are right only when the one correct key is selected."""
    question = parse_question(question_bank["q2"])  # correct: B

    assert scoring.evaluate_response(question, ["B"]) is True
    assert scoring.evaluate_response(question, ["A"]) is False
    assert scoring.evaluate_response(question, ["B", "C"]) is False


def test_multi_select_requires_exact_set(db, question_bank):
    """Multi-select answers have no partial credit and ignore order."""
    question = parse_question(question_bank["q3"])  # correct: A, C

    assert scoring.evaluate_response(question, ["C", "A"]) is True
    assert scoring.evaluate_response(question, ["A"]) is False
    assert scoring.evaluate_response(question, ["A", "B", "C"]) is False


@pytest.mark.parametrize("bad_input", [[], "A", None, [""], ["A", 3]])
def test_normalize_selection_rejects_malformed_input(bad_input):
    with pytest.raises(ValidationError):
        scoring.normalize_selection(bad_input)


def test_normalize_selection_dedupes_keys():
    assert scoring.normalize_selection(["A", " A", "C"]) == frozenset({"A", "C"})


def test_score_one_of_three_correct(db, user_id, question_bank):
    """One correct answer out of three questions scores 33.33."""
    test = _make_test(db, user_id, question_bank, ["q1", "q2", "q4"])

    scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["A"])
    scoring.submit_response(db, user_id, test.id, question_bank["q2"].id, ["A"])
    scoring.submit_response(db, user_id, test.id, question_bank["q4"].id, ["C"])

    stored = _stored_test(db, test.id)
    assert stored.completed_questions == 3
    assert stored.correct_answers == 1
    assert stored.wrong_answers == 2
    assert Decimal(stored.score) == Decimal("33.33")
    assert stored.completed_at is not None


def test_score_counts_unanswered_questions_in_denominator(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1", "q2", "q4", "q5"])

    scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["A"])

    stored = _stored_test(db, test.id)
    assert stored.completed_questions == 1
    assert Decimal(stored.score) == Decimal("25.00")
    assert stored.completed_at is None


def test_new_test_has_no_score(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1", "q2"])

    assert test.score is None
    assert test.completed_questions == 0
    assert test.correct_answers == 0
    assert test.wrong_answers == 0


def test_resubmission_replaces_previous_answer(db, user_id, question_bank):
    """Answering the same question twice keeps one row and re-scores it."""
    test = _make_test(db, user_id, question_bank, ["q1", "q2"])
    question_id = question_bank["q1"].id

    first = scoring.submit_response(db, user_id, test.id, question_id, ["B"])
    second = scoring.submit_response(db, user_id, test.id, question_id, ["A"])

    assert first.id == second.id
    assert first.is_correct is False
    assert second.is_correct is True

    count = db.scalar(
        select(func.count()).select_from(UserResponse).where(UserResponse.test_id == test.id)
    )
    assert count == 1

    stored = _stored_test(db, test.id)
    assert stored.completed_questions == 1
    assert stored.correct_answers == 1
    assert stored.wrong_answers == 0
    assert Decimal(stored.score) == Decimal("50.00")


def test_identical_resubmission_is_idempotent(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1", "q2"])
    question_id = question_bank["q2"].id

    scoring.submit_response(db, user_id, test.id, question_id, ["B"])
    before = _stored_test(db, test.id)
    snapshot = (before.completed_questions, before.correct_answers, before.wrong_answers, before.score)

    scoring.submit_response(db, user_id, test.id, question_id, ["B"])
    after = _stored_test(db, test.id)

    assert (after.completed_questions, after.correct_answers, after.wrong_answers, after.score) == snapshot


def test_extra_key_on_single_select_is_wrong(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1"])

    response = scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["A", "C"])

    assert response.is_correct is False
    assert response.selected_answers == frozenset({"A", "C"})


def test_completed_test_rejects_new_responses(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1"])
    scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["A"])

    with pytest.raises(StateError):
        scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["B"])

    stored = _stored_test(db, test.id)
    assert stored.correct_answers == 1


def test_completed_test_accepts_revision_when_enabled(db, user_id, question_bank, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_RESPONSE_REVISION", True)
    test = _make_test(db, user_id, question_bank, ["q1"])
    scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["A"])
    completed_at = _stored_test(db, test.id).completed_at

    scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["B"])

    stored = _stored_test(db, test.id)
    assert stored.correct_answers == 0
    assert stored.wrong_answers == 1
    assert Decimal(stored.score) == Decimal("0.00")
    assert stored.completed_at == completed_at


def test_question_outside_test_is_not_found(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1"])

    with pytest.raises(NotFoundError):
        scoring.submit_response(db, user_id, test.id, question_bank["q2"].id, ["A"])


def test_other_users_test_is_not_found(db, user_id, other_user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1"])

    with pytest.raises(NotFoundError):
        scoring.submit_response(db, other_user_id, test.id, question_bank["q1"].id, ["A"])


def test_unknown_test_is_not_found(db, user_id, question_bank):
    with pytest.raises(NotFoundError):
        scoring.submit_response(db, user_id, uuid.uuid4(), question_bank["q1"].id, ["A"])


def test_unknown_option_key_is_rejected(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1"])

    with pytest.raises(ValidationError):
        scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["Z"])

    assert _stored_test(db, test.id).completed_questions == 0


def test_empty_selection_is_rejected(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1"])

    with pytest.raises(ValidationError):
        scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, [])


def test_rebuild_repairs_drifted_aggregates(db, user_id, question_bank):
    test = _make_test(db, user_id, question_bank, ["q1", "q2"])
    scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["A"])

    # Simulate drift from an out-of-band write
    stored = _stored_test(db, test.id)
    stored.completed_questions = 2
    stored.correct_answers = 0
    stored.wrong_answers = 2
    stored.score = Decimal("0.00")
    db.commit()

    mismatches = scoring.check_test_consistency(db, test.id)
    assert set(mismatches) == {"completed_questions", "correct_answers", "wrong_answers", "score"}

    rebuilt = scoring.rebuild_test_aggregates(db, test.id)

    assert rebuilt.completed_questions == 1
    assert rebuilt.correct_answers == 1
    assert rebuilt.wrong_answers == 0
    assert rebuilt.score == Decimal("50.00")
    assert scoring.check_test_consistency(db, test.id) == {}


def test_rebuild_unknown_test_is_not_found(db):
    with pytest.raises(NotFoundError):
        scoring.rebuild_test_aggregates(db, uuid.uuid4())


def _response_count(db, test_id) -> int:
    return db.scalar(
        select(func.count()).select_from(UserResponse).where(UserResponse.test_id == test_id)
    )


def test_storage_failure_leaves_ledger_and_aggregates_unchanged(db, user_id, question_bank, monkeypatch):
    test = _make_test(db, user_id, question_bank, ["q1", "q2"])
    scoring.submit_response(db, user_id, test.id, question_bank["q1"].id, ["A"])

    def failing_summary(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(statistics, "test_summary", failing_summary)

    with pytest.raises(PersistenceError) as exc_info:
        scoring.submit_response(db, user_id, test.id, question_bank["q2"].id, ["B"])

    assert not isinstance(exc_info.value, ConflictError)
    assert _response_count(db, test.id) == 1
    stored = _stored_test(db, test.id)
    assert stored.completed_questions == 1
    assert stored.correct_answers == 1
    assert Decimal(stored.score) == Decimal("50.00")
    assert stored.completed_at is None


def test_concurrent_first_answer_is_retried_as_update(db, user_id, question_bank, monkeypatch):
    """A competing insert for the same answer makes the write retry and update that row."""
    test = _make_test(db, user_id, question_bank, ["q1", "q2"])
    question_id = question_bank["q1"].id

    real_evaluate = scoring.evaluate_response
    calls = []
    competitor = {}

    def evaluate_after_competing_insert(question, selected):
        calls.append(question.id)
        if len(calls) == 1:
            # Another request commits its answer between our lookup and our insert
            pending = list(db.new)
            for obj in pending:
                db.expunge(obj)
            row = UserResponse(
                user_id=user_id,
                test_id=test.id,
                question_id=question_id,
                selected_answers=["B"],
                is_correct=False,
                submitted_at=utcnow(),
            )
            db.add(row)
            db.commit()
            competitor["id"] = row.id
            for obj in pending:
                db.add(obj)
        return real_evaluate(question, selected)

    monkeypatch.setattr(scoring, "evaluate_response", evaluate_after_competing_insert)

    response = scoring.submit_response(db, user_id, test.id, question_id, ["A"])

    assert len(calls) == 2
    assert response.id == competitor["id"]
    assert response.selected_answers == frozenset({"A"})
    assert response.is_correct is True
    assert _response_count(db, test.id) == 1

    stored = _stored_test(db, test.id)
    assert stored.completed_questions == 1
    assert stored.correct_answers == 1
    assert stored.wrong_answers == 0
    assert Decimal(stored.score) == Decimal("50.00")
