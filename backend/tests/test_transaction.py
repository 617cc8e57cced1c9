"""Tests for the unit-of-work helper and write retries."""

import uuid

import pytest
from sqlalchemy import func, select

from quizbank.core.app_exceptions import ConflictError, PersistenceError
from quizbank.db.transaction import atomic, run_with_retry
from quizbank.models.favorite import Favorite
from quizbank.models.test import Test


def _favorite_count(db) -> int:
    return db.scalar(select(func.count()).select_from(Favorite))


def test_unique_violation_is_a_conflict(db, user_id, question_bank):
    question_id = question_bank["q1"].id

    with pytest.raises(ConflictError):
        with atomic(db, "duplicate_favorite"):
            db.add(Favorite(user_id=user_id, question_id=question_id))
            db.add(Favorite(user_id=user_id, question_id=question_id))
            db.flush()

    assert _favorite_count(db) == 0


def test_check_violation_is_not_retried(db, user_id):
    calls = []

    def write():
        calls.append(1)
        with atomic(db, "bad_test_row"):
            db.add(Test(id=uuid.uuid4(), user_id=user_id, attempt_num=0, total_questions=1))
            db.flush()

    with pytest.raises(PersistenceError) as exc_info:
        run_with_retry("bad_test_row", write, max_retries=3)

    assert not isinstance(exc_info.value, ConflictError)
    assert exc_info.value.status_code == 503
    assert len(calls) == 1


def test_foreign_key_violation_is_not_a_conflict(db, user_id, question_bank):
    with pytest.raises(PersistenceError) as exc_info:
        with atomic(db, "orphan_favorite"):
            db.add(Favorite(user_id=user_id, question_id=99999))
            db.flush()

    assert not isinstance(exc_info.value, ConflictError)
    assert _favorite_count(db) == 0


def test_conflict_is_retried_until_exhausted(db):
    calls = []

    def write():
        calls.append(1)
        raise ConflictError("always conflicting")

    with pytest.raises(PersistenceError) as exc_info:
        run_with_retry("always_conflicting", write, max_retries=2)

    assert not isinstance(exc_info.value, ConflictError)
    assert exc_info.value.details["attempts"] == 3
    assert len(calls) == 3
