"""Question selection policies for test generation.

The generator never decides which questions go into a test: it asks an
injected ``SelectionPolicy`` for an ordered list of question ids.
"""

import hashlib
import random
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizbank.common.time import utcnow
from quizbank.core.app_exceptions import ValidationError
from quizbank.core.logging import get_logger
from quizbank.models.question import Question
from quizbank.services.question_filters import QuestionFilters, apply_question_filters

logger = get_logger(__name__)


class SelectionPolicy(Protocol):
    """Chooses the ordered question ids of a new test."""

    def select(self, db: Session, user_id: UUID) -> list[int]:
        ...


def eligible_question_ids(db: Session, filters: QuestionFilters, user_id: UUID) -> list[int]:
    """Ids of all questions matching the filters, ordered by id."""
    stmt = apply_question_filters(select(Question.id), filters, user_id).order_by(Question.id)
    return list(db.scalars(stmt).all())


@dataclass(frozen=True)
class AllQuestionsPolicy:
    """Every matching question, in id order (e.g. a whole section)."""

    filters: QuestionFilters = field(default_factory=QuestionFilters)

    def select(self, db: Session, user_id: UUID) -> list[int]:
        return eligible_question_ids(db, self.filters, user_id)


@dataclass(frozen=True)
class RandomSamplePolicy:
    """
    Fixed-size sample using a deterministic seeded shuffle.

    The same seed over the same eligible questions always yields the same
    test. Without an explicit seed one is derived from the user id and the
    current time. When fewer questions match than requested, all of them
    are used.
    """

    count: int
    filters: QuestionFilters = field(default_factory=QuestionFilters)
    seed: str | None = None

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValidationError("Question count must be at least 1", {"count": self.count})

    def select(self, db: Session, user_id: UUID) -> list[int]:
        eligible_ids = eligible_question_ids(db, self.filters, user_id)

        if len(eligible_ids) < self.count:
            logger.warning(
                "Fewer questions available than requested",
                extra={
                    "user_id": str(user_id),
                    "available_count": len(eligible_ids),
                    "requested_count": self.count,
                },
            )

        seed = self.seed or f"{user_id}:{utcnow().isoformat()}"
        session_seed = hashlib.sha256(seed.encode()).hexdigest()

        rng = random.Random(session_seed)
        shuffled_ids = eligible_ids.copy()
        rng.shuffle(shuffled_ids)

        return shuffled_ids[: self.count]
