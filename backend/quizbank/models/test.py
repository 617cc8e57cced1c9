"""Test models: one scored attempt and its ordered question list."""

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from quizbank.common.time import utcnow
from quizbank.db.base import Base


class Test(Base):
    """A single generated attempt for a user.

    Aggregates are written only by the scoring engine, always recomputed
    from the response ledger.
    """

    __tablename__ = "tests"
    __test__ = False  # not a pytest test class

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    attempt_num = Column(Integer, nullable=False)  # 1-based, per user

    created_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    # Aggregates
    total_questions = Column(Integer, nullable=False)
    completed_questions = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    wrong_answers = Column(Integer, nullable=False, default=0)
    score = Column(Numeric(5, 2), nullable=True)  # 0.00 to 100.00

    # Relationships
    questions = relationship(
        "TestQuestion",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestQuestion.position",
    )
    responses = relationship("UserResponse", back_populates="test", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("user_id", "attempt_num", name="uq_test_user_attempt"),
        CheckConstraint("attempt_num >= 1", name="ck_test_attempt_positive"),
        CheckConstraint("completed_questions <= total_questions", name="ck_test_completed_le_total"),
        CheckConstraint(
            "correct_answers + wrong_answers = completed_questions",
            name="ck_test_counts_sum",
        ),
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 100)", name="ck_test_score_range"),
        Index("ix_tests_user_created", "user_id", "created_at"),
    )


class TestQuestion(Base):
    """Question included in a test at a fixed 0-based position."""

    __tablename__ = "test_questions"
    __test__ = False

    id = Column(Integer, primary_key=True, autoincrement=True)
    test_id = Column(Uuid, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    position = Column(Integer, nullable=False)

    # Relationships
    test = relationship("Test", back_populates="questions")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("test_id", "position", name="uq_test_question_position"),
        UniqueConstraint("test_id", "question_id", name="uq_test_question_id"),
        CheckConstraint("position >= 0", name="ck_test_question_position"),
        Index("ix_test_questions_test_id", "test_id"),
    )
