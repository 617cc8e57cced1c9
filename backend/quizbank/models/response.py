"""Response ledger: one row per (user, test, question), overwritten on resubmission."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from quizbank.common.time import utcnow
from quizbank.db.base import Base
from quizbank.models.question import JSONType


class UserResponse(Base):
    """A user's answer to a question within one test."""

    __tablename__ = "user_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, nullable=False)
    test_id = Column(Uuid, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)

    selected_answers = Column(JSONType, nullable=False)  # sorted option keys
    is_correct = Column(Boolean, nullable=False)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    test = relationship("Test", back_populates="responses")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("user_id", "test_id", "question_id", name="uq_user_response"),
        Index("ix_user_responses_test_id", "test_id"),
        Index("ix_user_responses_question_user", "question_id", "user_id"),
    )
