"""Favorite models for bookmarking questions independently of test attempts."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid

from quizbank.common.time import utcnow
from quizbank.db.base import Base


class Favorite(Base):
    """User bookmark on a question."""

    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, nullable=False, index=True)
    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_user_question_favorite"),
    )
