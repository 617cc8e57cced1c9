"""Question bank models: sections, subsections, tags and questions."""

from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from quizbank.common.time import utcnow
from quizbank.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class QuestionType(str, PyEnum):
    """Supported question types."""

    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"


question_tags = Table(
    "question_tags",
    Base.metadata,
    Column("question_id", Integer, ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Section(Base):
    """Top-level grouping of questions."""

    __tablename__ = "sections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, unique=True)

    subsections = relationship("Subsection", back_populates="section", cascade="all, delete-orphan")


class Subsection(Base):
    """Second-level grouping inside a section."""

    __tablename__ = "subsections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # NULL for a subsection filed without a section
    section_id = Column(Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(200), nullable=False)

    section = relationship("Section", back_populates="subsections")

    __table_args__ = (UniqueConstraint("section_id", "name", name="uq_subsection_section_name"),)


class Tag(Base):
    """Free-form label attached to questions."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)


class Question(Base):
    """Published question. Rows are immutable once published."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Stored as text so new types can be registered without a schema change
    type = Column(String(32), nullable=False, default=QuestionType.SINGLE_SELECT.value)
    title_short = Column(String(200), nullable=True)
    prompt = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    explanation_md = Column(Text, nullable=True)
    options = Column(JSONType, nullable=False)  # {"A": "text", "B": "text", ...}
    correct_answers = Column(JSONType, nullable=False)  # ["A"] or ["A", "C"]

    section_id = Column(Integer, ForeignKey("sections.id", ondelete="SET NULL"), nullable=True)
    subsection_id = Column(Integer, ForeignKey("subsections.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    section = relationship("Section")
    subsection = relationship("Subsection")
    tags = relationship("Tag", secondary=question_tags, order_by="Tag.name")

    __table_args__ = (
        Index("ix_questions_section_id", "section_id"),
        Index("ix_questions_subsection_id", "subsection_id"),
    )
