"""Question store query surface: filtering by section, subsection, tag, id and favorites."""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Select, exists, select

from quizbank.models.favorite import Favorite
from quizbank.models.question import Question, Section, Subsection, Tag, question_tags


@dataclass(frozen=True)
class QuestionFilters:
    """Combinable filters; ``None`` means "do not filter on this"."""

    section_id: int | None = None
    section: str | None = None
    subsection_id: int | None = None
    subsection: str | None = None
    tag: str | None = None
    question_id: int | None = None
    favorite: bool | None = None  # True: only favorites, False: only non-favorites


def apply_question_filters(
    stmt: Select,
    filters: QuestionFilters,
    user_id: UUID | None = None,
) -> Select:
    """Narrow a statement selecting from ``questions``."""
    if filters.question_id is not None:
        stmt = stmt.where(Question.id == filters.question_id)
    if filters.section_id is not None:
        stmt = stmt.where(Question.section_id == filters.section_id)
    if filters.section:
        stmt = stmt.where(
            Question.section_id.in_(select(Section.id).where(Section.name == filters.section))
        )
    if filters.subsection_id is not None:
        stmt = stmt.where(Question.subsection_id == filters.subsection_id)
    if filters.subsection:
        stmt = stmt.where(
            Question.subsection_id.in_(
                select(Subsection.id).where(Subsection.name == filters.subsection)
            )
        )
    if filters.tag:
        stmt = stmt.where(
            exists()
            .where(question_tags.c.question_id == Question.id)
            .where(question_tags.c.tag_id == Tag.id)
            .where(Tag.name == filters.tag)
        )
    if filters.favorite is not None and user_id is not None:
        is_favorite = (
            exists()
            .where(Favorite.question_id == Question.id)
            .where(Favorite.user_id == user_id)
        )
        stmt = stmt.where(is_favorite if filters.favorite else ~is_favorite)
    return stmt
