"""Question bank read projections and question import."""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload, selectinload

from quizbank.core.app_exceptions import NotFoundError
from quizbank.core.logging import get_logger
from quizbank.db.transaction import atomic
from quizbank.domain.entities import (
    QuestionEntity,
    ResponseEntity,
    parse_question,
    parse_question_draft,
    parse_response,
)
from quizbank.models.question import Question, Section, Subsection, Tag
from quizbank.models.response import UserResponse
from quizbank.schemas.question import (
    QuestionBankOut,
    QuestionBankOverviewOut,
    QuestionDetailOut,
    QuestionRow,
)
from quizbank.schemas.response import ResponseOut
from quizbank.services import statistics
from quizbank.services.favorites import favorites_for_questions
from quizbank.services.question_filters import QuestionFilters, apply_question_filters

logger = get_logger(__name__)


def load_questions(
    db: Session,
    filters: QuestionFilters | None = None,
    user_id: UUID | None = None,
) -> list[QuestionEntity]:
    """Questions matching the filters with section, subsection and tags eagerly loaded."""
    stmt = select(Question).options(
        joinedload(Question.section),
        joinedload(Question.subsection),
        selectinload(Question.tags),
    )
    stmt = apply_question_filters(stmt, filters or QuestionFilters(), user_id).order_by(Question.id)
    return [parse_question(row) for row in db.scalars(stmt).unique().all()]


def responses_for_questions(
    db: Session, user_id: UUID, question_ids: list[int]
) -> list[ResponseEntity]:
    """All of the user's responses to the given questions, across tests (one query)."""
    if not question_ids:
        return []
    rows = db.scalars(
        select(UserResponse).where(
            UserResponse.user_id == user_id,
            UserResponse.question_id.in_(question_ids),
        )
    ).all()
    return [parse_response(row) for row in rows]


def _row(
    question: QuestionEntity,
    responses: list[ResponseEntity],
    favorite: bool,
) -> dict[str, Any]:
    stats = statistics.question_stats(question, responses)
    return {
        "id": question.id,
        "type": question.type.value,
        "title": question.title,
        "section": question.section,
        "subsection": question.subsection,
        "tags": list(question.tags),
        "attempts": stats.attempts,
        "accuracy": stats.accuracy,
        "last_response": ResponseOut.from_entity(stats.last_response) if stats.last_response else None,
        "favorite": favorite,
    }


def list_questions(
    db: Session,
    user_id: UUID,
    filters: QuestionFilters | None = None,
) -> QuestionBankOut:
    """
    Question bank page: every matching question with the user's stats.

    Runs a fixed number of queries regardless of how many questions match.
    """
    questions = load_questions(db, filters, user_id)
    question_ids = [q.id for q in questions]
    responses = responses_for_questions(db, user_id, question_ids)
    favorites = favorites_for_questions(db, user_id, question_ids)

    responses_by_question: dict[int, list[ResponseEntity]] = {}
    for response in responses:
        responses_by_question.setdefault(response.question_id, []).append(response)

    rows = [
        QuestionRow(
            **_row(
                question,
                responses_by_question.get(question.id, []),
                statistics.favorite_flag(question, favorites),
            )
        )
        for question in questions
    ]
    overview = statistics.question_bank_overview(questions)
    return QuestionBankOut(
        questions=rows,
        overview=QuestionBankOverviewOut(
            total_questions=overview.total_questions,
            sections=overview.sections,
            subsections=overview.subsections,
            tags=overview.tags,
        ),
    )


def get_question(db: Session, user_id: UUID, question_id: int) -> QuestionDetailOut:
    """Single question with metadata, the user's stats and favorite flag."""
    questions = load_questions(db, QuestionFilters(question_id=question_id))
    if not questions:
        raise NotFoundError("Question", question_id)
    question = questions[0]
    responses = responses_for_questions(db, user_id, [question.id])
    favorites = favorites_for_questions(db, user_id, [question.id])

    return QuestionDetailOut(
        **_row(question, responses, statistics.favorite_flag(question, favorites)),
        prompt=question.prompt,
        explanation=question.explanation,
        explanation_md=question.explanation_md,
        options=question.options,
        correct_answers=sorted(question.correct_answers),
    )


def _get_or_create(db: Session, cache: dict, model, **lookup):
    key = (model, tuple(sorted(lookup.items())))
    if key in cache:
        return cache[key]
    instance = db.scalar(select(model).filter_by(**lookup))
    if instance is None:
        instance = model(**lookup)
        db.add(instance)
        db.flush()
    cache[key] = instance
    return instance


def import_questions(db: Session, payloads: Iterable[Mapping[str, Any]]) -> list[int]:
    """
    Validate and store questions, creating sections, subsections and tags by name.

    All payloads are validated before anything is written; one malformed
    question rejects the whole batch.

    Returns:
        Ids of the created questions, in input order
    """
    drafts = [parse_question_draft(payload) for payload in payloads]

    cache: dict = {}
    with atomic(db, "import_questions"):
        created = []
        for draft in drafts:
            section = _get_or_create(db, cache, Section, name=draft.section) if draft.section else None
            subsection = None
            if draft.subsection:
                subsection = _get_or_create(
                    db,
                    cache,
                    Subsection,
                    section_id=section.id if section else None,
                    name=draft.subsection,
                )
            question = Question(
                type=draft.type.value,
                title_short=draft.title,
                prompt=draft.prompt,
                explanation=draft.explanation,
                explanation_md=draft.explanation_md,
                options=dict(draft.options),
                correct_answers=sorted(draft.correct_answers),
                section_id=section.id if section else None,
                subsection_id=subsection.id if subsection else None,
            )
            question.tags = [_get_or_create(db, cache, Tag, name=name) for name in draft.tags]
            db.add(question)
            created.append(question)
        db.flush()

    logger.info("Questions imported", extra={"count": len(created)})
    return [question.id for question in created]
