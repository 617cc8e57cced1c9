"""Test seed helpers for creating test data."""

import uuid
from typing import Any

from sqlalchemy.orm import Session

from quizbank.models.question import Question, QuestionType, Section, Subsection, Tag


def create_section(db: Session, name: str, subsections: tuple[str, ...] = ()) -> Section:
    section = Section(name=name)
    section.subsections = [Subsection(name=sub) for sub in subsections]
    db.add(section)
    db.flush()
    return section


def create_question(
    db: Session,
    title: str | None = None,
    question_type: QuestionType = QuestionType.SINGLE_SELECT,
    options: dict[str, str] | None = None,
    correct_answers: list[str] | None = None,
    section: Section | None = None,
    subsection: Subsection | None = None,
    tags: list[Tag] | None = None,
    **kwargs: Any,
) -> Question:
    """
    Create a question with deterministic defaults.

    Defaults to a single-select question with options A-D and A correct.
    """
    question = Question(
        type=question_type.value,
        title_short=title,
        prompt=kwargs.pop("prompt", f"Prompt for {title or 'question'}"),
        explanation=kwargs.pop("explanation", "Because."),
        options=options or {"A": "Alpha", "B": "Beta", "C": "Gamma", "D": "Delta"},
        correct_answers=correct_answers or ["A"],
        section_id=section.id if section else None,
        subsection_id=subsection.id if subsection else None,
        **kwargs,
    )
    question.tags = tags or []
    db.add(question)
    db.flush()
    return question


def seed_question_bank(db: Session) -> dict[str, Question]:
    """
    Six questions over two sections.

    - cardio: q1, q2 (single, subsection "valves"), q3 (multi, A+C correct)
    - renal: q4, q5 (single)
    - no section: q6 (single)
    """
    cardio = create_section(db, "Cardiology", ("Valves",))
    renal = create_section(db, "Nephrology")
    valves = cardio.subsections[0]
    high_yield = Tag(name="high-yield")
    db.add(high_yield)
    db.flush()

    questions = {
        "q1": create_question(db, "q1", section=cardio, tags=[high_yield]),
        "q2": create_question(db, "q2", section=cardio, subsection=valves, correct_answers=["B"]),
        "q3": create_question(
            db,
            "q3",
            question_type=QuestionType.MULTI_SELECT,
            section=cardio,
            correct_answers=["A", "C"],
            tags=[high_yield],
        ),
        "q4": create_question(db, "q4", section=renal),
        "q5": create_question(db, "q5", section=renal, correct_answers=["D"]),
        "q6": create_question(db, "q6"),
    }
    db.commit()
    return questions


class FixedPolicy:
    """Selection policy returning a fixed list of ids."""

    def __init__(self, question_ids: list[int]):
        self.question_ids = list(question_ids)

    def select(self, db: Session, user_id: uuid.UUID) -> list[int]:
        return list(self.question_ids)
