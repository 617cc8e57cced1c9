"""Database models."""

# Import all models here so metadata.create_all sees every table
from quizbank.models.favorite import Favorite
from quizbank.models.question import Question, QuestionType, Section, Subsection, Tag, question_tags
from quizbank.models.response import UserResponse
from quizbank.models.test import Test, TestQuestion

__all__ = [
    "Favorite",
    "Question",
    "QuestionType",
    "Section",
    "Subsection",
    "Tag",
    "question_tags",
    "UserResponse",
    "Test",
    "TestQuestion",
]
