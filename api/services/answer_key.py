"""
Answer key store.

Questions arrive from JSON in two historical shapes: the legacy one
(``question``/``answer``) and the canonical one (``text``/``correct_answer``).
Both are accepted here, at the ingestion boundary, and converted into the
frozen ``Question`` type the marking engine consumes.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, Discriminator, Field, Tag, TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from api.services.marking import Question
from core.errors import AnswerKeyUnavailableError, ConfigurationError
from database.models import QuestionRow
from database.repositories import QuestionRepository

logger = logging.getLogger(__name__)


class _QuestionRecordBase(BaseModel):
    id: int
    options: list[str] = Field(default_factory=list)
    category: str = "general"
    weight: int = 1
    explanation: Optional[str] = None


class CanonicalQuestionRecord(_QuestionRecordBase):
    """Question as stored by this service."""

    text: str
    correct_answer: str

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            text=self.text,
            options=tuple(self.options),
            correct_answer=self.correct_answer,
            category=self.category,
            weight=self.weight,
            explanation=self.explanation,
        )


class LegacyQuestionRecord(_QuestionRecordBase):
    """Question in the legacy ``question``/``answer`` layout."""

    question: str
    answer: str

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            text=self.question,
            options=tuple(self.options),
            correct_answer=self.answer,
            category=self.category,
            weight=self.weight,
            explanation=self.explanation,
        )


def _record_shape(value: Any) -> Optional[str]:
    # None makes pydantic report a missing tag instead of guessing
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if not isinstance(value, dict):
        return None
    return "legacy" if "question" in value or "answer" in value else "canonical"


QuestionRecord = Annotated[
    Union[
        Annotated[CanonicalQuestionRecord, Tag("canonical")],
        Annotated[LegacyQuestionRecord, Tag("legacy")],
    ],
    Discriminator(_record_shape),
]

_records_adapter = TypeAdapter(list[QuestionRecord])


def parse_question_records(raw: Any) -> list[Question]:
    """
    Validate raw question records and convert them to ``Question``.

    Args:
        raw: Decoded JSON (a list of question objects)

    Returns:
        Questions sorted by id

    Raises:
        ConfigurationError: If the records are malformed or ids repeat
    """
    try:
        records = _records_adapter.validate_python(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid question records: {e.error_count()} error(s)") from e

    questions = sorted((record.to_question() for record in records), key=lambda q: q.id)
    ids = [q.id for q in questions]
    if len(ids) != len(set(ids)):
        raise ConfigurationError("Question ids must be unique")
    return questions


def load_question_file(path: Path) -> list[Question]:
    """Read and parse a questions JSON file."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Questions file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Questions file is not valid JSON: {path}") from e
    return parse_question_records(raw)


def question_from_row(row: QuestionRow) -> Question:
    return Question(
        id=row.id,
        text=row.text,
        options=tuple(row.options or ()),
        correct_answer=row.correct_answer,
        category=row.category,
        weight=row.weight,
        explanation=row.explanation,
    )


def question_to_row(question: Question) -> dict[str, Any]:
    return {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "category": question.category,
        "correct_answer": question.correct_answer,
        "weight": question.weight,
        "explanation": question.explanation,
    }


class AnswerKeyStore:
    """Read access to the answer key, plus the administrative reseed."""

    def __init__(self, repository: QuestionRepository):
        self.repository = repository

    async def get_answer_key(self) -> list[Question]:
        """
        Load the full answer key in id order.

        Raises:
            AnswerKeyUnavailableError: If the store cannot be read
            ConfigurationError: If no questions are loaded
        """
        try:
            rows = await self.repository.list_ordered()
        except SQLAlchemyError as e:
            logger.error("Failed to load answer key", exc_info=True)
            raise AnswerKeyUnavailableError("Answer key store unreachable") from e

        if not rows:
            raise ConfigurationError("Answer key is empty")
        return [question_from_row(row) for row in rows]

    async def list_questions(self) -> list[Question]:
        """Questions for display; an unconfigured key yields an empty list."""
        try:
            return await self.get_answer_key()
        except ConfigurationError:
            logger.warning("Questions requested but the answer key is empty")
            return []

    async def reseed(self, questions: list[Question]) -> int:
        """Replace the whole answer key."""
        try:
            count = await self.repository.replace_all(
                [question_to_row(q) for q in questions]
            )
            await self.repository.commit()
        except SQLAlchemyError as e:
            await self.repository.rollback()
            raise AnswerKeyUnavailableError("Failed to replace answer key") from e

        logger.info(f"Answer key reseeded with {count} questions")
        return count

    async def seed_if_empty(self, path: Path) -> int:
        """Load questions from ``path`` when the table is empty."""
        if await self.repository.count() > 0:
            return 0
        if not Path(path).exists():
            logger.warning(f"No answer key loaded and {path} does not exist")
            return 0
        return await self.reseed(load_question_file(path))
