"""
Marking engine.

Pure functions: no I/O, no clock, no logging. Given the same answer key and
submitted answers they always return the same summary.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Sequence

from core.errors import AnswerValidationError


@dataclass(frozen=True)
class Question:
    """Normalized answer key entry used by the core."""

    id: int
    text: str
    options: tuple[str, ...]
    correct_answer: str
    category: str = "general"
    weight: int = 1
    explanation: Optional[str] = None


@dataclass(frozen=True)
class MarkingSummary:
    """Outcome of marking one candidate's answers."""

    correct_count: int
    wrong_count: int
    skipped_count: int
    percentage: int

    @property
    def total(self) -> int:
        return self.correct_count + self.wrong_count + self.skipped_count

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def coerce_answers(raw: Any) -> dict[int, Optional[str]]:
    """
    Validate a raw answer map and key it by integer question id.

    Keys that are not integers cannot name a question and are dropped.

    Raises:
        AnswerValidationError: If ``raw`` is not a mapping or a value is
            neither a string nor None
    """
    if not isinstance(raw, Mapping):
        raise AnswerValidationError("Answers must be a mapping of question id to answer")

    answers: dict[int, Optional[str]] = {}
    for key, value in raw.items():
        if value is not None and not isinstance(value, str):
            raise AnswerValidationError(f"Answer for question {key} must be a string or null")
        try:
            question_id = int(key)
        except (TypeError, ValueError):
            continue
        answers[question_id] = value
    return answers


def is_skipped(answer: Optional[str]) -> bool:
    """An answer is skipped when it is missing, None, or blank."""
    return answer is None or not answer.strip()


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_answers(
    answer_key: Sequence[Question],
    submitted: Mapping[int, Optional[str]],
) -> dict[int, Optional[str]]:
    """
    Build the complete answer domain for an answer key.

    Every question in the key gets an entry, ``None`` where the candidate
    never answered. Ids that are not in the key are dropped.

    Args:
        answer_key: Questions in key order
        submitted: Candidate answers keyed by question id

    Returns:
        Mapping in key order covering exactly the key's question ids
    """
    return {question.id: submitted.get(question.id) for question in answer_key}


def score(
    answer_key: Sequence[Question],
    submitted: Mapping[int, Optional[str]],
) -> MarkingSummary:
    """
    Mark submitted answers against the answer key.

    A question is skipped when its answer is absent, None or whitespace,
    correct when the trimmed answer equals ``correct_answer`` exactly (case
    sensitive), and wrong otherwise. The percentage is the share of correct
    answers rounded half up; an empty key scores 0.

    Args:
        answer_key: Questions to mark, iterated in the given order
        submitted: Candidate answers keyed by question id

    Returns:
        MarkingSummary with counts and percentage
    """
    correct = wrong = skipped = 0

    for question in answer_key:
        answer = submitted.get(question.id)
        if is_skipped(answer):
            skipped += 1
        elif answer.strip() == question.correct_answer:
            correct += 1
        else:
            wrong += 1

    total = len(answer_key)
    if total == 0:
        return MarkingSummary(0, 0, 0, 0)

    percentage = round_half_up(Decimal(correct * 100) / Decimal(total))
    return MarkingSummary(
        correct_count=correct,
        wrong_count=wrong,
        skipped_count=skipped,
        percentage=percentage,
    )
