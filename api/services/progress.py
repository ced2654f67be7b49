"""
Progress tracker.

Keeps a candidate's resumable in-flight state. Remaining time is recomputed
from ``last_updated`` on every read, so a disconnect never buys extra time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.utils.datetime import now, seconds_between
from database.models import UserProgress
from database.repositories import ProgressRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressSnapshot:
    """What a candidate resumes from."""

    has_progress: bool
    current_question_index: int
    time_remaining: int
    answers: dict[int, Optional[str]] = field(default_factory=dict)


def encode_answers(answers: Mapping[int, Optional[str]]) -> dict[str, Optional[str]]:
    """JSON object keys are strings; question ids are ints."""
    return {str(question_id): answer for question_id, answer in answers.items()}


def decode_answers(stored: Mapping[str, Optional[str]]) -> dict[int, Optional[str]]:
    decoded = {}
    for key, answer in (stored or {}).items():
        try:
            decoded[int(key)] = answer
        except (TypeError, ValueError):
            logger.debug(f"Dropping stored answer with non-integer key {key!r}")
    return decoded


class ProgressTracker:
    """
    Save, load and clear Candidate Progress.

    Args:
        repository: Progress repository bound to the request's session
        duration_seconds: Total assessment duration
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        repository: ProgressRepository,
        duration_seconds: int,
        clock: Callable[[], datetime] = now,
    ):
        self.repository = repository
        self.duration_seconds = duration_seconds
        self.clock = clock

    def _remaining(self, record: UserProgress, at: datetime) -> int:
        elapsed = seconds_between(record.last_updated, at)
        return max(0, min(record.time_remaining, self.duration_seconds) - elapsed)

    def _snapshot(self, record: UserProgress, at: datetime) -> ProgressSnapshot:
        return ProgressSnapshot(
            has_progress=True,
            current_question_index=record.current_question_index,
            time_remaining=self._remaining(record, at),
            answers=decode_answers(record.answers),
        )

    def _empty(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            has_progress=False,
            current_question_index=0,
            time_remaining=self.duration_seconds,
            answers={},
        )

    async def start(self, identity: str) -> ProgressSnapshot:
        """Create progress with defaults unless the candidate already has some."""
        started_at = self.clock()
        await self.repository.create_if_absent(
            identity, self.duration_seconds, started_at
        )
        await self.repository.commit()
        record = await self.repository.get(identity)
        return self._snapshot(record, started_at) if record else self._empty()

    async def save_progress(
        self,
        identity: str,
        current_question_index: int,
        time_remaining: int,
        answers: Mapping[int, Optional[str]],
    ) -> Optional[int]:
        """
        Upsert progress for ``identity``.

        The stored time never exceeds what the server already computed for
        this candidate, whatever the client reports.

        Returns:
            The stored remaining time, or None when the save failed. Failures
            are logged and swallowed: one lost autosave must not interrupt
            the candidate.
        """
        at = self.clock()
        try:
            remaining = min(max(0, time_remaining), self.duration_seconds)
            existing = await self.repository.get(identity)
            if existing is not None:
                remaining = min(remaining, self._remaining(existing, at))

            await self.repository.upsert(
                identity,
                current_question_index=max(0, current_question_index),
                time_remaining=remaining,
                answers=encode_answers(answers),
                last_updated=at,
            )
            await self.repository.commit()
            return remaining
        except SQLAlchemyError:
            logger.error(f"Autosave failed for {identity}", exc_info=True)
            try:
                await self.repository.rollback()
            except SQLAlchemyError:
                logger.debug("Rollback after failed autosave also failed", exc_info=True)
            return None

    async def load_progress(self, identity: str) -> ProgressSnapshot:
        """Load progress with remaining time adjusted for elapsed wall time."""
        record = await self.repository.get(identity)
        if record is None:
            return self._empty()
        return self._snapshot(record, self.clock())

    async def clear_progress(self, identity: str, commit: bool = True) -> None:
        """
        Delete progress; a no-op when there is none.

        Pass ``commit=False`` to leave the delete inside the caller's unit of
        work.
        """
        await self.repository.delete(identity)
        if commit:
            await self.repository.commit()
