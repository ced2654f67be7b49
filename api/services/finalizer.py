"""
Session finalizer.

Owns the assessment lifecycle of one candidate:

    IN_PROGRESS -> SUBMITTING -> COMPLETED

``submit`` normalizes the answers against the full key, scores them once,
and persists the result, the candidate summary and the progress deletion as a
single unit of work. Timeouts go through the same finalize step as ``submit``,
so a timed-out candidate is scored exactly like one who pressed submit.

The result, candidate and progress repositories must share one session: the
finalizer commits them together.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from api.services.answer_key import AnswerKeyStore
from api.services.marking import (
    MarkingSummary,
    Question,
    coerce_answers,
    normalize_answers,
    score,
)
from api.services.notifications import NullResultNotifier, ResultNotifier
from api.services.progress import ProgressSnapshot, ProgressTracker
from core.errors import SubmissionPersistenceError
from core.locks import InProcessLockRegistry, RedisLockRegistry
from core.utils.datetime import now
from database.repositories import CandidateRepository, ResultRepository

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle state of a candidate's attempt."""

    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SubmissionSummary:
    """What the candidate is shown after submitting."""

    score: int
    correct_count: int
    wrong_count: int
    skipped_count: int
    auto_submitted: bool = False

    @classmethod
    def from_marking(
        cls, marking: MarkingSummary, auto_submitted: bool = False
    ) -> "SubmissionSummary":
        return cls(
            score=marking.percentage,
            correct_count=marking.correct_count,
            wrong_count=marking.wrong_count,
            skipped_count=marking.skipped_count,
            auto_submitted=auto_submitted,
        )


@dataclass(frozen=True)
class SessionStart:
    test_submitted: bool
    progress: ProgressSnapshot


@dataclass(frozen=True)
class ResumeResult:
    progress: ProgressSnapshot
    auto_submitted: bool = False
    summary: Optional[SubmissionSummary] = None


def build_responses(
    answer_key: list[Question],
    answers: Mapping[int, Optional[str]],
    submitted_at: datetime,
) -> list[dict[str, Any]]:
    """Result record responses, one per key question, in key order."""
    timestamp = submitted_at.isoformat()
    return [
        {
            "question_id": question.id,
            "question_text": question.text,
            "answer": answers.get(question.id),
            "timestamp": timestamp,
        }
        for question in answer_key
    ]


class SessionFinalizer:
    """
    Start, resume and finalize candidate attempts.

    Args:
        answer_keys: Answer key store
        progress: Progress tracker
        results: Result record repository
        candidates: Candidate repository
        locks: Per-identity submission lock registry
        notifier: Result notification capability (no-op by default)
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        answer_keys: AnswerKeyStore,
        progress: ProgressTracker,
        results: ResultRepository,
        candidates: CandidateRepository,
        locks: InProcessLockRegistry | RedisLockRegistry,
        notifier: Optional[ResultNotifier] = None,
        clock: Callable[[], datetime] = now,
    ):
        self.answer_keys = answer_keys
        self.progress = progress
        self.results = results
        self.candidates = candidates
        self.locks = locks
        self.notifier = notifier or NullResultNotifier()
        self.clock = clock

    async def session_state(self, identity: str) -> SessionState:
        if await self.locks.is_submitting(identity):
            return SessionState.SUBMITTING
        candidate = await self.candidates.get(identity)
        if candidate is not None and candidate.test_submitted:
            return SessionState.COMPLETED
        return SessionState.IN_PROGRESS

    async def start(self, identity: str, applicant_name: str) -> SessionStart:
        """
        Record the candidate and open their attempt.

        Progress is only created for candidates who have not submitted yet.
        """
        await self.candidates.register(identity, applicant_name, self.clock())
        await self.candidates.commit()

        candidate = await self.candidates.get(identity)
        if candidate is not None and candidate.test_submitted:
            logger.info(f"Candidate {identity} already submitted; no new attempt opened")
            return SessionStart(
                test_submitted=True,
                progress=await self.progress.load_progress(identity),
            )

        snapshot = await self.progress.start(identity)
        return SessionStart(test_submitted=False, progress=snapshot)

    async def autosave(
        self,
        identity: str,
        current_question_index: int,
        time_remaining: int,
        answers: Any,
    ) -> Optional[int]:
        """
        Save progress unless the attempt is already completed.

        Runs under the submission lock so a late autosave can never recreate
        progress for a candidate who just submitted.
        """
        parsed = coerce_answers(answers)
        async with self.locks.hold(identity):
            candidate = await self.candidates.get(identity)
            if candidate is not None and candidate.test_submitted:
                logger.info(f"Ignoring autosave from {identity} after submission")
                return None
            return await self.progress.save_progress(
                identity, current_question_index, time_remaining, parsed
            )

    async def resume(self, identity: str, applicant_name: str) -> ResumeResult:
        """
        Load progress; submit the saved answers when time has run out.

        Expiry is confirmed again under the submission lock, so a manual
        submit that finished first is never overwritten by older saved answers.
        """
        snapshot = await self.progress.load_progress(identity)
        if not snapshot.has_progress or snapshot.time_remaining > 0:
            return ResumeResult(progress=snapshot)

        async with self.locks.hold(identity):
            snapshot = await self.progress.load_progress(identity)
            if not snapshot.has_progress or snapshot.time_remaining > 0:
                return ResumeResult(progress=snapshot)

            logger.info(f"Time expired for {identity}; submitting saved answers")
            async with self.locks.submitting(identity):
                summary = await self._finalize(
                    identity, coerce_answers(snapshot.answers), applicant_name, auto_submitted=True
                )

        await self._notify(identity, applicant_name, summary)
        return ResumeResult(
            progress=ProgressSnapshot(
                has_progress=False,
                current_question_index=0,
                time_remaining=0,
                answers={},
            ),
            auto_submitted=True,
            summary=summary,
        )

    async def submit(
        self,
        identity: str,
        raw_answers: Any,
        applicant_name: str,
    ) -> SubmissionSummary:
        """
        Score and finalize a candidate's attempt.

        Resubmitting overwrites the previous result, so client retries are
        safe.

        Raises:
            AnswerValidationError: Answers are malformed; nothing changed
            AnswerKeyUnavailableError: The key could not be read; nothing written
            ConfigurationError: No answer key is loaded; nothing written
            SubmissionPersistenceError: Scored but not saved; retry is safe
        """
        parsed = coerce_answers(raw_answers)

        async with self.locks.hold(identity), self.locks.submitting(identity):
            summary = await self._finalize(identity, parsed, applicant_name)

        await self._notify(identity, applicant_name, summary)
        return summary

    async def _finalize(
        self,
        identity: str,
        parsed: Mapping[int, Optional[str]],
        applicant_name: str,
        auto_submitted: bool = False,
    ) -> SubmissionSummary:
        # Caller holds the submission lock
        answer_key = await self.answer_keys.get_answer_key()
        answers = normalize_answers(answer_key, parsed)
        marking = score(answer_key, answers)
        summary = SubmissionSummary.from_marking(marking, auto_submitted)
        await self._persist(identity, applicant_name, answer_key, answers, marking, summary)

        logger.info(
            f"Submission finalized for {identity}: score={summary.score} "
            f"correct={summary.correct_count} wrong={summary.wrong_count} "
            f"skipped={summary.skipped_count} auto={auto_submitted}"
        )
        return summary

    async def _persist(
        self,
        identity: str,
        applicant_name: str,
        answer_key: list[Question],
        answers: Mapping[int, Optional[str]],
        marking: MarkingSummary,
        summary: SubmissionSummary,
    ) -> None:
        submitted_at = self.clock()
        try:
            await self.results.upsert(
                identity,
                {
                    "applicant_name": applicant_name,
                    "responses": build_responses(answer_key, answers, submitted_at),
                    "overall_score": marking.percentage,
                    "correct_count": marking.correct_count,
                    "wrong_count": marking.wrong_count,
                    "skipped_count": marking.skipped_count,
                    "completed": True,
                    "assessment_date": submitted_at,
                },
            )
            await self.candidates.record_summary(
                identity,
                applicant_name,
                {
                    "overall_score": marking.percentage,
                    "correct_count": marking.correct_count,
                    "wrong_count": marking.wrong_count,
                    "skipped_count": marking.skipped_count,
                },
                submitted_at,
            )
            await self.progress.clear_progress(identity, commit=False)
            await self.results.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist submission for {identity}", exc_info=True)
            try:
                await self.results.rollback()
            except SQLAlchemyError:
                logger.debug("Rollback after failed submission also failed", exc_info=True)
            raise SubmissionPersistenceError(
                "Submission scored but not saved", summary=summary
            ) from e

    async def _notify(
        self, identity: str, applicant_name: str, summary: SubmissionSummary
    ) -> None:
        try:
            await self.notifier.notify(identity, applicant_name, summary)
        except Exception:
            logger.warning(f"Result notification failed for {identity}", exc_info=True)
