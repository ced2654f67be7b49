"""Candidate-facing assessment schemas."""

from typing import Optional
from pydantic import BaseModel, Field

from api.services.finalizer import SubmissionSummary
from api.services.marking import Question
from api.services.progress import ProgressSnapshot, encode_answers


# Question id (JSON object keys are strings) -> selected option or null
AnswerMap = dict[str, Optional[str]]


class QuestionResponse(BaseModel):
    """A question as served to candidates. Never carries the answer."""

    id: int
    text: str
    options: list[str]
    category: str

    @classmethod
    def from_question(cls, question: Question) -> "QuestionResponse":
        return cls(
            id=question.id,
            text=question.text,
            options=list(question.options),
            category=question.category,
        )


class SessionStartResponse(BaseModel):
    test_submitted: bool
    has_progress: bool
    current_question_index: int
    time_remaining: int


class SaveProgressRequest(BaseModel):
    """Autosave payload."""

    current_question_index: int = Field(..., ge=0)
    time_remaining: int = Field(..., ge=0, description="Client countdown, seconds")
    answers: AnswerMap = Field(default_factory=dict)


class SaveProgressResponse(BaseModel):
    saved: bool
    time_remaining: Optional[int] = Field(
        None, description="Remaining seconds as stored by the server"
    )


class SubmitRequest(BaseModel):
    answers: AnswerMap = Field(default_factory=dict)


class SubmitResponse(BaseModel):
    score: int = Field(..., ge=0, le=100)
    correct_count: int
    wrong_count: int
    skipped_count: int

    @classmethod
    def from_summary(cls, summary: SubmissionSummary) -> "SubmitResponse":
        return cls(
            score=summary.score,
            correct_count=summary.correct_count,
            wrong_count=summary.wrong_count,
            skipped_count=summary.skipped_count,
        )


class ProgressResponse(BaseModel):
    has_progress: bool
    current_question_index: int
    time_remaining: int
    answers: AnswerMap
    auto_submitted: bool = False
    result: Optional[SubmitResponse] = None

    @classmethod
    def from_snapshot(
        cls,
        snapshot: ProgressSnapshot,
        auto_submitted: bool = False,
        summary: Optional[SubmissionSummary] = None,
    ) -> "ProgressResponse":
        return cls(
            has_progress=snapshot.has_progress,
            current_question_index=snapshot.current_question_index,
            time_remaining=snapshot.time_remaining,
            answers=encode_answers(snapshot.answers),
            auto_submitted=auto_submitted,
            result=SubmitResponse.from_summary(summary) if summary else None,
        )
