"""Candidate assessment endpoints."""

import logging
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from api.dependencies import (
    get_answer_key_store,
    get_current_identity,
    get_session_finalizer,
)
from api.schemas.assessment import (
    ProgressResponse,
    QuestionResponse,
    SaveProgressRequest,
    SaveProgressResponse,
    SessionStartResponse,
    SubmitRequest,
    SubmitResponse,
)
from api.schemas.common import ErrorResponse
from api.services.answer_key import AnswerKeyStore
from api.services.finalizer import SessionFinalizer, SessionState
from core.security import Identity

logger = logging.getLogger(__name__)

router = APIRouter()


class SessionStateResponse(BaseModel):
    state: SessionState


@router.post(
    "/session",
    response_model=SessionStartResponse,
    summary="Start or resume an attempt",
)
async def start_session(
    identity: Identity = Depends(get_current_identity),
    finalizer: SessionFinalizer = Depends(get_session_finalizer),
) -> SessionStartResponse:
    """
    Record the candidate's login and open their attempt.

    Candidates who already submitted get ``test_submitted=true`` and no new
    attempt. Otherwise the countdown starts on the first call and later calls
    return the saved position.
    """
    started = await finalizer.start(identity.email, identity.name)
    return SessionStartResponse(
        test_submitted=started.test_submitted,
        has_progress=started.progress.has_progress,
        current_question_index=started.progress.current_question_index,
        time_remaining=started.progress.time_remaining,
    )


@router.get("/state", response_model=SessionStateResponse)
async def get_session_state(
    identity: Identity = Depends(get_current_identity),
    finalizer: SessionFinalizer = Depends(get_session_finalizer),
) -> SessionStateResponse:
    return SessionStateResponse(state=await finalizer.session_state(identity.email))


@router.get("/questions", response_model=list[QuestionResponse])
async def list_questions(
    identity: Identity = Depends(get_current_identity),
    answer_keys: AnswerKeyStore = Depends(get_answer_key_store),
) -> list[QuestionResponse]:
    """Questions in display order, without correct answers."""
    questions = await answer_keys.list_questions()
    return [QuestionResponse.from_question(q) for q in questions]


@router.post("/progress", response_model=SaveProgressResponse)
async def save_progress(
    request: SaveProgressRequest,
    identity: Identity = Depends(get_current_identity),
    finalizer: SessionFinalizer = Depends(get_session_finalizer),
) -> SaveProgressResponse:
    """
    Autosave the candidate's position, countdown and answers.

    Failures are reported as ``saved=false`` rather than an error; the
    client keeps its local state and tries again on the next tick.
    """
    stored = await finalizer.autosave(
        identity.email,
        request.current_question_index,
        request.time_remaining,
        request.answers,
    )
    return SaveProgressResponse(saved=stored is not None, time_remaining=stored)


@router.get("/progress", response_model=ProgressResponse)
async def load_progress(
    identity: Identity = Depends(get_current_identity),
    finalizer: SessionFinalizer = Depends(get_session_finalizer),
) -> ProgressResponse:
    """
    Load saved progress with the countdown adjusted for elapsed time.

    When the countdown has reached zero the saved answers are submitted and
    the result is returned with ``auto_submitted=true``.
    """
    resumed = await finalizer.resume(identity.email, identity.name)
    return ProgressResponse.from_snapshot(
        resumed.progress,
        auto_submitted=resumed.auto_submitted,
        summary=resumed.summary,
    )


@router.post(
    "/submit",
    response_model=SubmitResponse,
    status_code=status.HTTP_200_OK,
    responses={
        422: {"model": ErrorResponse, "description": "Malformed answers"},
        503: {"model": ErrorResponse, "description": "Answer key or storage unavailable"},
    },
)
async def submit_assessment(
    request: SubmitRequest,
    identity: Identity = Depends(get_current_identity),
    finalizer: SessionFinalizer = Depends(get_session_finalizer),
) -> SubmitResponse:
    """
    Score and finalize the attempt.

    Submitting again replaces the previous result, so retrying after a
    retryable error is safe.
    """
    summary = await finalizer.submit(identity.email, request.answers, identity.name)
    return SubmitResponse.from_summary(summary)
