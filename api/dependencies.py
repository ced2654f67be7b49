"""FastAPI dependencies for dependency injection."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.admin import AdminService
from api.services.answer_key import AnswerKeyStore
from api.services.finalizer import SessionFinalizer
from api.services.progress import ProgressTracker
from core.config import settings
from core.locks import get_submission_locks
from core.security import (
    Identity,
    TokenExpiredError,
    TokenInvalidError,
    identity_from_payload,
    verify_jwt_token,
)
from database.engine import get_db
from database.repositories import (
    AdminLogRepository,
    CandidateRepository,
    ProgressRepository,
    QuestionRepository,
    ResultRepository,
)


security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    """Require a valid bearer token and return the identity it carries."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_jwt_token(credentials.credentials)
        return identity_from_payload(payload)
    except TokenExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except TokenInvalidError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Require the admin role."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity


def get_answer_key_store(db: AsyncSession = Depends(get_db)) -> AnswerKeyStore:
    return AnswerKeyStore(QuestionRepository(db))


def get_session_finalizer(db: AsyncSession = Depends(get_db)) -> SessionFinalizer:
    """Finalizer whose stores all share the request's database session."""
    return SessionFinalizer(
        answer_keys=AnswerKeyStore(QuestionRepository(db)),
        progress=ProgressTracker(
            ProgressRepository(db),
            duration_seconds=settings.assessment_duration_seconds,
        ),
        results=ResultRepository(db),
        candidates=CandidateRepository(db),
        locks=get_submission_locks(),
    )


def get_admin_service(db: AsyncSession = Depends(get_db)) -> AdminService:
    return AdminService(
        candidates=CandidateRepository(db),
        progress=ProgressRepository(db),
        results=ResultRepository(db),
        logs=AdminLogRepository(db),
    )
