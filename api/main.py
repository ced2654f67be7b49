"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.locks import close_submission_locks
from database.engine import AsyncSessionLocal, init_db, close_db
from database.repositories import QuestionRepository
from api.routes import health
from api.routes.v1 import admin, assessment
from api.services.answer_key import AnswerKeyStore

from core.middleware import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    StructuredLoggingMiddleware,
    setup_logging,
)

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


async def seed_questions() -> int:
    """Load the questions file into an empty answer key table."""
    async with AsyncSessionLocal() as session:
        store = AnswerKeyStore(QuestionRepository(session))
        return await store.seed_if_empty(settings.questions_file)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await init_db()
    if settings.seed_questions_on_startup:
        await seed_questions()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await close_submission_locks()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Timed multiple-choice assessments with server-side marking",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Setup error handlers (before middleware)
setup_error_handlers(app, debug=settings.debug)

# The last middleware added is the outermost: CORS wraps logging, which wraps
# error handling
# 1. Error handling (innermost, turns escaped errors into responses logging can see)
app.add_middleware(
    ErrorHandlingMiddleware,
    debug=settings.debug,
)

# 2. Structured request logging
app.add_middleware(
    StructuredLoggingMiddleware,
    log_request_body=settings.log_request_body,
    log_response_body=settings.log_response_body,
    max_body_size=settings.log_max_body_size,
)

# 3. CORS (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])

app.include_router(
    assessment.router,
    prefix=f"{settings.api_v1_prefix}/assessment",
    tags=["Assessment"],
)
app.include_router(
    admin.router,
    prefix=f"{settings.api_v1_prefix}/admin",
    tags=["Admin"],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
