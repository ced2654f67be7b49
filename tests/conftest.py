"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time, so the environment is set before any
# application module is imported.
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ASSESSMENT_DURATION_SECONDS", "600")
os.environ.setdefault("SEED_QUESTIONS_ON_STARTUP", "false")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.pop("REDIS_URL", None)

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import database.models  # noqa: F401
from api.main import app
from api.services.answer_key import question_to_row
from api.services.marking import Question
from core.security import create_access_token
from database.engine import Base, get_db
from database.models.users import UserRole
from database.repositories import QuestionRepository


SAMPLE_QUESTIONS = [
    Question(id=1, text="2 + 2?", options=("3", "4", "5"), correct_answer="4"),
    Question(id=2, text="Capital of France?", options=("Paris", "Rome"), correct_answer="Paris"),
    Question(id=3, text="Largest planet?", options=("Mars", "Jupiter"), correct_answer="Jupiter"),
    Question(id=4, text="H2O is?", options=("Water", "Salt"), correct_answer="Water"),
]


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite database, one per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded_questions(session_factory):
    """Load SAMPLE_QUESTIONS as the answer key."""
    async with session_factory() as session:
        repository = QuestionRepository(session)
        await repository.replace_all([question_to_row(q) for q in SAMPLE_QUESTIONS])
        await repository.commit()
    return SAMPLE_QUESTIONS


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app with the test database wired in."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(email: str, name: str = "Candidate", role: UserRole = UserRole.CANDIDATE) -> dict:
    token = create_access_token(email, name=name, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_headers():
    return auth_headers


@pytest.fixture
def candidate_headers():
    return auth_headers("alice@example.com", name="Alice")


@pytest.fixture
def admin_headers():
    return auth_headers("admin@example.com", name="Admin", role=UserRole.ADMIN)
