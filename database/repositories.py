"""
Repositories over a single ``AsyncSession``.

Repositories never commit on their own: the service that owns the unit of
work decides when to commit or roll back. Per-candidate rows are written with
native ``INSERT ... ON CONFLICT`` upserts so concurrent requests for the same
identity resolve as last-write-wins instead of failing on the unique key.
"""

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.utils.datetime import now
from database.models import AdminLog, QuestionRow, ResultRecord, User, UserProgress


def _insert_for(session: AsyncSession):
    """Return the dialect-specific ``insert`` that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upserts are not supported on {dialect}")
    return insert


class BaseRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _upsert(
        self, model: type, values: dict[str, Any], update_keys: Sequence[str]
    ) -> None:
        dialect_insert = _insert_for(self.session)
        stmt = dialect_insert(model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["email"],
            set_={key: getattr(stmt.excluded, key) for key in update_keys},
        )
        await self.session.execute(stmt)

    async def _get_by_email(self, model: type, email: str):
        result = await self.session.execute(
            select(model)
            .where(model.email == email)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class QuestionRepository(BaseRepository):
    """Answer key rows."""

    async def list_ordered(self) -> list[QuestionRow]:
        result = await self.session.execute(select(QuestionRow).order_by(QuestionRow.id))
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(QuestionRow.id)))
        return result.scalar() or 0

    async def replace_all(self, rows: list[dict[str, Any]]) -> int:
        await self.session.execute(delete(QuestionRow))
        if rows:
            await self.session.execute(insert(QuestionRow), rows)
        return len(rows)


class ProgressRepository(BaseRepository):
    """Candidate progress rows, unique per email."""

    async def get(self, email: str) -> UserProgress | None:
        return await self._get_by_email(UserProgress, email)

    async def upsert(
        self,
        email: str,
        current_question_index: int,
        time_remaining: int,
        answers: dict[str, Any],
        last_updated: datetime,
    ) -> None:
        await self._upsert(
            UserProgress,
            {
                "email": email,
                "current_question_index": current_question_index,
                "time_remaining": time_remaining,
                "answers": answers,
                "start_time": last_updated,
                "last_updated": last_updated,
            },
            update_keys=(
                "current_question_index",
                "time_remaining",
                "answers",
                "last_updated",
            ),
        )

    async def create_if_absent(
        self, email: str, time_remaining: int, started_at: datetime
    ) -> None:
        dialect_insert = _insert_for(self.session)
        stmt = (
            dialect_insert(UserProgress)
            .values(
                email=email,
                current_question_index=0,
                time_remaining=time_remaining,
                answers={},
                start_time=started_at,
                last_updated=started_at,
            )
            .on_conflict_do_nothing(index_elements=["email"])
        )
        await self.session.execute(stmt)

    async def delete(self, email: str) -> bool:
        result = await self.session.execute(
            delete(UserProgress).where(UserProgress.email == email)
        )
        return (result.rowcount or 0) > 0


class ResultRepository(BaseRepository):
    """Finalized results, unique per email."""

    async def get(self, email: str) -> ResultRecord | None:
        return await self._get_by_email(ResultRecord, email)

    async def upsert(self, email: str, values: dict[str, Any]) -> None:
        await self._upsert(
            ResultRecord, {"email": email, **values}, update_keys=tuple(values)
        )

    async def list_page(self, offset: int = 0, limit: int = 20) -> list[ResultRecord]:
        result = await self.session.execute(
            select(ResultRecord)
            .order_by(ResultRecord.assessment_date.desc(), ResultRecord.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(ResultRecord.id)))
        return result.scalar() or 0

    async def delete(self, email: str) -> bool:
        result = await self.session.execute(
            delete(ResultRecord).where(ResultRecord.email == email)
        )
        return (result.rowcount or 0) > 0


class CandidateRepository(BaseRepository):
    """Candidate identity records and their score summary."""

    async def get(self, email: str) -> User | None:
        return await self._get_by_email(User, email)

    async def register(self, email: str, name: str, seen_at: datetime) -> None:
        await self._upsert(
            User,
            {"email": email, "name": name, "last_login": seen_at},
            update_keys=("name", "last_login"),
        )

    async def record_summary(
        self,
        email: str,
        name: str,
        summary: dict[str, int],
        submitted_at: datetime,
    ) -> None:
        await self._upsert(
            User,
            {
                "email": email,
                "name": name,
                "last_login": submitted_at,
                **summary,
                "test_submitted": True,
            },
            update_keys=("last_login", *summary, "test_submitted"),
        )

    async def list_page(self, offset: int = 0, limit: int = 20) -> list[User]:
        result = await self.session.execute(
            select(User)
            .order_by(User.last_login.desc(), User.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(User.id)))
        return result.scalar() or 0

    async def delete(self, email: str) -> bool:
        result = await self.session.execute(delete(User).where(User.email == email))
        return (result.rowcount or 0) > 0


class AdminLogRepository(BaseRepository):
    """Administrative audit trail."""

    async def add(self, email: str, status: str) -> AdminLog:
        entry = AdminLog(email=email, status=status, timestamp=now())
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_all(self) -> list[AdminLog]:
        result = await self.session.execute(
            select(AdminLog).order_by(AdminLog.timestamp.desc(), AdminLog.id.desc())
        )
        return list(result.scalars().all())

    async def delete(self, log_id: int) -> bool:
        result = await self.session.execute(delete(AdminLog).where(AdminLog.id == log_id))
        return (result.rowcount or 0) > 0
