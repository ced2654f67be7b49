"""
Administrative service functions.

Pass-through reads and deletes over candidate records for the reporting
surface. Every mutation is written to the admin audit log.
"""

from pathlib import Path
from typing import Any
import logging

from sqlalchemy.exc import SQLAlchemyError

from api.services.answer_key import AnswerKeyStore, load_question_file
from core.errors import PersistenceError
from database.models import AdminLog, ResultRecord, User
from database.repositories import (
    AdminLogRepository,
    CandidateRepository,
    ProgressRepository,
    ResultRepository,
)

logger = logging.getLogger(__name__)


class AdminService:
    """Admin operations; all repositories share one session."""

    def __init__(
        self,
        candidates: CandidateRepository,
        progress: ProgressRepository,
        results: ResultRepository,
        logs: AdminLogRepository,
    ):
        self.candidates = candidates
        self.progress = progress
        self.results = results
        self.logs = logs

    async def _commit(self, action: str) -> None:
        try:
            await self.logs.commit()
        except SQLAlchemyError as e:
            await self.logs.rollback()
            logger.error(f"Admin action failed: {action}", exc_info=True)
            raise PersistenceError(f"Failed to {action}") from e

    async def list_users(self, offset: int, limit: int) -> tuple[list[User], int]:
        return await self.candidates.list_page(offset, limit), await self.candidates.count()

    async def list_results(self, offset: int, limit: int) -> tuple[list[ResultRecord], int]:
        return await self.results.list_page(offset, limit), await self.results.count()

    async def list_logs(self) -> list[AdminLog]:
        return await self.logs.list_all()

    async def record_access(self, admin_email: str) -> AdminLog:
        """Audit an admin opening the console."""
        entry = await self.logs.add(admin_email, "Authorized Access")
        await self._commit("record admin access")
        return entry

    async def _delete_candidate(self, email: str) -> bool:
        deleted_user = await self.candidates.delete(email)
        deleted_progress = await self.progress.delete(email)
        deleted_results = await self.results.delete(email)
        return deleted_user or deleted_progress or deleted_results

    async def delete_user(self, admin_email: str, email: str) -> bool:
        """
        Delete a candidate with their progress and results.

        Returns:
            True if anything was deleted
        """
        deleted = await self._delete_candidate(email)
        if deleted:
            await self.logs.add(admin_email, f"Deleted user {email}")
        await self._commit(f"delete user {email}")
        logger.info(f"Admin {admin_email} deleted user {email}: {deleted}")
        return deleted

    async def bulk_delete_users(
        self, admin_email: str, emails: list[str]
    ) -> list[dict[str, Any]]:
        """
        Delete several candidates; one failure does not stop the rest.

        Returns:
            One ``{"email", "deleted", "error"}`` entry per requested email
        """
        outcomes = []
        for email in dict.fromkeys(emails):
            try:
                deleted = await self._delete_candidate(email)
                if deleted:
                    await self.logs.add(admin_email, f"Deleted user {email}")
                await self.logs.commit()
                outcomes.append({"email": email, "deleted": deleted, "error": None})
            except SQLAlchemyError:
                await self.logs.rollback()
                logger.error(f"Bulk delete failed for {email}", exc_info=True)
                outcomes.append({"email": email, "deleted": False, "error": "Delete failed"})
        return outcomes

    async def delete_result(self, admin_email: str, email: str) -> bool:
        deleted = await self.results.delete(email)
        if deleted:
            await self.logs.add(admin_email, f"Deleted result for {email}")
        await self._commit(f"delete result for {email}")
        return deleted

    async def delete_log(self, log_id: int) -> bool:
        deleted = await self.logs.delete(log_id)
        await self._commit(f"delete log entry {log_id}")
        return deleted

    async def reseed_questions(
        self, admin_email: str, answer_keys: AnswerKeyStore, path: Path
    ) -> int:
        """Replace the answer key from the questions file."""
        count = await answer_keys.reseed(load_question_file(path))
        await self.logs.add(admin_email, f"Reseeded {count} questions")
        await self._commit("record reseed")
        return count
