"""Tests for admin operations."""

import pytest
from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import OperationalError

from api.services.admin import AdminService
from core.errors import PersistenceError
from database.repositories import (
    AdminLogRepository,
    CandidateRepository,
    ProgressRepository,
    ResultRepository,
)

ADMIN = "admin@example.com"


@pytest.fixture
def service(db_session):
    return AdminService(
        candidates=CandidateRepository(db_session),
        progress=ProgressRepository(db_session),
        results=ResultRepository(db_session),
        logs=AdminLogRepository(db_session),
    )


async def _candidate(session, email, clock, with_result=True):
    await CandidateRepository(session).register(email, email.split("@")[0], clock())
    await ProgressRepository(session).create_if_absent(email, 600, clock())
    if with_result:
        await ResultRepository(session).upsert(
            email,
            {"applicant_name": email, "responses": [], "completed": True,
             "assessment_date": clock()},
        )
    await session.commit()


class TestDeleteUser:
    async def test_cascades_to_progress_and_results(self, service, db_session, clock):
        await _candidate(db_session, "alice@example.com", clock)

        assert await service.delete_user(ADMIN, "alice@example.com") is True

        assert await CandidateRepository(db_session).get("alice@example.com") is None
        assert await ProgressRepository(db_session).get("alice@example.com") is None
        assert await ResultRepository(db_session).get("alice@example.com") is None

    async def test_records_admin_log(self, service, db_session, clock):
        await _candidate(db_session, "alice@example.com", clock)
        await service.delete_user(ADMIN, "alice@example.com")

        logs = await service.list_logs()
        assert [(log.email, log.status) for log in logs] == [
            (ADMIN, "Deleted user alice@example.com")
        ]

    async def test_unknown_user(self, service):
        assert await service.delete_user(ADMIN, "ghost@example.com") is False
        assert await service.list_logs() == []


class TestBulkDelete:
    async def test_reports_each_email(self, service, db_session, clock):
        await _candidate(db_session, "a@example.com", clock)
        await _candidate(db_session, "b@example.com", clock, with_result=False)

        outcomes = await service.bulk_delete_users(
            ADMIN, ["a@example.com", "b@example.com", "ghost@example.com", "a@example.com"]
        )

        assert outcomes == [
            {"email": "a@example.com", "deleted": True, "error": None},
            {"email": "b@example.com", "deleted": True, "error": None},
            {"email": "ghost@example.com", "deleted": False, "error": None},
        ]

    async def test_one_failure_does_not_stop_the_rest(self, service, db_session, clock):
        await _candidate(db_session, "a@example.com", clock)
        await _candidate(db_session, "b@example.com", clock)

        original = CandidateRepository.delete

        async def flaky_delete(self, email):
            if email == "a@example.com":
                raise OperationalError("DELETE", {}, Exception("locked"))
            return await original(self, email)

        with patch.object(CandidateRepository, "delete", flaky_delete):
            outcomes = await service.bulk_delete_users(ADMIN, ["a@example.com", "b@example.com"])

        assert outcomes[0] == {"email": "a@example.com", "deleted": False, "error": "Delete failed"}
        assert outcomes[1]["deleted"] is True
        assert await CandidateRepository(db_session).get("a@example.com") is not None


class TestListing:
    async def test_list_users_and_results(self, service, db_session, clock):
        await _candidate(db_session, "a@example.com", clock)
        clock.advance(60)
        await _candidate(db_session, "b@example.com", clock)

        users, total = await service.list_users(0, 10)
        assert total == 2
        assert [u.email for u in users] == ["b@example.com", "a@example.com"]

        results, total = await service.list_results(0, 1)
        assert total == 2
        assert len(results) == 1

    async def test_record_access(self, service):
        entry = await service.record_access(ADMIN)
        assert entry.status == "Authorized Access"
        assert [log.id for log in await service.list_logs()] == [entry.id]

    async def test_delete_log(self, service):
        entry = await service.record_access(ADMIN)
        assert await service.delete_log(entry.id) is True
        assert await service.delete_log(entry.id) is False


class TestCommitFailure:
    async def test_commit_failure_raises_persistence_error(self, service):
        with patch.object(
            AdminLogRepository,
            "commit",
            AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("down"))),
        ):
            with pytest.raises(PersistenceError):
                await service.record_access(ADMIN)
