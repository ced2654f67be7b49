"""Administrative endpoints. Every route requires the admin role."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_admin_service, get_answer_key_store, require_admin
from api.schemas.admin import (
    AdminLogResponse,
    BulkDeleteItem,
    BulkDeleteRequest,
    BulkDeleteResponse,
    CandidateSummaryResponse,
    ReseedResponse,
    ResultRecordResponse,
)
from api.schemas.common import MessageResponse, PaginatedResponse, PaginationParams
from api.services.admin import AdminService
from api.services.answer_key import AnswerKeyStore
from core.config import settings
from core.security import Identity

logger = logging.getLogger(__name__)

router = APIRouter()


def _pagination(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


@router.post(
    "/access",
    response_model=AdminLogResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_access(
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> AdminLogResponse:
    """Record an authorized admin access in the audit log."""
    entry = await service.record_access(admin.email)
    return AdminLogResponse.model_validate(entry)


@router.get("/users", response_model=PaginatedResponse[CandidateSummaryResponse])
async def list_users(
    pagination: PaginationParams = Depends(_pagination),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> PaginatedResponse[CandidateSummaryResponse]:
    """Candidates with their score summaries, most recent login first."""
    users, total = await service.list_users(pagination.offset, pagination.page_size)
    return PaginatedResponse[CandidateSummaryResponse].create(
        items=[CandidateSummaryResponse.model_validate(u) for u in users],
        total=total,
        pagination=pagination,
    )


@router.delete("/users/{email}", response_model=MessageResponse)
async def delete_user(
    email: str,
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> MessageResponse:
    """Delete a candidate along with their progress and result."""
    if not await service.delete_user(admin.email, email.lower()):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return MessageResponse(message=f"Deleted {email.lower()}")


@router.post("/users/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_users(
    request: BulkDeleteRequest,
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> BulkDeleteResponse:
    """
    Delete several candidates.

    Each email is handled on its own; the response reports every outcome.
    """
    outcomes = await service.bulk_delete_users(admin.email, request.emails)
    items = [BulkDeleteItem(**outcome) for outcome in outcomes]
    deleted = sum(1 for item in items if item.deleted)
    failed = sum(1 for item in items if item.error)
    logger.info(f"Admin {admin.email} bulk delete: {deleted} deleted, {failed} failed")
    return BulkDeleteResponse(results=items, deleted=deleted, failed=failed)


@router.get("/results", response_model=PaginatedResponse[ResultRecordResponse])
async def list_results(
    pagination: PaginationParams = Depends(_pagination),
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> PaginatedResponse[ResultRecordResponse]:
    records, total = await service.list_results(pagination.offset, pagination.page_size)
    return PaginatedResponse[ResultRecordResponse].create(
        items=[ResultRecordResponse.model_validate(r) for r in records],
        total=total,
        pagination=pagination,
    )


@router.delete("/results/{email}", response_model=MessageResponse)
async def delete_result(
    email: str,
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> MessageResponse:
    if not await service.delete_result(admin.email, email.lower()):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Result not found",
        )
    return MessageResponse(message=f"Deleted result for {email.lower()}")


@router.get("/admin-logs", response_model=list[AdminLogResponse])
async def list_admin_logs(
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> list[AdminLogResponse]:
    """Audit entries, newest first."""
    return [AdminLogResponse.model_validate(e) for e in await service.list_logs()]


@router.delete("/admin-logs/{log_id}", response_model=MessageResponse)
async def delete_admin_log(
    log_id: int,
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> MessageResponse:
    if not await service.delete_log(log_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Log entry not found",
        )
    return MessageResponse(message=f"Deleted log entry {log_id}")


@router.post("/questions/reseed", response_model=ReseedResponse)
async def reseed_questions(
    admin: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
    answer_keys: AnswerKeyStore = Depends(get_answer_key_store),
) -> ReseedResponse:
    """Replace the answer key with the contents of the questions file."""
    count = await service.reseed_questions(
        admin.email, answer_keys, settings.questions_file
    )
    return ReseedResponse(questions_loaded=count)
