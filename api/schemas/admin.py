"""Administrative API schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class CandidateSummaryResponse(BaseModel):
    """Candidate record with the denormalized score summary."""

    model_config = ConfigDict(from_attributes=True)

    email: str
    name: str
    role: str
    last_login: datetime
    overall_score: int
    correct_count: int
    wrong_count: int
    skipped_count: int
    test_submitted: bool


class ResponseItem(BaseModel):
    question_id: int
    question_text: Optional[str] = None
    answer: Optional[str] = None
    timestamp: Optional[datetime] = None


class ResultRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    applicant_name: str
    responses: list[ResponseItem]
    overall_score: int
    correct_count: int
    wrong_count: int
    skipped_count: int
    completed: bool
    assessment_date: datetime


class AdminLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    status: str
    timestamp: datetime


class BulkDeleteRequest(BaseModel):
    emails: list[EmailStr] = Field(..., min_length=1, max_length=500)

    @field_validator("emails")
    @classmethod
    def lowercase(cls, v: list[str]) -> list[str]:
        """Identities are stored lowercased."""
        return [email.lower() for email in v]


class BulkDeleteItem(BaseModel):
    email: str
    deleted: bool
    error: Optional[str] = None


class BulkDeleteResponse(BaseModel):
    results: list[BulkDeleteItem]
    deleted: int = Field(ge=0)
    failed: int = Field(ge=0)


class ReseedResponse(BaseModel):
    questions_loaded: int = Field(ge=0)
