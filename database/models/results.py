"""Finalized submission results."""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, BigInteger, String, Boolean, DateTime, JSON, func
from database.engine import Base
from datetime import datetime
from typing import Any


class ResultRecord(Base):
    """
    Outcome of a candidate's latest submission.

    Keyed uniquely by email: a resubmission overwrites the previous row.
    """

    __tablename__ = "user_responses"
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        nullable=False,
        autoincrement=True,
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    applicant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # [{"question_id", "question_text", "answer", "timestamp"}, ...] in key order
    responses: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wrong_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assessment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
