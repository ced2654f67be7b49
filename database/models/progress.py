"""In-flight assessment progress, one row per candidate."""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, BigInteger, String, DateTime, JSON, func
from database.engine import Base
from datetime import datetime
from typing import Any


class UserProgress(Base):
    __tablename__ = "user_progress"
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        nullable=False,
        autoincrement=True,
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    current_question_index: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    time_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    # question id (as string, JSON object keys) -> selected option
    answers: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
