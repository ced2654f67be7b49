from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    Integer,
    BigInteger,
    DateTime,
    func,
)
from database.engine import Base
from datetime import datetime
from enum import Enum as PyEnum


# ==================== User Role ===================== #
class UserRole(str, PyEnum):
    CANDIDATE = "candidate"  # test taker
    ADMIN = "admin"  # reviews users, results and audit logs


class User(Base):
    """
    Candidate identity record with the denormalized score summary.

    ``test_submitted`` only ever moves from False to True.
    """

    __tablename__ = "users"
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        nullable=False,
        autoincrement=True,
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="Candidate")
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.CANDIDATE.value
    )
    last_login: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # ============ Summary ============ #
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wrong_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    test_submitted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
