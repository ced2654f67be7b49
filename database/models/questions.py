"""Answer key question model."""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, JSON
from database.engine import Base


class QuestionRow(Base):
    """
    One question of the answer key.

    Rows are written only by seeding and the administrative reseed; the
    assessment core reads them.
    """

    __tablename__ = "questions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    category: Mapped[str] = mapped_column(
        String(100), nullable=False, default="general", index=True
    )
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    # Stored but not used for scoring
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
