"""
Practice models: question bank, answer log and per-concept progress.

Implements:
- PracticeQuestion: Question bank rows (authored, teacher and generated)
- UserAnswer: Append-only answer log, one row per submission
- LearningProgress: Mastery per (user, concept), last writer wins

concept_name always holds the canonical English concept name; legacy rows
with other labels are normalized when read.
"""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PracticeQuestion(Base):
    """A practice question. Immutable after creation except is_active."""

    __tablename__ = "practice_questions"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        server_default=func.gen_random_uuid(),
    )
    concept_name: Mapped[str] = mapped_column(Text, nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(Text, nullable=False, default="multiple_choice")

    # ["Option A", "Option B", ...] for multiple choice, else NULL
    options: Mapped[list | None] = mapped_column(JSONB)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text)

    difficulty_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="question_bank")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        Index("ix_practice_questions_concept_difficulty", "concept_name", "difficulty_level"),
    )

    def __repr__(self) -> str:
        return f"<PracticeQuestion(concept={self.concept_name}, difficulty={self.difficulty_level})>"


class UserAnswer(Base):
    """One submitted answer. Never updated or deleted by the application."""

    __tablename__ = "user_answers"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        server_default=func.gen_random_uuid(),
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    question_id: Mapped[UUID] = mapped_column(
        ForeignKey("practice_questions.id", ondelete="SET NULL"),
        nullable=True,
    )
    session_id: Mapped[str | None] = mapped_column(Text)

    user_answer: Mapped[str | None] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # NULL for legacy closed-form rows
    score: Mapped[int | None] = mapped_column(Integer)
    time_taken: Mapped[int] = mapped_column(Integer, default=0)

    # Idempotency key supplied by the client
    submission_id: Mapped[str | None] = mapped_column(Text, unique=True)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        Index("ix_user_answers_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<UserAnswer(user={self.user_id}, correct={self.is_correct})>"


class LearningProgress(Base):
    """Mastery for one user and concept."""

    __tablename__ = "learning_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    concept_name: Mapped[str] = mapped_column(Text, nullable=False)

    mastery_level: Mapped[float] = mapped_column(Numeric(4, 3, asdecimal=False), default=0.0)
    practice_count: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    last_practiced: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "concept_name", name="uq_learning_progress_user_concept"),
    )

    def __repr__(self) -> str:
        return f"<LearningProgress(user={self.user_id}, concept={self.concept_name}, mastery={self.mastery_level})>"
