"""
Domain models shared by the adaptive engine, grader and persistence layer.

These are plain frozen dataclasses; the SQLAlchemy rows in src.db.models
are converted to and from them at the store boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from src.core.concepts import Concept


class QuestionType(str, Enum):
    """Question formats served by the practice bank."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    CALCULATION = "calculation"
    INTERPRETATION = "interpretation"
    CASE_STUDY = "case_study"
    OPEN_ENDED = "open_ended"
    SHORT_ANSWER = "short_answer"
    FILL_BLANK = "fill_blank"

    @property
    def display_name(self) -> str:
        """Human-readable name used in generation prompts."""
        return self.value.replace("_", " ").title()


class QuestionSource(str, Enum):
    """Where a question came from. Drives the open-ended pass threshold."""

    QUESTION_BANK = "question_bank"
    AI_GENERATED = "ai_generated"
    TEACHER = "teacher"


@dataclass(frozen=True)
class Question:
    """A practice question as served to learners."""

    question_id: str
    concept: Concept
    difficulty: int
    question_type: QuestionType
    text: str
    correct_answer: str
    options: list[str] | None = None
    explanation: str | None = None
    source: QuestionSource = QuestionSource.QUESTION_BANK
    is_active: bool = True

    def to_dict(self, include_answer: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "question_id": self.question_id,
            "concept": self.concept.value,
            "difficulty_level": self.difficulty,
            "question_type": self.question_type.value,
            "question_text": self.text,
            "options": self.options,
            "source": self.source.value,
        }
        if include_answer:
            data["correct_answer"] = self.correct_answer
            data["explanation"] = self.explanation
        return data


@dataclass(frozen=True)
class QuestionMeta:
    """The slice of a question the performance aggregator needs."""

    concept: Concept
    difficulty: int


@dataclass(frozen=True)
class AnswerRecord:
    """
    One submitted answer. Immutable once created.

    score is None for legacy closed-form records; effective_score reads
    those as 100 or 0 from correctness.
    """

    user_id: str
    question_id: str
    is_correct: bool
    concept: Concept | None = None
    difficulty: int | None = None
    score: int | None = None
    time_taken: int = 0
    answered_at: datetime | None = None
    answer_id: str | None = None
    session_id: str | None = None
    user_answer: str | None = None
    submission_id: str | None = None

    @property
    def effective_score(self) -> int:
        if self.score is not None:
            return self.score
        return 100 if self.is_correct else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer_id": self.answer_id,
            "user_id": self.user_id,
            "question_id": self.question_id,
            "session_id": self.session_id,
            "user_answer": self.user_answer,
            "is_correct": self.is_correct,
            "score": self.effective_score,
            "concept": self.concept.value if self.concept else None,
            "difficulty_level": self.difficulty,
            "time_taken": self.time_taken,
            "answered_at": self.answered_at.isoformat() if self.answered_at else None,
        }


@dataclass(frozen=True)
class MasterySignal:
    """
    Evidence fed into merge_progress.

    is_correct is None for ungraded evidence such as a chat discussion of
    the concept; only mastery_delta applies then.
    """

    is_correct: bool | None
    mastery_delta: float = 0.0


@dataclass(frozen=True)
class ConceptProgress:
    """Per-user, per-concept progress row with defaulted fields."""

    user_id: str
    concept: Concept
    mastery_level: float = 0.0
    practice_count: int = 0
    correct_answers: int = 0
    last_practiced: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "concept": self.concept.value,
            "mastery_level": round(self.mastery_level, 4),
            "practice_count": self.practice_count,
            "correct_answers": self.correct_answers,
            "last_practiced": self.last_practiced.isoformat() if self.last_practiced else None,
        }


@dataclass
class AnswerSubmission:
    """Inbound answer from the routing layer."""

    question_id: str
    user_answer: str
    user_id: str | None = None
    session_id: str | None = None
    time_taken: int = 0
    submission_id: str | None = None
