"""
Collaborator interfaces consumed by the adaptive engine and grader.

The SQLAlchemy store in src.db.store implements PersistenceStore and
QuestionCorpus; src.generation.llm_client implements GenerativeTextService.
Tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from src.core.concepts import Concept
from src.core.models import (
    AnswerRecord,
    ConceptProgress,
    MasterySignal,
    Question,
    QuestionMeta,
    QuestionType,
)


@runtime_checkable
class PersistenceStore(Protocol):
    """Answer log, question metadata and mastery progress."""

    async def fetch_recent_answers(self, user_id: str, limit: int) -> list[AnswerRecord]:
        """Most recent answers for a user, newest first."""
        ...

    async def fetch_question_meta(self, question_ids: Iterable[str]) -> dict[str, QuestionMeta]:
        """Concept and difficulty per question id. Missing ids are omitted."""
        ...

    async def append_answer(self, record: AnswerRecord) -> AnswerRecord:
        """Persist a new answer, returning it with id and timestamp assigned."""
        ...

    async def find_answer_by_submission(self, submission_id: str) -> AnswerRecord | None:
        """Idempotency lookup for a previously recorded submission."""
        ...

    async def upsert_mastery(
        self, user_id: str, concept: Concept, signal: MasterySignal
    ) -> ConceptProgress:
        """Merge a signal into the user's progress for a concept."""
        ...

    async def fetch_progress(self, user_id: str) -> list[ConceptProgress]:
        """All progress rows for a user."""
        ...


@runtime_checkable
class QuestionCorpus(Protocol):
    """Human-authored and generated questions."""

    async def get_question(self, question_id: str) -> Question | None:
        ...

    async def find_by_concept_and_difficulty(
        self,
        concept: Concept | None,
        difficulty: int | None,
        question_type: QuestionType | None = None,
        limit: int = 20,
    ) -> list[Question]:
        """Active questions matching the filters. None means any."""
        ...

    async def save_question(self, question: Question) -> Question:
        """Persist a generated question, returning it with its id assigned."""
        ...


@runtime_checkable
class GenerativeTextService(Protocol):
    """Prompt in, free text out. Raises GenerationError on any failure."""

    async def complete(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> str:
        ...
