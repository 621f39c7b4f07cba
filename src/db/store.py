"""
SQLAlchemy-backed persistence store and question corpus.

Implements the PersistenceStore and QuestionCorpus protocols from
src.core.interfaces over the practice tables. ORM rows never leave this
module; callers receive the frozen domain dataclasses.

Error mapping:
- read failures           -> StoreUnavailableError
- answer write failures   -> AnswerPersistenceError
- mastery write failures  -> StoreUnavailableError

Driver-level connection failures (refused, reset, timed out) surface as
OSError rather than SQLAlchemyError and are mapped the same way.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import replace
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.adaptive.difficulty import clamp_difficulty
from src.adaptive.progress import merge_progress
from src.core.concepts import Concept, normalize_concept
from src.core.exceptions import AnswerPersistenceError, StoreUnavailableError
from src.core.models import (
    AnswerRecord,
    ConceptProgress,
    MasterySignal,
    Question,
    QuestionMeta,
    QuestionSource,
    QuestionType,
)
from src.db.database import async_session_scope
from src.db.models import LearningProgress, PracticeQuestion, UserAnswer

DB_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def _to_uuid(value: str | UUID | None) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _concept_labels(concept: Concept) -> list[str]:
    """Stored spellings of a concept: canonical name plus the legacy Chinese label."""
    labels = [concept.value]
    if concept.label_zh:
        labels.append(concept.label_zh)
    return labels


# =============================================================================
# Row conversion
# =============================================================================


def question_from_row(row: PracticeQuestion) -> Question:
    try:
        question_type = QuestionType(row.question_type)
    except ValueError:
        logger.warning(f"Question {row.id} has unknown type {row.question_type!r}; treating as open_ended")
        question_type = QuestionType.OPEN_ENDED
    try:
        source = QuestionSource(row.source)
    except ValueError:
        source = QuestionSource.QUESTION_BANK

    return Question(
        question_id=str(row.id),
        concept=normalize_concept(row.concept_name),
        difficulty=clamp_difficulty(row.difficulty_level or 1),
        question_type=question_type,
        text=row.question_text,
        correct_answer=row.correct_answer,
        options=list(row.options) if row.options else None,
        explanation=row.explanation,
        source=source,
        is_active=bool(row.is_active),
    )


def answer_from_row(row: UserAnswer) -> AnswerRecord:
    return AnswerRecord(
        answer_id=str(row.id),
        user_id=row.user_id,
        question_id=str(row.question_id) if row.question_id else "",
        is_correct=bool(row.is_correct),
        score=row.score,
        time_taken=row.time_taken or 0,
        answered_at=row.created_at,
        session_id=row.session_id,
        user_answer=row.user_answer,
        submission_id=row.submission_id,
    )


def progress_from_row(row: LearningProgress) -> ConceptProgress:
    return ConceptProgress(
        user_id=row.user_id,
        concept=normalize_concept(row.concept_name),
        mastery_level=float(row.mastery_level or 0.0),
        practice_count=row.practice_count or 0,
        correct_answers=row.correct_answers or 0,
        last_practiced=row.last_practiced,
    )


# =============================================================================
# Store
# =============================================================================


class SqlAlchemyStore:
    """Async store over the practice tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._factory = session_factory

    # ------------------------------------------------------------------
    # Answer log
    # ------------------------------------------------------------------

    async def fetch_recent_answers(self, user_id: str, limit: int) -> list[AnswerRecord]:
        stmt = (
            select(UserAnswer)
            .where(UserAnswer.user_id == user_id)
            .order_by(UserAnswer.created_at.desc())
            .limit(limit)
        )
        try:
            async with async_session_scope(self._factory) as session:
                rows = (await session.scalars(stmt)).all()
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to fetch answers for {user_id}: {e}") from e
        return [answer_from_row(row) for row in rows]

    async def find_answer_by_submission(self, submission_id: str) -> AnswerRecord | None:
        stmt = select(UserAnswer).where(UserAnswer.submission_id == submission_id)
        try:
            async with async_session_scope(self._factory) as session:
                row = (await session.scalars(stmt)).first()
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to look up submission {submission_id}: {e}") from e
        return answer_from_row(row) if row else None

    async def append_answer(self, record: AnswerRecord) -> AnswerRecord:
        """
        Insert one answer row.

        A unique-key collision on submission_id means a concurrent duplicate
        already landed; that row is returned instead.
        """
        row = UserAnswer(
            user_id=record.user_id,
            question_id=_to_uuid(record.question_id),
            session_id=record.session_id,
            user_answer=record.user_answer,
            is_correct=record.is_correct,
            score=record.score,
            time_taken=record.time_taken,
            submission_id=record.submission_id,
        )
        try:
            async with async_session_scope(self._factory) as session:
                session.add(row)
                await session.flush()
                await session.refresh(row)
        except IntegrityError as e:
            if record.submission_id:
                existing = await self.find_answer_by_submission(record.submission_id)
                if existing is not None:
                    logger.info(f"Duplicate submission {record.submission_id}; returning existing answer")
                    return existing
            raise AnswerPersistenceError(f"Failed to record answer: {e}") from e
        except DB_ERRORS as e:
            raise AnswerPersistenceError(f"Failed to record answer: {e}") from e

        return replace(answer_from_row(row), concept=record.concept, difficulty=record.difficulty)

    # ------------------------------------------------------------------
    # Question metadata and corpus
    # ------------------------------------------------------------------

    async def fetch_question_meta(self, question_ids: Iterable[str]) -> dict[str, QuestionMeta]:
        ids = {uid for uid in (_to_uuid(q) for q in question_ids) if uid is not None}
        if not ids:
            return {}

        stmt = select(
            PracticeQuestion.id, PracticeQuestion.concept_name, PracticeQuestion.difficulty_level
        ).where(PracticeQuestion.id.in_(ids))
        try:
            async with async_session_scope(self._factory) as session:
                rows = (await session.execute(stmt)).all()
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to fetch question metadata: {e}") from e

        return {
            str(qid): QuestionMeta(
                concept=normalize_concept(concept_name),
                difficulty=clamp_difficulty(difficulty or 1),
            )
            for qid, concept_name, difficulty in rows
        }

    async def get_question(self, question_id: str) -> Question | None:
        uid = _to_uuid(question_id)
        if uid is None:
            return None
        try:
            async with async_session_scope(self._factory) as session:
                row = await session.get(PracticeQuestion, uid)
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to fetch question {question_id}: {e}") from e
        return question_from_row(row) if row else None

    async def find_by_concept_and_difficulty(
        self,
        concept: Concept | None,
        difficulty: int | None,
        question_type: QuestionType | None = None,
        limit: int = 20,
    ) -> list[Question]:
        stmt = select(PracticeQuestion).where(PracticeQuestion.is_active.is_(True))
        if concept is not None:
            stmt = stmt.where(PracticeQuestion.concept_name.in_(_concept_labels(concept)))
        if difficulty is not None:
            stmt = stmt.where(PracticeQuestion.difficulty_level == difficulty)
        if question_type is not None:
            stmt = stmt.where(PracticeQuestion.question_type == question_type.value)
        stmt = stmt.order_by(PracticeQuestion.created_at.desc()).limit(limit)

        try:
            async with async_session_scope(self._factory) as session:
                rows = (await session.scalars(stmt)).all()
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to query questions: {e}") from e
        return [question_from_row(row) for row in rows]

    async def save_question(self, question: Question) -> Question:
        row = PracticeQuestion(
            id=_to_uuid(question.question_id),
            concept_name=question.concept.value,
            question_text=question.text,
            question_type=question.question_type.value,
            options=question.options,
            correct_answer=question.correct_answer,
            explanation=question.explanation,
            difficulty_level=question.difficulty,
            source=question.source.value,
            is_active=question.is_active,
        )
        try:
            async with async_session_scope(self._factory) as session:
                session.add(row)
                await session.flush()
                await session.refresh(row)
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to save question: {e}") from e
        logger.info(f"Saved {question.source.value} question {row.id} ({question.concept.value})")
        return question_from_row(row)

    # ------------------------------------------------------------------
    # Mastery progress
    # ------------------------------------------------------------------

    async def upsert_mastery(
        self, user_id: str, concept: Concept, signal: MasterySignal
    ) -> ConceptProgress:
        """
        Read the current row, merge the signal, write it back.

        Concurrent submissions for the same user and concept may race; the
        last write wins.
        """
        stmt = select(LearningProgress).where(
            LearningProgress.user_id == user_id,
            LearningProgress.concept_name == concept.value,
        )
        try:
            async with async_session_scope(self._factory) as session:
                row = (await session.scalars(stmt)).first()
                current = (
                    progress_from_row(row) if row else ConceptProgress(user_id=user_id, concept=concept)
                )
                merged = merge_progress(current, signal)

                if row is None:
                    row = LearningProgress(user_id=user_id, concept_name=concept.value)
                    session.add(row)
                row.mastery_level = merged.mastery_level
                row.practice_count = merged.practice_count
                row.correct_answers = merged.correct_answers
                row.last_practiced = merged.last_practiced
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to update mastery for {user_id}: {e}") from e
        return merged

    async def fetch_progress(self, user_id: str) -> list[ConceptProgress]:
        stmt = (
            select(LearningProgress)
            .where(LearningProgress.user_id == user_id)
            .order_by(LearningProgress.concept_name)
        )
        try:
            async with async_session_scope(self._factory) as session:
                rows = (await session.scalars(stmt)).all()
        except DB_ERRORS as e:
            raise StoreUnavailableError(f"Failed to fetch progress for {user_id}: {e}") from e
        return [progress_from_row(row) for row in rows]
