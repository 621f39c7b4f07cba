"""
Practice Service.

The caller-facing layer of the tutoring core. Route handlers and the CLI
call this; it wires the recommendation engine, the question corpus, the
question generator and the answer grader together.

Failure policy:
- invalid input                      -> InvalidRequestError, nothing written
- unknown question                   -> QuestionNotFoundError
- store unavailable during recommend -> new_user recommendation
- grading service failure            -> fallback grade, answer still recorded
- answer write failure               -> AnswerPersistenceError (fatal)
- mastery write failure              -> logged, submission still succeeds
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from src.adaptive.difficulty import parse_difficulty, suggest_question_type
from src.adaptive.engine import RecommendationService
from src.adaptive.performance import HISTORY_LIMIT, summarize_user_stats
from src.adaptive.selection import Recommendation
from src.core.concepts import CANONICAL_CONCEPTS, Concept, parse_concept_filter
from src.core.exceptions import (
    AnswerPersistenceError,
    InvalidRequestError,
    QuestionGenerationError,
    QuestionNotFoundError,
    StoreError,
)
from src.core.interfaces import PersistenceStore, QuestionCorpus
from src.core.models import (
    AnswerRecord,
    AnswerSubmission,
    ConceptProgress,
    MasterySignal,
    Question,
    QuestionType,
)
from src.generation.question_generator import QuestionGenerator
from src.grading.base import GradingResult
from src.grading.grader import AnswerGrader

DUPLICATE_FEEDBACK = "This answer was already recorded."


@dataclass
class NextQuestion:
    """A question chosen for the user, with the recommendation behind it."""

    question: Question
    recommendation: Recommendation | None = None
    generated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question.to_dict(include_answer=False),
            "recommendation": self.recommendation.to_dict() if self.recommendation else None,
            "generated": self.generated,
        }


@dataclass
class SubmissionResult:
    """Outcome of a recorded submission."""

    grading: GradingResult
    answer: AnswerRecord
    question: Question
    duplicate: bool = False
    progress: ConceptProgress | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_correct": self.grading.is_correct,
            "score": self.grading.score,
            "feedback": self.grading.feedback,
            "matched_points": list(self.grading.matched_points),
            "missing_points": list(self.grading.missing_points),
            "fallback": self.grading.fallback,
            "correct_answer": self.question.correct_answer,
            "explanation": self.question.explanation,
            "answer_record": self.answer.to_dict(),
            "duplicate": self.duplicate,
            "progress": self.progress.to_dict() if self.progress else None,
        }


@dataclass
class UserProgressReport:
    stats: dict[str, Any]
    progress: list[ConceptProgress] = field(default_factory=list)
    recent_answers: list[AnswerRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": self.stats,
            "progress": [p.to_dict() for p in self.progress],
            "recent_answers": [a.to_dict() for a in self.recent_answers],
        }


def _require(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidRequestError(f"{name} is required")
    return str(value).strip()


class PracticeService:
    """Recommend, serve, generate and grade practice questions."""

    RECENT_ANSWERS_SHOWN = 20

    def __init__(
        self,
        store: PersistenceStore,
        corpus: QuestionCorpus,
        grader: AnswerGrader,
        recommender: RecommendationService | None = None,
        generator: QuestionGenerator | None = None,
        rng: random.Random | None = None,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.store = store
        self.corpus = corpus
        self.grader = grader
        self.recommender = recommender or RecommendationService(store, history_limit=history_limit)
        self.generator = generator
        self.history_limit = history_limit
        self._rng = rng or random.Random()

    # =========================================================================
    # Recommendation and question selection
    # =========================================================================

    async def recommend(self, user_id: str | None) -> Recommendation:
        return await self.recommender.recommend(_require(user_id, "user_id"))

    async def next_question(
        self,
        user_id: str | None = None,
        concept: str | None = None,
        difficulty: int | str | None = None,
        question_type: str | None = None,
    ) -> NextQuestion:
        """
        Pick the next question for a user.

        Explicit filters win over the recommendation. With no filters and a
        user id, the recommendation's concept and difficulty are used. The
        corpus is searched first; on a miss a question is generated when a
        generator is configured.
        """
        concept_filter = parse_concept_filter(concept)
        difficulty_filter = parse_difficulty(difficulty)
        type_filter = self._parse_question_type(question_type)

        recommendation: Recommendation | None = None
        if user_id and concept_filter is None and difficulty_filter is None:
            recommendation = await self.recommend(user_id)
            concept_filter = recommendation.concept
            difficulty_filter = recommendation.difficulty

        candidates = await self._find_candidates(concept_filter, difficulty_filter, type_filter)
        if candidates:
            question = self._rng.choice(candidates)
            return NextQuestion(question=question, recommendation=recommendation)

        if self.generator is not None:
            target_concept = concept_filter or self._rng.choice(CANONICAL_CONCEPTS)
            target_difficulty = difficulty_filter or 1
            target_type = type_filter or suggest_question_type(target_difficulty)
            question = await self.generate_question(target_concept, target_difficulty, target_type)
            return NextQuestion(question=question, recommendation=recommendation, generated=True)

        raise QuestionNotFoundError(
            f"no question for concept={concept_filter.value if concept_filter else 'any'} "
            f"difficulty={difficulty_filter or 'any'}"
        )

    async def _find_candidates(
        self,
        concept: Concept | None,
        difficulty: int | None,
        question_type: QuestionType | None,
    ) -> list[Question]:
        """Exact match first, then the same concept at any difficulty."""
        candidates = await self.corpus.find_by_concept_and_difficulty(concept, difficulty, question_type)
        if not candidates and difficulty is not None and self.generator is None:
            logger.info(
                f"No difficulty-{difficulty} question for "
                f"{concept.value if concept else 'any concept'}; relaxing difficulty"
            )
            candidates = await self.corpus.find_by_concept_and_difficulty(concept, None, question_type)
        return candidates

    async def get_question(self, question_id: str | None) -> Question:
        question_id = _require(question_id, "question_id")
        question = await self.corpus.get_question(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        return question

    async def list_questions(
        self,
        concept: str | None = None,
        difficulty: int | str | None = None,
        question_type: str | None = None,
        limit: int = 10,
    ) -> list[Question]:
        if limit < 1:
            raise InvalidRequestError("limit must be positive")
        return await self.corpus.find_by_concept_and_difficulty(
            parse_concept_filter(concept),
            parse_difficulty(difficulty),
            self._parse_question_type(question_type),
            limit=limit,
        )

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate_question(
        self,
        concept: Concept | str,
        difficulty: int | str = 1,
        question_type: QuestionType | str = QuestionType.MULTIPLE_CHOICE,
        save: bool = True,
    ) -> Question:
        """
        Generate one question, saving it to the corpus when asked.

        A failed save is logged and the unsaved question is still returned.

        Raises:
            QuestionGenerationError: No generator configured or the reply was unusable
        """
        if self.generator is None:
            raise QuestionGenerationError("Question generation is not configured")

        target_concept = concept if isinstance(concept, Concept) else parse_concept_filter(concept)
        if target_concept is None:
            raise InvalidRequestError("concept is required")
        target_difficulty = parse_difficulty(difficulty) or 1
        target_type = (
            question_type
            if isinstance(question_type, QuestionType)
            else self._parse_question_type(question_type) or QuestionType.MULTIPLE_CHOICE
        )

        question = await self.generator.generate(target_concept, target_difficulty, target_type)
        if not save:
            return question
        try:
            return await self.corpus.save_question(question)
        except StoreError as e:
            logger.warning(f"Generated question not saved: {e}")
            return question

    # =========================================================================
    # Grading
    # =========================================================================

    async def check_answer(self, question_id: str | None, user_answer: str | None) -> GradingResult:
        """Grade without recording anything."""
        question = await self.get_question(question_id)
        return await self.grader.grade(question, _require(user_answer, "user_answer"))

    async def submit_answer(self, submission: AnswerSubmission) -> SubmissionResult:
        """
        Grade and durably record one answer, then update mastery.

        Resubmitting the same submission_id returns the first recorded
        outcome without writing again.

        Raises:
            InvalidRequestError: Missing user id, question id or answer
            QuestionNotFoundError: Unknown question
            AnswerPersistenceError: The answer could not be recorded
        """
        user_id = _require(submission.user_id, "user_id")
        question_id = _require(submission.question_id, "question_id")
        user_answer = _require(submission.user_answer, "user_answer")
        if submission.time_taken is not None and submission.time_taken < 0:
            raise InvalidRequestError("time_taken must not be negative")

        question = await self.get_question(question_id)

        if submission.submission_id:
            existing = await self._find_existing(submission.submission_id)
            if existing is not None:
                logger.info(f"Submission {submission.submission_id} already recorded")
                return self._duplicate_result(existing, question)

        grading = await self.grader.grade(question, user_answer)

        record = AnswerRecord(
            user_id=user_id,
            question_id=question.question_id,
            is_correct=grading.is_correct,
            concept=question.concept,
            difficulty=question.difficulty,
            score=grading.score,
            time_taken=submission.time_taken or 0,
            session_id=submission.session_id,
            user_answer=user_answer,
            submission_id=submission.submission_id,
        )
        try:
            saved = await self.store.append_answer(record)
        except AnswerPersistenceError:
            logger.error(f"Answer for {question.question_id} by {user_id} could not be recorded")
            raise
        except StoreError as e:
            logger.error(f"Answer for {question.question_id} by {user_id} could not be recorded: {e}")
            raise AnswerPersistenceError(str(e)) from e

        progress = await self._update_mastery(user_id, question.concept, grading)
        return SubmissionResult(grading=grading, answer=saved, question=question, progress=progress)

    async def _find_existing(self, submission_id: str) -> AnswerRecord | None:
        try:
            return await self.store.find_answer_by_submission(submission_id)
        except StoreError as e:
            # The unique submission_id column still rejects a duplicate write.
            logger.warning(f"Idempotency lookup failed for {submission_id}: {e}")
            return None

    def _duplicate_result(self, existing: AnswerRecord, question: Question) -> SubmissionResult:
        grading = GradingResult(
            is_correct=existing.is_correct,
            score=existing.effective_score,
            feedback=DUPLICATE_FEEDBACK,
        )
        return SubmissionResult(grading=grading, answer=existing, question=question, duplicate=True)

    async def _update_mastery(
        self, user_id: str, concept: Concept, grading: GradingResult
    ) -> ConceptProgress | None:
        if not concept.is_known:
            return None
        signal = MasterySignal(is_correct=grading.is_correct)
        try:
            return await self.store.upsert_mastery(user_id, concept, signal)
        except StoreError as e:
            logger.warning(f"Mastery update failed for {user_id}/{concept.value}: {e}")
            return None

    # =========================================================================
    # Progress
    # =========================================================================

    async def user_progress(self, user_id: str | None) -> UserProgressReport:
        user_id = _require(user_id, "user_id")
        records = await self.store.fetch_recent_answers(user_id, self.history_limit)
        question_meta = (
            await self.store.fetch_question_meta({r.question_id for r in records}) if records else {}
        )
        stats = summarize_user_stats(records, question_meta)
        progress = await self.store.fetch_progress(user_id)
        return UserProgressReport(
            stats=stats.to_dict(),
            progress=progress,
            recent_answers=list(records[: self.RECENT_ANSWERS_SHOWN]),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _parse_question_type(raw: str | None) -> QuestionType | None:
        if raw is None or not str(raw).strip():
            return None
        try:
            return QuestionType(str(raw).strip().lower())
        except ValueError:
            raise InvalidRequestError(f"Unknown question type: {raw}") from None
