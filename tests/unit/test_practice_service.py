"""
Unit tests for the practice service.

Exercises the submit flow end to end against the in-memory store,
including idempotent resubmission and each failure policy.
"""

import json
import random

import pytest
from conftest import FakeLLM, FixedRandom, InMemoryStore, make_question

from src.adaptive.engine import RecommendationService
from src.adaptive.selection import RecommendationCategory, SelectionPolicy
from src.core.concepts import Concept
from src.core.exceptions import (
    AnswerPersistenceError,
    GenerationError,
    InvalidRequestError,
    QuestionGenerationError,
    QuestionNotFoundError,
    StoreUnavailableError,
)
from src.core.models import AnswerSubmission, QuestionSource, QuestionType
from src.generation.question_generator import QuestionGenerator
from src.grading import AnswerGrader
from src.practice.service import DUPLICATE_FEEDBACK, PracticeService


def _service(store, llm=None, draws=(0.0,)):
    recommender = RecommendationService(store, policy=SelectionPolicy(FixedRandom(*draws)))
    return PracticeService(
        store=store,
        corpus=store,
        grader=AnswerGrader(llm, rng=random.Random(0)),
        recommender=recommender,
        generator=QuestionGenerator(llm) if llm is not None else None,
        rng=random.Random(0),
    )


def _generated_reply(concept="Correlation Analysis"):
    return json.dumps(
        {
            "question_text": "Which r shows the strongest linear relationship?",
            "question_type": "multiple_choice",
            "options": ["A) 0.1", "B) -0.9", "C) 0.5", "D) 0"],
            "correct_answer": "B) -0.9",
            "explanation": "Magnitude matters, not sign.",
            "difficulty_level": 1,
            "concept_name": concept,
        }
    )


class TestSubmitAnswer:
    @pytest.mark.asyncio
    async def test_records_answer_and_updates_mastery(self, store):
        service = _service(store)
        result = await service.submit_answer(
            AnswerSubmission(question_id="q-sd-1", user_answer="a", user_id="u1", time_taken=12)
        )

        assert result.grading.is_correct is True
        assert result.duplicate is False
        assert len(store.answers) == 1
        saved = store.answers[0]
        assert saved.concept is Concept.STANDARD_DEVIATION
        assert saved.score == 100
        assert saved.time_taken == 12
        assert result.progress.mastery_level == pytest.approx(0.2)
        assert result.progress.practice_count == 1

    @pytest.mark.asyncio
    async def test_same_submission_id_recorded_once(self, store):
        service = _service(store)
        submission = AnswerSubmission(
            question_id="q-sd-1", user_answer="B", user_id="u1", submission_id="sub-123"
        )

        first = await service.submit_answer(submission)
        second = await service.submit_answer(submission)

        assert len(store.answers) == 1
        assert store.progress[("u1", Concept.STANDARD_DEVIATION)].practice_count == 1
        assert second.duplicate is True
        assert second.grading.feedback == DUPLICATE_FEEDBACK
        assert second.grading.is_correct == first.grading.is_correct
        assert second.answer.answer_id == first.answer.answer_id

    @pytest.mark.asyncio
    async def test_answer_write_failure_is_fatal(self, store):
        store.fail_appends = True
        with pytest.raises(AnswerPersistenceError):
            await _service(store).submit_answer(
                AnswerSubmission(question_id="q-sd-1", user_answer="A", user_id="u1")
            )
        assert store.progress == {}

    @pytest.mark.asyncio
    async def test_other_store_errors_become_persistence_errors(self, store):
        async def broken_append(record):
            raise StoreUnavailableError("connection reset")

        store.append_answer = broken_append
        with pytest.raises(AnswerPersistenceError, match="connection reset"):
            await _service(store).submit_answer(
                AnswerSubmission(question_id="q-sd-1", user_answer="A", user_id="u1")
            )

    @pytest.mark.asyncio
    async def test_mastery_failure_is_not_fatal(self, store):
        store.fail_mastery = True
        result = await _service(store).submit_answer(
            AnswerSubmission(question_id="q-sd-1", user_answer="A", user_id="u1")
        )
        assert result.grading.is_correct is True
        assert result.progress is None
        assert len(store.answers) == 1

    @pytest.mark.asyncio
    async def test_grading_service_down_still_records(self, store):
        service = _service(store, llm=FakeLLM(error=GenerationError("upstream timeout")))
        result = await service.submit_answer(
            AnswerSubmission(question_id="q-chi-3", user_answer="Reject H0", user_id="u1")
        )
        assert result.grading.fallback is True
        assert result.grading.score == 0
        assert store.answers[0].is_correct is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "submission",
        [
            AnswerSubmission(question_id="q-sd-1", user_answer="A", user_id=None),
            AnswerSubmission(question_id="q-sd-1", user_answer="   ", user_id="u1"),
            AnswerSubmission(question_id="", user_answer="A", user_id="u1"),
            AnswerSubmission(question_id="q-sd-1", user_answer="A", user_id="u1", time_taken=-1),
        ],
    )
    async def test_invalid_input_writes_nothing(self, store, submission):
        with pytest.raises(InvalidRequestError):
            await _service(store).submit_answer(submission)
        assert store.answers == []

    @pytest.mark.asyncio
    async def test_unknown_question(self, store):
        with pytest.raises(QuestionNotFoundError):
            await _service(store).submit_answer(
                AnswerSubmission(question_id="missing", user_answer="A", user_id="u1")
            )

    @pytest.mark.asyncio
    async def test_unknown_concept_skips_mastery(self):
        store = InMemoryStore([make_question("q-odd", Concept.UNKNOWN)])
        result = await _service(store).submit_answer(
            AnswerSubmission(question_id="q-odd", user_answer="A", user_id="u1")
        )
        assert result.progress is None
        assert store.progress == {}


class TestCheckAnswer:
    @pytest.mark.asyncio
    async def test_grades_without_recording(self, store):
        result = await _service(store).check_answer("q-sd-2", "2.451")
        assert result.is_correct is True
        assert store.answers == []

    @pytest.mark.asyncio
    async def test_teacher_question_uses_lower_threshold(self, store):
        llm = FakeLLM(json.dumps({"score": 62, "feedback": "Partly right."}))
        result = await _service(store, llm=llm).check_answer("q-teacher-3", "It is a measure")
        assert result.is_correct is True
        assert result.score == 62


class TestNextQuestion:
    @pytest.mark.asyncio
    async def test_new_user_gets_entry_question(self, store):
        picked = await _service(store).next_question(user_id="brand-new")

        assert picked.recommendation.category is RecommendationCategory.NEW_USER
        assert picked.question.concept is Concept.DESCRIPTIVE_STATISTICS
        assert picked.question.difficulty == 1

    @pytest.mark.asyncio
    async def test_follows_weak_concept(self, store):
        for i in range(10):
            store.record("u1", "q-chi-1", is_correct=i < 2)

        picked = await _service(store).next_question(user_id="u1")
        assert picked.recommendation.concept is Concept.CHI_SQUARE
        assert picked.question.concept is Concept.CHI_SQUARE

    @pytest.mark.asyncio
    async def test_explicit_filters_win(self, store):
        picked = await _service(store).next_question(user_id="u1", concept="相關分析", difficulty="basic")
        assert picked.recommendation is None
        assert picked.question.question_id == "q-corr-1"

    @pytest.mark.asyncio
    async def test_relaxes_difficulty_without_generator(self, store):
        picked = await _service(store).next_question(concept="one sample t test", difficulty=3)
        assert picked.question.question_id == "q-t1-1"

    @pytest.mark.asyncio
    async def test_generates_on_miss(self):
        store = InMemoryStore()
        llm = FakeLLM(_generated_reply())
        picked = await _service(store, llm=llm).next_question(concept="correlation", difficulty=1)

        assert picked.generated is True
        assert picked.question.correct_answer == "B"
        assert picked.question.question_id in store.questions

    @pytest.mark.asyncio
    async def test_empty_corpus_without_generator(self):
        with pytest.raises(QuestionNotFoundError):
            await _service(InMemoryStore()).next_question(concept="correlation")

    @pytest.mark.asyncio
    async def test_bad_filter_rejected(self, store):
        with pytest.raises(InvalidRequestError):
            await _service(store).next_question(concept="palmistry")


class TestGenerateQuestion:
    @pytest.mark.asyncio
    async def test_save_failure_returns_unsaved_question(self):
        store = InMemoryStore()
        store.fail_saves = True
        question = await _service(store, llm=FakeLLM(_generated_reply())).generate_question(
            "Correlation Analysis", "basic"
        )
        assert question.source is QuestionSource.AI_GENERATED
        assert store.questions == {}

    @pytest.mark.asyncio
    async def test_not_configured(self, store):
        with pytest.raises(QuestionGenerationError):
            await _service(store).generate_question("correlation")

    @pytest.mark.asyncio
    async def test_question_type_by_name(self):
        reply = json.dumps(
            {
                "question_text": "Compute r for the data.",
                "question_type": "calculation",
                "correct_answer": "0.82",
                "difficulty_level": 2,
            }
        )
        question = await _service(InMemoryStore(), llm=FakeLLM(reply)).generate_question(
            "correlation", 2, "calculation", save=False
        )
        assert question.question_type is QuestionType.CALCULATION
        assert question.correct_answer == "0.82"


class TestUserProgress:
    @pytest.mark.asyncio
    async def test_report(self, store):
        service = _service(store)
        for answer in ("A", "B", "A"):
            await service.submit_answer(
                AnswerSubmission(question_id="q-sd-1", user_answer=answer, user_id="u1", time_taken=30)
            )

        report = await service.user_progress("u1")
        data = report.to_dict()

        assert data["stats"]["totalQuestions"] == 3
        assert data["stats"]["correctCount"] == 2
        assert data["stats"]["conceptStats"]["Standard Deviation"]["total"] == 3
        assert data["progress"][0]["practice_count"] == 3
        assert len(data["recent_answers"]) == 3

    @pytest.mark.asyncio
    async def test_store_down_on_recommend(self, store):
        store.fail_reads = True
        rec = await _service(store).recommend("u1")
        assert rec.category is RecommendationCategory.NEW_USER
