"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
an in-memory store that implements both PersistenceStore and
QuestionCorpus, a scripted generative text service, and sample questions.
"""
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.adaptive.progress import merge_progress  # noqa: E402
from src.core.concepts import Concept  # noqa: E402
from src.core.exceptions import (  # noqa: E402
    AnswerPersistenceError,
    GenerationError,
    StoreUnavailableError,
)
from src.core.models import (  # noqa: E402
    AnswerRecord,
    ConceptProgress,
    Question,
    QuestionMeta,
    QuestionSource,
    QuestionType,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# =============================================================================
# Fakes
# =============================================================================


class InMemoryStore:
    """
    Dict-backed PersistenceStore and QuestionCorpus.

    Set fail_reads / fail_appends / fail_mastery to simulate an
    unavailable database for the matching operations.
    """

    def __init__(self, questions=None):
        self.questions: dict[str, Question] = {}
        self.answers: list[AnswerRecord] = []
        self.progress: dict[tuple[str, Concept], ConceptProgress] = {}
        self.fail_reads = False
        self.fail_appends = False
        self.fail_mastery = False
        self.fail_saves = False
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for question in questions or []:
            self.questions[question.question_id] = question

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    # PersistenceStore

    async def fetch_recent_answers(self, user_id, limit):
        if self.fail_reads:
            raise StoreUnavailableError("database is down")
        mine = [a for a in self.answers if a.user_id == user_id]
        return list(reversed(mine))[:limit]

    async def fetch_question_meta(self, question_ids):
        if self.fail_reads:
            raise StoreUnavailableError("database is down")
        return {
            qid: QuestionMeta(concept=self.questions[qid].concept, difficulty=self.questions[qid].difficulty)
            for qid in question_ids
            if qid in self.questions
        }

    async def append_answer(self, record):
        if self.fail_appends:
            raise AnswerPersistenceError("insert failed")
        saved = replace(record, answer_id=f"ans-{len(self.answers) + 1}", answered_at=self._tick())
        self.answers.append(saved)
        return saved

    async def find_answer_by_submission(self, submission_id):
        for answer in self.answers:
            if answer.submission_id == submission_id:
                return answer
        return None

    async def upsert_mastery(self, user_id, concept, signal):
        if self.fail_mastery:
            raise StoreUnavailableError("progress table locked")
        old = self.progress.get((user_id, concept), ConceptProgress(user_id=user_id, concept=concept))
        new = merge_progress(old, signal, now=self._tick())
        self.progress[(user_id, concept)] = new
        return new

    async def fetch_progress(self, user_id):
        return [p for (uid, _), p in self.progress.items() if uid == user_id]

    # QuestionCorpus

    async def get_question(self, question_id):
        if self.fail_reads:
            raise StoreUnavailableError("database is down")
        return self.questions.get(question_id)

    async def find_by_concept_and_difficulty(self, concept, difficulty, question_type=None, limit=20):
        if self.fail_reads:
            raise StoreUnavailableError("database is down")
        matches = [
            q
            for q in self.questions.values()
            if q.is_active
            and (concept is None or q.concept is concept)
            and (difficulty is None or q.difficulty == difficulty)
            and (question_type is None or q.question_type is question_type)
        ]
        return matches[:limit]

    async def save_question(self, question):
        if self.fail_saves:
            raise StoreUnavailableError("insert failed")
        self.questions[question.question_id] = question
        return question

    # Helpers

    def record(self, user_id, question_id, is_correct, score=None):
        """Append an answer synchronously, oldest first."""
        self.answers.append(
            AnswerRecord(
                user_id=user_id,
                question_id=question_id,
                is_correct=is_correct,
                score=score,
                answered_at=self._tick(),
                answer_id=f"ans-{len(self.answers) + 1}",
            )
        )


class FakeLLM:
    """Scripted GenerativeTextService. Replies are consumed in order."""

    def __init__(self, *replies, error: Exception | None = None):
        self.replies = list(replies)
        self.error = error
        self.prompts: list[str] = []
        self.calls: list[dict] = []

    async def complete(self, prompt, *, temperature=None, max_tokens=None, system=None):
        self.prompts.append(prompt)
        self.calls.append({"temperature": temperature, "max_tokens": max_tokens, "system": system})
        if self.error is not None:
            raise self.error
        if not self.replies:
            raise GenerationError("no scripted reply left")
        return self.replies.pop(0)


class FixedRandom:
    """RandomSource returning a fixed sequence of draws, cycling."""

    def __init__(self, *draws):
        self.draws = list(draws)
        self._i = 0

    def next_float(self):
        value = self.draws[self._i % len(self.draws)]
        self._i += 1
        return value


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


def make_question(
    question_id,
    concept=Concept.DESCRIPTIVE_STATISTICS,
    difficulty=1,
    question_type=QuestionType.MULTIPLE_CHOICE,
    correct_answer="A",
    source=QuestionSource.QUESTION_BANK,
    options=None,
):
    if options is None and question_type is QuestionType.MULTIPLE_CHOICE:
        options = ["A) Mean", "B) Median", "C) Mode", "D) Range"]
    return Question(
        question_id=question_id,
        concept=concept,
        difficulty=difficulty,
        question_type=question_type,
        text=f"Sample question {question_id}",
        correct_answer=correct_answer,
        options=options,
        explanation="Because.",
        source=source,
    )


@pytest.fixture
def sample_questions():
    """One question per canonical concept at difficulty 1, plus a few extras."""
    return [
        make_question("q-desc-1", Concept.DESCRIPTIVE_STATISTICS, 1),
        make_question("q-desc-2", Concept.DESCRIPTIVE_STATISTICS, 2,
                      QuestionType.CALCULATION, correct_answer="4.5"),
        make_question("q-sd-1", Concept.STANDARD_DEVIATION, 1),
        make_question("q-sd-2", Concept.STANDARD_DEVIATION, 2,
                      QuestionType.CALCULATION, correct_answer="2.45"),
        make_question("q-t1-1", Concept.ONE_SAMPLE_T_TEST, 1),
        make_question("q-ind-1", Concept.INDEPENDENT_SAMPLES_T_TEST, 1),
        make_question("q-pair-1", Concept.PAIRED_SAMPLES_T_TEST, 1),
        make_question("q-corr-1", Concept.CORRELATION, 1),
        make_question("q-reg-1", Concept.SIMPLE_REGRESSION, 1),
        make_question("q-chi-1", Concept.CHI_SQUARE, 1),
        make_question("q-chi-3", Concept.CHI_SQUARE, 3, QuestionType.INTERPRETATION,
                      correct_answer="The variables are associated; reject H0."),
        make_question("q-teacher-3", Concept.CORRELATION, 3, QuestionType.OPEN_ENDED,
                      correct_answer="r measures linear association.",
                      source=QuestionSource.TEACHER),
    ]


@pytest.fixture
def store(sample_questions):
    """In-memory store seeded with sample questions."""
    return InMemoryStore(sample_questions)


@pytest.fixture
def fake_llm():
    """Factory for scripted generative text services."""
    return FakeLLM
