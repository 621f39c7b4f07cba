"""
Unit tests for practice question generation.
"""

import json

import pytest
from conftest import FakeLLM

from src.core.concepts import Concept
from src.core.exceptions import GenerationError, QuestionGenerationError
from src.core.models import QuestionSource, QuestionType
from src.generation.prompts import build_generation_prompt
from src.generation.question_generator import GENERATION_TEMPERATURE, QuestionGenerator


def _reply(**overrides):
    data = {
        "question_text": "A psychologist measures reaction times. Which statistic describes spread?",
        "question_type": "multiple_choice",
        "options": ["A) Mean", "B) Median", "C) Mode", "D) Standard Deviation"],
        "correct_answer": "D) Standard Deviation",
        "explanation": "Standard deviation measures dispersion.",
        "difficulty_level": 1,
        "concept_name": "標準差",
    }
    data.update(overrides)
    return "```json\n" + json.dumps(data, ensure_ascii=False) + "\n```"


class TestGenerationPrompt:
    def test_choice_prompt_demands_letter_answer(self):
        prompt = build_generation_prompt(Concept.STANDARD_DEVIATION, 1, QuestionType.MULTIPLE_CHOICE)
        assert "Standard Deviation" in prompt
        assert "ONLY a single letter" in prompt
        assert '"difficulty_level": 1' in prompt

    def test_calculation_prompt_has_no_options(self):
        prompt = build_generation_prompt(Concept.CORRELATION, 2, QuestionType.CALCULATION)
        assert '"options": null' in prompt
        assert "ONLY a single letter" not in prompt


class TestQuestionGenerator:
    @pytest.mark.asyncio
    async def test_generates_normalized_question(self):
        llm = FakeLLM(_reply())
        question = await QuestionGenerator(llm).generate(Concept.STANDARD_DEVIATION, 1)

        assert question.concept is Concept.STANDARD_DEVIATION
        assert question.correct_answer == "D"
        assert question.question_type is QuestionType.MULTIPLE_CHOICE
        assert question.source is QuestionSource.AI_GENERATED
        assert len(question.options) == 4
        assert question.question_id
        assert llm.calls[0]["temperature"] == GENERATION_TEMPERATURE

    @pytest.mark.asyncio
    async def test_unknown_concept_falls_back_to_requested(self):
        llm = FakeLLM(_reply(concept_name="Bayesian Inference"))
        question = await QuestionGenerator(llm).generate(Concept.CHI_SQUARE, 1)
        assert question.concept is Concept.CHI_SQUARE

    @pytest.mark.asyncio
    async def test_out_of_range_difficulty_uses_requested(self):
        llm = FakeLLM(_reply(difficulty_level=7))
        question = await QuestionGenerator(llm).generate(Concept.STANDARD_DEVIATION, 2)
        assert question.difficulty == 2

    @pytest.mark.asyncio
    async def test_calculation_answer_is_not_sanitized(self):
        llm = FakeLLM(
            _reply(question_type="calculation", options=None, correct_answer="2.45", concept_name=None)
        )
        question = await QuestionGenerator(llm).generate(
            Concept.STANDARD_DEVIATION, 2, QuestionType.CALCULATION
        )
        assert question.correct_answer == "2.45"
        assert question.options is None

    @pytest.mark.asyncio
    async def test_choice_without_options_rejected(self):
        llm = FakeLLM(_reply(options=None))
        with pytest.raises(QuestionGenerationError):
            await QuestionGenerator(llm).generate(Concept.STANDARD_DEVIATION, 1)

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self):
        llm = FakeLLM('{"question_text": "Only a question"}')
        with pytest.raises(QuestionGenerationError, match="could not be parsed"):
            await QuestionGenerator(llm).generate(Concept.CORRELATION, 1)

    @pytest.mark.asyncio
    async def test_service_failure_wrapped(self):
        llm = FakeLLM(error=GenerationError("503 from upstream"))
        with pytest.raises(QuestionGenerationError) as exc_info:
            await QuestionGenerator(llm).generate(Concept.CORRELATION, 1)
        assert isinstance(exc_info.value.__cause__, GenerationError)
