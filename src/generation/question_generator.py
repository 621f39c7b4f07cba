"""
Practice question generation.

Asks the generative text service for one question, then validates and
normalizes it before it can be persisted:
- required fields (question text, correct answer) must be present
- concept name is normalized; an unknown name falls back to the requested concept
- multiple-choice answers like "D) Standard Deviation" become "D"
- difficulty outside 1-3 falls back to the requested difficulty
"""

from __future__ import annotations

import uuid

from loguru import logger

from src.core.concepts import Concept, normalize_concept
from src.core.exceptions import GenerationError, QuestionGenerationError
from src.core.interfaces import GenerativeTextService
from src.core.models import Question, QuestionSource, QuestionType
from src.generation.parsing import (
    GeneratedQuestionPayload,
    Unparseable,
    parse_payload,
    sanitize_choice_answer,
)
from src.generation.prompts import build_generation_prompt

GENERATION_TEMPERATURE = 0.7


class QuestionGenerator:
    """Generates a single practice question for a concept and difficulty."""

    def __init__(self, llm: GenerativeTextService):
        self.llm = llm

    async def generate(
        self,
        concept: Concept,
        difficulty: int,
        question_type: QuestionType = QuestionType.MULTIPLE_CHOICE,
    ) -> Question:
        """
        Generate and validate one question.

        Raises:
            QuestionGenerationError: Service failure or unusable reply
        """
        prompt = build_generation_prompt(concept, difficulty, question_type)
        try:
            raw = await self.llm.complete(prompt, temperature=GENERATION_TEMPERATURE)
        except GenerationError as e:
            raise QuestionGenerationError(f"Question generation failed: {e}") from e

        parsed = parse_payload(raw, GeneratedQuestionPayload)
        if isinstance(parsed, Unparseable):
            logger.warning(f"Unusable generated question ({parsed.reason}): {parsed.excerpt!r}")
            raise QuestionGenerationError(f"Generated question could not be parsed: {parsed.reason}")

        question = self._to_question(parsed.value, concept, difficulty, question_type)
        logger.info(
            f"Generated {question.question_type.value} question for {question.concept.value} "
            f"(difficulty {question.difficulty}, via {parsed.strategy})"
        )
        return question

    def _to_question(
        self,
        payload: GeneratedQuestionPayload,
        requested_concept: Concept,
        requested_difficulty: int,
        requested_type: QuestionType,
    ) -> Question:
        concept = requested_concept
        if payload.concept_name:
            resolved = normalize_concept(payload.concept_name)
            if resolved.is_known:
                concept = resolved

        try:
            question_type = QuestionType(payload.question_type) if payload.question_type else requested_type
        except ValueError:
            question_type = requested_type

        difficulty = payload.difficulty_level
        if difficulty not in (1, 2, 3):
            difficulty = requested_difficulty

        correct_answer = payload.correct_answer
        if question_type is QuestionType.MULTIPLE_CHOICE:
            cleaned = sanitize_choice_answer(correct_answer)
            if cleaned != correct_answer:
                logger.debug(f"Normalized choice answer {correct_answer!r} -> {cleaned!r}")
            correct_answer = cleaned
            if not payload.options:
                raise QuestionGenerationError("Generated multiple-choice question has no options")

        return Question(
            question_id=str(uuid.uuid4()),
            concept=concept,
            difficulty=difficulty,
            question_type=question_type,
            text=payload.question_text,
            correct_answer=correct_answer,
            options=payload.options,
            explanation=payload.explanation,
            source=QuestionSource.AI_GENERATED,
        )
