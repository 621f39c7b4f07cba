"""
Open-ended grading through the generative text service.

The model scores the answer 0-100 against the reference answer and lists
matched and missing key points. Whether that score passes depends on where
the question came from:

    PRACTICE_PASS_SCORE          70  (question bank and generated questions)
    TEACHER_QUESTION_PASS_SCORE  60  (teacher-authored questions)

The two thresholds come from two separate grading paths and are kept
distinct pending a product decision on whether they should be unified.

Any service failure or unusable reply yields a fallback result (score 0,
not correct, fallback=True) instead of an exception.
"""

from __future__ import annotations

import math
from typing import Any

from loguru import logger

from src.core.exceptions import GenerationError
from src.core.models import Question, QuestionSource
from src.generation.parsing import GradingPayload, Unparseable, parse_payload
from src.generation.prompts import build_grading_prompt
from src.grading.base import GradingMode, GradingResult, GradingStrategy, StrategyRegistry

PRACTICE_PASS_SCORE = 70
TEACHER_QUESTION_PASS_SCORE = 60

GRADING_TEMPERATURE = 0.2
GRADING_MAX_TOKENS = 800

FALLBACK_FEEDBACK = (
    "Automatic grading is unavailable right now, so this answer was recorded "
    "with a provisional score of 0. Compare it with the explanation, or ask "
    "your instructor to review it."
)


def pass_score_for(source: QuestionSource) -> int:
    if source is QuestionSource.TEACHER:
        return TEACHER_QUESTION_PASS_SCORE
    return PRACTICE_PASS_SCORE


def fallback_result(reason: str, user_answer: Any = None) -> GradingResult:
    return GradingResult(
        is_correct=False,
        score=0,
        feedback=FALLBACK_FEEDBACK,
        grading_mode=GradingMode.LLM,
        fallback=True,
        actual=user_answer,
        details={"fallback_reason": reason},
    )


@StrategyRegistry.register(GradingMode.LLM)
class LLMGradingStrategy(GradingStrategy):
    """Delegates scoring of free-text answers to the generative text service."""

    name = "llm"

    async def grade(self, question: Question, user_answer: Any, **options: Any) -> GradingResult:
        is_valid, error = self._validate_response(user_answer)
        if not is_valid:
            return self._invalid(error, user_answer)

        pass_score = options.get("pass_score", pass_score_for(question.source))

        if self.llm is None:
            logger.warning(f"No generative service configured; fallback grade for {question.question_id}")
            return fallback_result("service not configured", user_answer)

        prompt = build_grading_prompt(question, str(user_answer))
        try:
            raw = await self.llm.complete(
                prompt, temperature=GRADING_TEMPERATURE, max_tokens=GRADING_MAX_TOKENS
            )
        except GenerationError as e:
            logger.warning(f"Grading service failed for {question.question_id}: {e}")
            return fallback_result(f"service error: {e}", user_answer)

        parsed = parse_payload(raw, GradingPayload)
        if isinstance(parsed, Unparseable):
            logger.warning(
                f"Unparseable grading reply for {question.question_id} ({parsed.reason}): "
                f"{parsed.excerpt!r}"
            )
            return fallback_result(parsed.reason, user_answer)

        payload = parsed.value
        score = int(math.floor(payload.score + 0.5))
        is_correct = score >= pass_score
        feedback = payload.feedback.strip() or (
            "Good answer!" if is_correct else "Your answer is missing some key points."
        )

        return GradingResult(
            is_correct=is_correct,
            score=score,
            feedback=feedback,
            matched_points=payload.matched_points,
            missing_points=payload.missing_points,
            grading_mode=GradingMode.LLM,
            expected=question.correct_answer,
            actual=user_answer,
            details={"pass_score": pass_score, "extracted_via": parsed.strategy},
        )
