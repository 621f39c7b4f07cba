"""
Answer Grader.

Single entry point for grading: picks the strategy for the question type,
runs it, and words the feedback for closed-form results. Never raises for
collaborator failures; open-ended grading degrades to a fallback result.
"""

from __future__ import annotations

import random
from typing import Any

from loguru import logger

from src.core.interfaces import GenerativeTextService
from src.core.models import Question
from src.grading.base import GradingMode, GradingResult, GradingStrategy, StrategyRegistry, mode_for_question

# Registers strategies with StrategyRegistry.
from src.grading import llm_grader as _llm_grader  # noqa: F401
from src.grading import strategies as _strategies  # noqa: F401

POSITIVE_FEEDBACK = (
    "Excellent! Your answer is completely correct!",
    "Very good! You have a great understanding!",
    "Correct! Keep it up!",
    "Outstanding! You understand this very well!",
)

ENCOURAGING_FEEDBACK = {
    1: "That's okay, this is part of learning. Review the explanation and try again!",
    2: "Keep practicing. After understanding the explanation, you'll master it better!",
    3: "This question is indeed challenging. Think it through a few more times, and you'll get it!",
}


class AnswerGrader:
    """Grades answers against questions with one strategy per grading mode."""

    def __init__(self, llm: GenerativeTextService | None = None, rng: random.Random | None = None):
        self.llm = llm
        self._rng = rng or random.Random()
        self._strategies: dict[GradingMode, GradingStrategy] = {}

    def strategy_for(self, question: Question) -> GradingStrategy:
        mode = mode_for_question(question)
        if mode not in self._strategies:
            self._strategies[mode] = StrategyRegistry.create(mode, llm=self.llm)
        return self._strategies[mode]

    async def grade(self, question: Question, user_answer: Any, **options: Any) -> GradingResult:
        strategy = self.strategy_for(question)
        result = await strategy.grade(question, user_answer, **options)

        if not result.feedback:
            result.feedback = self.closed_form_feedback(result.is_correct, question.difficulty)

        logger.debug(
            f"Graded {question.question_id} via {strategy.name}: "
            f"correct={result.is_correct} score={result.score} fallback={result.fallback}"
        )
        return result

    def closed_form_feedback(self, is_correct: bool, difficulty: int) -> str:
        if is_correct:
            return self._rng.choice(POSITIVE_FEEDBACK)
        return ENCOURAGING_FEEDBACK.get(difficulty, ENCOURAGING_FEEDBACK[1])
