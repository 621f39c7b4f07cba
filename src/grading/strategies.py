"""
Closed-form grading strategies.

- ExactMatchStrategy: multiple_choice and true_false, trimmed case-insensitive match
- NumericToleranceStrategy: calculation, |user - reference| < 0.01 with an
  exact-match fallback when either side is not a number
"""

from __future__ import annotations

import math
from typing import Any

from src.core.models import Question
from src.grading.base import GradingMode, GradingResult, GradingStrategy, StrategyRegistry

NUMERIC_TOLERANCE = 0.01


# =============================================================================
# EXACT_MATCH Strategy
# =============================================================================


@StrategyRegistry.register(GradingMode.EXACT_MATCH)
class ExactMatchStrategy(GradingStrategy):
    """All-or-nothing string match. No partial credit."""

    name = "exact_match"

    async def grade(self, question: Question, user_answer: Any, **options: Any) -> GradingResult:
        is_valid, error = self._validate_response(user_answer)
        if not is_valid:
            return self._invalid(error, user_answer)

        actual = self._normalize(user_answer)
        expected = self._normalize(question.correct_answer)
        is_correct = actual == expected

        return GradingResult(
            is_correct=is_correct,
            score=100 if is_correct else 0,
            feedback="",
            grading_mode=GradingMode.EXACT_MATCH,
            expected=question.correct_answer,
            actual=user_answer,
        )


# =============================================================================
# NUMERIC Strategy
# =============================================================================


def parse_number(text: Any) -> float | None:
    """Parse a finite float, or None."""
    try:
        value = float(str(text).strip())
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


@StrategyRegistry.register(GradingMode.NUMERIC)
class NumericToleranceStrategy(GradingStrategy):
    """Numeric comparison within an absolute tolerance."""

    name = "numeric"

    async def grade(self, question: Question, user_answer: Any, **options: Any) -> GradingResult:
        is_valid, error = self._validate_response(user_answer)
        if not is_valid:
            return self._invalid(error, user_answer)

        tolerance = options.get("tolerance", NUMERIC_TOLERANCE)
        actual = parse_number(user_answer)
        expected = parse_number(question.correct_answer)

        if actual is None or expected is None:
            # Non-numeric on either side: compare as text.
            is_correct = self._normalize(user_answer) == self._normalize(question.correct_answer)
            details: dict[str, Any] = {"compared_as": "text"}
        else:
            difference = abs(actual - expected)
            is_correct = difference < tolerance
            details = {"compared_as": "number", "difference": difference, "tolerance": tolerance}

        return GradingResult(
            is_correct=is_correct,
            score=100 if is_correct else 0,
            feedback="",
            grading_mode=GradingMode.NUMERIC,
            expected=question.correct_answer,
            actual=user_answer,
            details=details,
        )
