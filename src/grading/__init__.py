"""
Answer Grading.

Strategy Pattern implementation: one strategy per grading mode, selected
by question type. AnswerGrader is the facade used by the practice service.
"""

from src.grading.base import GradingMode, GradingResult, GradingStrategy, StrategyRegistry
from src.grading.grader import AnswerGrader
from src.grading.llm_grader import (
    PRACTICE_PASS_SCORE,
    TEACHER_QUESTION_PASS_SCORE,
    LLMGradingStrategy,
    pass_score_for,
)
from src.grading.strategies import ExactMatchStrategy, NumericToleranceStrategy

__all__ = [
    # Facade
    "AnswerGrader",
    # Base classes
    "GradingMode",
    "GradingResult",
    "GradingStrategy",
    "StrategyRegistry",
    # Strategies
    "ExactMatchStrategy",
    "NumericToleranceStrategy",
    "LLMGradingStrategy",
    # Thresholds
    "PRACTICE_PASS_SCORE",
    "TEACHER_QUESTION_PASS_SCORE",
    "pass_score_for",
]
