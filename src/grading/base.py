"""
Base Grading Strategy.

Provides the abstract base for answer grading strategies and a registry
mapping each grading mode to its strategy class.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from loguru import logger

from src.core.interfaces import GenerativeTextService
from src.core.models import Question, QuestionType


class GradingMode(str, Enum):
    EXACT_MATCH = "exact_match"
    NUMERIC = "numeric"
    LLM = "llm"


MODE_BY_QUESTION_TYPE: dict[QuestionType, GradingMode] = {
    QuestionType.MULTIPLE_CHOICE: GradingMode.EXACT_MATCH,
    QuestionType.TRUE_FALSE: GradingMode.EXACT_MATCH,
    QuestionType.CALCULATION: GradingMode.NUMERIC,
    QuestionType.INTERPRETATION: GradingMode.LLM,
    QuestionType.CASE_STUDY: GradingMode.LLM,
    QuestionType.OPEN_ENDED: GradingMode.LLM,
    QuestionType.SHORT_ANSWER: GradingMode.LLM,
    QuestionType.FILL_BLANK: GradingMode.LLM,
}


def mode_for_question(question: Question) -> GradingMode:
    return MODE_BY_QUESTION_TYPE.get(question.question_type, GradingMode.EXACT_MATCH)


# =============================================================================
# Grading Result
# =============================================================================


@dataclass
class GradingResult:
    """
    Result of grading a learner answer.

    fallback is True when the open-ended grader could not reach or parse
    the generative text service; the answer is still recordable.
    """

    is_correct: bool
    score: int  # 0 to 100
    feedback: str

    matched_points: list[str] = field(default_factory=list)
    missing_points: list[str] = field(default_factory=list)

    grading_mode: GradingMode = GradingMode.EXACT_MATCH
    fallback: bool = False

    expected: Any = None
    actual: Any = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        """Alias for is_correct."""
        return self.is_correct

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "is_correct": self.is_correct,
            "score": self.score,
            "feedback": self.feedback,
            "matched_points": list(self.matched_points),
            "missing_points": list(self.missing_points),
            "grading_mode": self.grading_mode.value,
            "fallback": self.fallback,
        }


# =============================================================================
# Strategy Registry
# =============================================================================


class StrategyRegistry:
    """
    Registry for grading strategies.

    Example:
        @StrategyRegistry.register(GradingMode.EXACT_MATCH)
        class ExactMatchStrategy(GradingStrategy):
            ...

        strategy = StrategyRegistry.create(GradingMode.EXACT_MATCH)
    """

    _strategies: ClassVar[dict[GradingMode, type[GradingStrategy]]] = {}

    @classmethod
    def register(cls, mode: GradingMode):
        """Decorator to register a grading strategy for a mode."""

        def decorator(strategy_class: type[GradingStrategy]):
            cls._strategies[mode] = strategy_class
            strategy_class.grading_mode = mode
            logger.debug(f"Registered strategy: {mode.value} -> {strategy_class.__name__}")
            return strategy_class

        return decorator

    @classmethod
    def get(cls, mode: GradingMode) -> type[GradingStrategy]:
        """Get strategy class by grading mode."""
        if mode not in cls._strategies:
            raise KeyError(f"No strategy registered for mode: {mode.value}")
        return cls._strategies[mode]

    @classmethod
    def create(
        cls, mode: GradingMode, llm: GenerativeTextService | None = None
    ) -> GradingStrategy:
        return cls.get(mode)(llm=llm)

    @classmethod
    def list_strategies(cls) -> dict[str, type[GradingStrategy]]:
        """List all registered strategies."""
        return {mode.value: cls._strategies[mode] for mode in cls._strategies}


# =============================================================================
# Base Grading Strategy
# =============================================================================


class GradingStrategy(ABC):
    """
    Abstract base class for grading strategies.

    Subclasses implement grade(). Closed-form strategies leave feedback
    wording to AnswerGrader, which knows the question's difficulty.
    """

    grading_mode: ClassVar[GradingMode] = GradingMode.EXACT_MATCH
    name: ClassVar[str] = "base_strategy"

    def __init__(self, llm: GenerativeTextService | None = None):
        self.llm = llm

    @abstractmethod
    async def grade(self, question: Question, user_answer: Any, **options: Any) -> GradingResult:
        """
        Grade a learner answer.

        Args:
            question: The question being answered
            user_answer: The learner's raw answer
            options: Strategy-specific settings (e.g. pass_score)

        Returns:
            GradingResult with score and feedback
        """
        ...

    def _validate_response(self, response: Any) -> tuple[bool, str | None]:
        """
        Validate the response format.

        Returns:
            (is_valid, error_message)
        """
        if response is None:
            return False, "No answer provided."
        if not str(response).strip():
            return False, "No answer provided."
        return True, None

    def _invalid(self, error: str | None, response: Any = None) -> GradingResult:
        return GradingResult(
            is_correct=False,
            score=0,
            feedback=error or "Invalid answer.",
            grading_mode=self.grading_mode,
            actual=response,
        )

    def _normalize(self, text: Any) -> str:
        """Normalize text for comparison."""
        if not isinstance(text, str):
            text = "" if text is None else str(text)
        return text.strip().lower()
