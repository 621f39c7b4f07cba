"""
Difficulty Recommender.

Targets a difficulty level from a concept's recent accuracy and the average
difficulty the user has attempted, or from global recent accuracy when no
concept is selected. Every output is an int in {1, 2, 3}.
"""

from __future__ import annotations

import math

from src.adaptive.classifier import MIN_SAMPLE_SIZE
from src.adaptive.performance import ConceptStat
from src.core.exceptions import InvalidRequestError
from src.core.models import QuestionType

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 3

STEP_UP_ACCURACY = 0.8
HOLD_ACCURACY = 0.5

DIFFICULTY_NAMES: dict[int, str] = {1: "basic", 2: "medium", 3: "advanced"}
_DIFFICULTY_BY_NAME: dict[str, int] = {name: level for level, name in DIFFICULTY_NAMES.items()}

DEFAULT_TYPE_BY_DIFFICULTY: dict[int, QuestionType] = {
    1: QuestionType.MULTIPLE_CHOICE,
    2: QuestionType.CALCULATION,
    3: QuestionType.INTERPRETATION,
}


def clamp_difficulty(value: float) -> int:
    """Clamp any numeric value to the 1-3 range. Non-finite input gives 1."""
    if not math.isfinite(value):
        return MIN_DIFFICULTY
    return int(min(MAX_DIFFICULTY, max(MIN_DIFFICULTY, value)))


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; 2.5 must become 3.
    return math.floor(value + 0.5)


def recommend_difficulty(stat: ConceptStat | None) -> int:
    """
    Recommend a difficulty for a concept.

    Too little history starts simple at 1. Otherwise recent accuracy of at
    least 0.8 steps up from ceil(avg), at least 0.5 holds at round(avg), and
    anything lower steps down from floor(avg).
    """
    if stat is None or stat.total < MIN_SAMPLE_SIZE:
        return MIN_DIFFICULTY

    avg = stat.avg_difficulty
    if not math.isfinite(avg):
        avg = float(MIN_DIFFICULTY)

    recent = stat.recent_accuracy
    if recent >= STEP_UP_ACCURACY:
        target = math.ceil(avg) + 1
    elif recent >= HOLD_ACCURACY:
        target = _round_half_up(avg)
    else:
        target = math.floor(avg) - 1
    return clamp_difficulty(target)


def global_difficulty(recent_performance: float | None) -> int:
    """Difficulty from accuracy over the newest answers across all concepts."""
    if recent_performance is None or not math.isfinite(recent_performance):
        return MIN_DIFFICULTY
    if recent_performance >= STEP_UP_ACCURACY:
        return 3
    if recent_performance >= HOLD_ACCURACY:
        return 2
    return 1


def suggest_question_type(difficulty: int) -> QuestionType:
    return DEFAULT_TYPE_BY_DIFFICULTY[clamp_difficulty(difficulty)]


def difficulty_name(level: int) -> str:
    return DIFFICULTY_NAMES[clamp_difficulty(level)]


def parse_difficulty(raw: int | str | None) -> int | None:
    """
    Accept 1-3 or basic/medium/advanced from a request.

    None passes through as "any difficulty"; anything else is rejected.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise InvalidRequestError(f"Invalid difficulty: {raw!r}")
    if isinstance(raw, int):
        level = raw
    else:
        text = str(raw).strip().lower()
        if text in _DIFFICULTY_BY_NAME:
            return _DIFFICULTY_BY_NAME[text]
        try:
            level = int(text)
        except ValueError:
            raise InvalidRequestError(f"Invalid difficulty: {raw!r}") from None
    if level not in DIFFICULTY_NAMES:
        raise InvalidRequestError(f"Difficulty must be 1, 2 or 3, got {level}")
    return level
