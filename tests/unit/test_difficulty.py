"""
Unit tests for the difficulty recommender.
"""

import math

import pytest

from src.adaptive.difficulty import (
    clamp_difficulty,
    difficulty_name,
    global_difficulty,
    parse_difficulty,
    recommend_difficulty,
    suggest_question_type,
)
from src.adaptive.performance import ConceptStat
from src.core.concepts import Concept
from src.core.exceptions import InvalidRequestError
from src.core.models import QuestionType


def _stat(total, avg_difficulty, recent):
    return ConceptStat(
        concept=Concept.STANDARD_DEVIATION,
        total=total,
        correct=sum(recent),
        avg_difficulty=avg_difficulty,
        average_score=0.0,
        recent_outcomes=tuple(recent),
    )


class TestClampDifficulty:
    @pytest.mark.parametrize(
        "value,expected",
        [(0, 1), (1, 1), (2, 2), (3, 3), (10, 3), (-4, 1), (math.inf, 1), (math.nan, 1)],
    )
    def test_edges(self, value, expected):
        assert clamp_difficulty(value) == expected


class TestRecommendDifficulty:
    def test_no_stat_starts_simple(self):
        assert recommend_difficulty(None) == 1

    def test_too_few_attempts_starts_simple(self):
        assert recommend_difficulty(_stat(2, 3.0, [True, True])) == 1

    def test_high_recent_accuracy_steps_up(self):
        # ceil(1.2) + 1 = 3
        assert recommend_difficulty(_stat(5, 1.2, [True] * 5)) == 3

    def test_step_up_is_capped(self):
        assert recommend_difficulty(_stat(5, 3.0, [True] * 5)) == 3

    def test_middling_recent_accuracy_holds(self):
        # 3 of 5 recent correct -> round(1.6) = 2
        assert recommend_difficulty(_stat(5, 1.6, [True, True, True, False, False])) == 2

    def test_hold_rounds_half_up(self):
        assert recommend_difficulty(_stat(4, 2.5, [True, True, False, False])) == 3

    def test_low_recent_accuracy_steps_down(self):
        # floor(2.7) - 1 = 1
        assert recommend_difficulty(_stat(5, 2.7, [False] * 5)) == 1

    def test_step_down_is_floored(self):
        assert recommend_difficulty(_stat(10, 1.0, [False] * 10)) == 1

    def test_output_always_in_range(self):
        for avg in (1.0, 1.5, 2.0, 2.5, 3.0):
            for correct in range(6):
                recent = [True] * correct + [False] * (5 - correct)
                assert recommend_difficulty(_stat(5, avg, recent)) in (1, 2, 3)


class TestGlobalDifficulty:
    @pytest.mark.parametrize(
        "recent,expected",
        [(None, 1), (0.0, 1), (0.49, 1), (0.5, 2), (0.79, 2), (0.8, 3), (1.0, 3)],
    )
    def test_bands(self, recent, expected):
        assert global_difficulty(recent) == expected


class TestHelpers:
    def test_question_type_by_difficulty(self):
        assert suggest_question_type(1) is QuestionType.MULTIPLE_CHOICE
        assert suggest_question_type(2) is QuestionType.CALCULATION
        assert suggest_question_type(3) is QuestionType.INTERPRETATION

    def test_difficulty_name(self):
        assert difficulty_name(2) == "medium"

    @pytest.mark.parametrize(
        "raw,expected",
        [(None, None), ("", None), (1, 1), ("3", 3), ("basic", 1), ("Advanced", 3), (" medium ", 2)],
    )
    def test_parse_difficulty(self, raw, expected):
        assert parse_difficulty(raw) == expected

    @pytest.mark.parametrize("raw", [0, 4, "hard", "2.5", True])
    def test_parse_difficulty_rejects(self, raw):
        with pytest.raises(InvalidRequestError):
            parse_difficulty(raw)
