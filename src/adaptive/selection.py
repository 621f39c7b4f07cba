"""
Selection Policy.

Chooses the next practice target from a user's aggregated performance.
Branches are evaluated in a strict order:

1. new_user            - no answer history at all
2. weak_concept_focus  - at least one weak concept (80% top weak, 20% explore)
3. need_more_practice  - fewer than 10 answers, nothing weak
4. doing_well          - everything else

The exploration draw goes through an injected RandomSource so tests can pin
the outcome with a seed.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from src.adaptive.classifier import ConceptClassification, classify_concepts
from src.adaptive.difficulty import (
    global_difficulty,
    recommend_difficulty,
    suggest_question_type,
)
from src.adaptive.performance import UserPerformance
from src.core.concepts import CANONICAL_CONCEPTS, ENTRY_CONCEPT, Concept
from src.core.models import QuestionType

WEAK_FOCUS_PROBABILITY = 0.8
NEED_MORE_PRACTICE_THRESHOLD = 10


@runtime_checkable
class RandomSource(Protocol):
    """Uniform floats in [0, 1)."""

    def next_float(self) -> float:
        ...


class SeededRandom:
    """RandomSource backed by its own random.Random instance."""

    def __init__(self, seed: int | None = None):
        self._random = random.Random(seed)

    def next_float(self) -> float:
        return self._random.random()


class RecommendationCategory(str, Enum):
    NEW_USER = "new_user"
    WEAK_CONCEPT_FOCUS = "weak_concept_focus"
    NEED_MORE_PRACTICE = "need_more_practice"
    DOING_WELL = "doing_well"


@dataclass(frozen=True)
class Recommendation:
    """
    The next practice target. concept=None means "any concept".

    Produced fresh per request and never persisted.
    """

    concept: Concept | None
    difficulty: int
    category: RecommendationCategory
    rationale: str
    weak_concepts: tuple[Concept, ...] = ()
    strong_concepts: tuple[Concept, ...] = ()
    explored: bool = False
    question_type: QuestionType | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept": self.concept.value if self.concept else None,
            "difficulty": self.difficulty,
            "category": self.category.value,
            "rationale": self.rationale,
            "weak_concepts": [c.value for c in self.weak_concepts],
            "strong_concepts": [c.value for c in self.strong_concepts],
            "explored": self.explored,
            "question_type": self.question_type.value if self.question_type else None,
        }


def _pct(value: float | None) -> str:
    return f"{round((value or 0.0) * 100)}%"


class SelectionPolicy:
    """Maps UserPerformance to a Recommendation."""

    def __init__(self, random_source: RandomSource | None = None):
        self.random_source = random_source or SeededRandom()

    def select(self, performance: UserPerformance) -> Recommendation:
        if not performance.has_history:
            return self._new_user()

        classification = classify_concepts(performance.concept_stats)
        if classification.weak:
            return self._weak_focus(performance, classification)

        difficulty = global_difficulty(performance.recent_performance)
        if performance.total_answered < NEED_MORE_PRACTICE_THRESHOLD:
            return Recommendation(
                concept=None,
                difficulty=difficulty,
                category=RecommendationCategory.NEED_MORE_PRACTICE,
                rationale=(
                    f"Answer a few more questions so practice can be personalized: "
                    f"{performance.total_answered} answered so far, recent accuracy "
                    f"{_pct(performance.recent_performance)}."
                ),
                strong_concepts=classification.strong_concepts,
                question_type=suggest_question_type(difficulty),
            )

        return Recommendation(
            concept=None,
            difficulty=difficulty,
            category=RecommendationCategory.DOING_WELL,
            rationale=(
                f"No weak concepts found. Recent accuracy is "
                f"{_pct(performance.recent_performance)} across "
                f"{performance.total_answered} answers; try any concept."
            ),
            strong_concepts=classification.strong_concepts,
            question_type=suggest_question_type(difficulty),
        )

    def _new_user(self) -> Recommendation:
        return Recommendation(
            concept=ENTRY_CONCEPT,
            difficulty=1,
            category=RecommendationCategory.NEW_USER,
            rationale=(
                f"Welcome! Start with {ENTRY_CONCEPT.value} at basic difficulty; "
                f"no answers recorded yet (accuracy {_pct(0.0)})."
            ),
            question_type=suggest_question_type(1),
        )

    def _weak_focus(
        self, performance: UserPerformance, classification: ConceptClassification
    ) -> Recommendation:
        top = classification.top_weak
        draw = self.random_source.next_float()
        explored = draw >= WEAK_FOCUS_PROBABILITY

        if explored:
            concept = self._pick_exploration_concept()
            stat = performance.stat_for(concept)
            rationale = (
                f"Exploring {concept.value} to broaden practice "
                f"(accuracy {_pct(stat.accuracy if stat else None)}); your weakest concept, "
                f"{top.concept.value}, is at {_pct(top.accuracy)} accuracy."
            )
        else:
            concept = top.concept
            stat = performance.stat_for(concept)
            rationale = (
                f"Focus on {concept.value}: accuracy {_pct(top.accuracy)} over "
                f"{top.total} attempts is below 50%."
            )

        difficulty = recommend_difficulty(stat)
        logger.debug(
            f"Weak-concept focus: draw={draw:.3f} explored={explored} "
            f"concept={concept.value} difficulty={difficulty}"
        )
        return Recommendation(
            concept=concept,
            difficulty=difficulty,
            category=RecommendationCategory.WEAK_CONCEPT_FOCUS,
            rationale=rationale,
            weak_concepts=classification.weak_concepts,
            strong_concepts=classification.strong_concepts,
            explored=explored,
            question_type=suggest_question_type(difficulty),
        )

    def _pick_exploration_concept(self) -> Concept:
        index = int(self.random_source.next_float() * len(CANONICAL_CONCEPTS))
        # next_float() is [0, 1) but guard against a source returning 1.0.
        return CANONICAL_CONCEPTS[min(index, len(CANONICAL_CONCEPTS) - 1)]
