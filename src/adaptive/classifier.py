"""
Concept Classifier.

Labels each aggregated concept as weak, strong or neutral. The thresholds
are fixed module constants, not per-request options, so every label can be
traced back to the same rule.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from src.adaptive.performance import ConceptStat
from src.core.concepts import CANONICAL_CONCEPTS, Concept

# Minimum attempts before a concept can be labeled at all.
MIN_SAMPLE_SIZE = 3
WEAK_ACCURACY_THRESHOLD = 0.5
STRONG_ACCURACY_THRESHOLD = 0.7


class ConceptLabel(str, Enum):
    WEAK = "weak"
    STRONG = "strong"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class RankedConcept:
    """A labeled concept with the number that ranked it."""

    concept: Concept
    accuracy: float
    total: int
    priority: float

    def to_dict(self) -> dict:
        return {
            "concept": self.concept.value,
            "accuracy": round(self.accuracy, 4),
            "total": self.total,
            "priority": round(self.priority, 4),
        }


@dataclass(frozen=True)
class ConceptClassification:
    weak: tuple[RankedConcept, ...] = ()
    strong: tuple[RankedConcept, ...] = ()
    neutral: tuple[Concept, ...] = ()

    @property
    def top_weak(self) -> RankedConcept | None:
        return self.weak[0] if self.weak else None

    @property
    def weak_concepts(self) -> tuple[Concept, ...]:
        return tuple(r.concept for r in self.weak)

    @property
    def strong_concepts(self) -> tuple[Concept, ...]:
        return tuple(r.concept for r in self.strong)


def weak_priority(stat: ConceptStat) -> float:
    """(1 - accuracy) * ln(total + 1): low accuracy and larger samples rank first."""
    return (1.0 - stat.accuracy) * math.log(stat.total + 1)


def label_concept(stat: ConceptStat) -> ConceptLabel:
    if stat.total < MIN_SAMPLE_SIZE:
        return ConceptLabel.NEUTRAL
    if stat.accuracy < WEAK_ACCURACY_THRESHOLD:
        return ConceptLabel.WEAK
    if stat.accuracy >= STRONG_ACCURACY_THRESHOLD:
        return ConceptLabel.STRONG
    return ConceptLabel.NEUTRAL


def _canonical_index(concept: Concept) -> int:
    try:
        return CANONICAL_CONCEPTS.index(concept)
    except ValueError:
        return len(CANONICAL_CONCEPTS)


def classify_concepts(stats: Mapping[Concept, ConceptStat]) -> ConceptClassification:
    """
    Split concept stats into ranked weak and strong lists.

    The UNKNOWN bucket is always neutral: it cannot be recommended as a
    practice target. Ties are broken by canonical concept order.
    """
    weak: list[RankedConcept] = []
    strong: list[RankedConcept] = []
    neutral: list[Concept] = []

    for concept, stat in stats.items():
        label = label_concept(stat) if concept.is_known else ConceptLabel.NEUTRAL
        if label is ConceptLabel.WEAK:
            weak.append(RankedConcept(concept, stat.accuracy, stat.total, weak_priority(stat)))
        elif label is ConceptLabel.STRONG:
            strong.append(RankedConcept(concept, stat.accuracy, stat.total, stat.accuracy))
        else:
            neutral.append(concept)

    weak.sort(key=lambda r: (-r.priority, _canonical_index(r.concept)))
    strong.sort(key=lambda r: (-r.accuracy, _canonical_index(r.concept)))
    neutral.sort(key=_canonical_index)

    return ConceptClassification(weak=tuple(weak), strong=tuple(strong), neutral=tuple(neutral))
