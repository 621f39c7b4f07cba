"""
Performance Aggregator.

Folds a user's answer history into per-concept statistics:
- total attempts, correct count and accuracy
- recent accuracy over the newest answers for each concept
- average difficulty attempted

Input is newest-first. Statistics are recomputed for every recommendation
request and never cached.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from loguru import logger

from src.core.concepts import Concept, normalize_concept
from src.core.models import AnswerRecord, QuestionMeta

# Most recent answers considered overall.
HISTORY_LIMIT = 200
# Newest answers retained per concept for the recent window.
RECENT_RETENTION = 10
# Newest answers per concept used for recent accuracy.
RECENT_ACCURACY_WINDOW = 5
# Newest answers across all concepts used for the global fallback.
GLOBAL_RECENT_WINDOW = 10


@dataclass(frozen=True)
class ResolvedAnswer:
    """An answer joined with its question's concept and difficulty."""

    question_id: str
    concept: Concept
    difficulty: int
    is_correct: bool
    score: int
    time_taken: int = 0


@dataclass(frozen=True)
class ConceptStat:
    """Aggregate over one concept's answers. Derived, never persisted."""

    concept: Concept
    total: int
    correct: int
    avg_difficulty: float
    average_score: float
    recent_outcomes: tuple[bool, ...] = ()

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0

    @property
    def recent_accuracy(self) -> float:
        """Accuracy over the newest min(5, retained) answers, 0 when none."""
        window = self.recent_outcomes[:RECENT_ACCURACY_WINDOW]
        if not window:
            return 0.0
        return sum(1 for outcome in window if outcome) / len(window)

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept": self.concept.value,
            "total": self.total,
            "correct": self.correct,
            "accuracy": round(self.accuracy, 4),
            "recent_accuracy": round(self.recent_accuracy, 4),
            "avg_difficulty": round(self.avg_difficulty, 2),
            "average_score": round(self.average_score, 1),
        }


@dataclass(frozen=True)
class UserPerformance:
    """
    Everything the recommendation pipeline knows about one user.

    has_history is False only for the NO_HISTORY result, so a brand-new
    user is distinguishable from a user with zero correct answers.
    """

    has_history: bool
    concept_stats: Mapping[Concept, ConceptStat] = field(
        default_factory=lambda: MappingProxyType({})
    )
    total_answered: int = 0
    total_correct: int = 0
    recent_performance: float | None = None

    @property
    def overall_accuracy(self) -> float:
        return self.total_correct / self.total_answered if self.total_answered else 0.0

    def stat_for(self, concept: Concept | None) -> ConceptStat | None:
        if concept is None:
            return None
        return self.concept_stats.get(concept)

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_history": self.has_history,
            "total_answered": self.total_answered,
            "total_correct": self.total_correct,
            "overall_accuracy": round(self.overall_accuracy, 4),
            "recent_performance": (
                round(self.recent_performance, 4) if self.recent_performance is not None else None
            ),
            "concepts": {c.value: s.to_dict() for c, s in self.concept_stats.items()},
        }


NO_HISTORY = UserPerformance(has_history=False)


class _ConceptAccumulator:
    """Mutable running totals for a single pass."""

    __slots__ = ("total", "correct", "difficulty_sum", "score_sum", "recent")

    def __init__(self) -> None:
        self.total = 0
        self.correct = 0
        self.difficulty_sum = 0
        self.score_sum = 0
        self.recent: list[bool] = []

    def add(self, answer: ResolvedAnswer) -> None:
        self.total += 1
        self.correct += 1 if answer.is_correct else 0
        self.difficulty_sum += answer.difficulty
        self.score_sum += answer.score
        if len(self.recent) < RECENT_RETENTION:
            self.recent.append(answer.is_correct)

    def freeze(self, concept: Concept) -> ConceptStat:
        return ConceptStat(
            concept=concept,
            total=self.total,
            correct=self.correct,
            avg_difficulty=self.difficulty_sum / self.total,
            average_score=self.score_sum / self.total,
            recent_outcomes=tuple(self.recent),
        )


def resolve_records(
    records: Sequence[AnswerRecord],
    question_meta: Mapping[str, QuestionMeta],
) -> list[ResolvedAnswer]:
    """
    Join answer records with question metadata, preserving order.

    Records whose question no longer exists are dropped and logged; a
    dangling reference is a data inconsistency, not a failure.
    """
    resolved: list[ResolvedAnswer] = []
    missing: set[str] = set()

    for record in records:
        meta = question_meta.get(record.question_id)
        if meta is None:
            missing.add(record.question_id)
            continue
        resolved.append(
            ResolvedAnswer(
                question_id=record.question_id,
                concept=normalize_concept(meta.concept),
                difficulty=meta.difficulty,
                is_correct=record.is_correct,
                score=record.effective_score,
                time_taken=record.time_taken,
            )
        )

    if missing:
        logger.warning(
            f"Excluded answers referencing {len(missing)} missing question(s): "
            f"{sorted(missing)[:5]}"
        )
    return resolved


def aggregate_performance(answers: Sequence[ResolvedAnswer]) -> UserPerformance:
    """
    Fold newest-first resolved answers into per-concept statistics.

    Only the newest HISTORY_LIMIT answers are considered. Since input is
    newest-first, the first RECENT_RETENTION answers seen per concept are
    that concept's most recent ones.
    """
    window = answers[:HISTORY_LIMIT]
    if not window:
        return NO_HISTORY

    accumulators: dict[Concept, _ConceptAccumulator] = {}
    total_correct = 0
    for answer in window:
        accumulators.setdefault(answer.concept, _ConceptAccumulator()).add(answer)
        total_correct += 1 if answer.is_correct else 0

    recent = window[:GLOBAL_RECENT_WINDOW]
    recent_performance = sum(1 for a in recent if a.is_correct) / len(recent)

    stats = {concept: acc.freeze(concept) for concept, acc in accumulators.items()}
    return UserPerformance(
        has_history=True,
        concept_stats=MappingProxyType(stats),
        total_answered=len(window),
        total_correct=total_correct,
        recent_performance=recent_performance,
    )


# =============================================================================
# Progress summary
# =============================================================================


@dataclass(frozen=True)
class UserStatsSummary:
    """Progress-page summary of a user's practice history."""

    total_questions: int
    correct_count: int
    accuracy_percent: float
    average_time: int
    concept_stats: dict[str, dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalQuestions": self.total_questions,
            "correctCount": self.correct_count,
            "accuracy": self.accuracy_percent,
            "averageTime": self.average_time,
            "conceptStats": self.concept_stats,
        }


def summarize_user_stats(
    records: Sequence[AnswerRecord],
    question_meta: Mapping[str, QuestionMeta],
) -> UserStatsSummary:
    """Totals over every record, per-concept breakdown over resolvable ones."""
    if not records:
        return UserStatsSummary(0, 0, 0.0, 0, {})

    total = len(records)
    correct = sum(1 for r in records if r.is_correct)
    average_time = sum(r.time_taken or 0 for r in records) / total

    per_concept: dict[str, dict[str, Any]] = {}
    for answer in resolve_records(records, question_meta):
        entry = per_concept.setdefault(
            answer.concept.value, {"total": 0, "correct": 0, "accuracy": 0.0}
        )
        entry["total"] += 1
        entry["correct"] += 1 if answer.is_correct else 0
    for entry in per_concept.values():
        entry["accuracy"] = round(entry["correct"] / entry["total"] * 100, 1)

    return UserStatsSummary(
        total_questions=total,
        correct_count=correct,
        accuracy_percent=round(correct / total * 100, 1),
        average_time=round(average_time),
        concept_stats=per_concept,
    )
