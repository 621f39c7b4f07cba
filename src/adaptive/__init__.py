"""
Adaptive Practice Engine.

Picks the next practice question's concept, difficulty and type from a
user's answer history.

Components:
- performance: Folds answer history into per-concept statistics
- classifier: Labels concepts weak / strong / neutral
- difficulty: Targets a difficulty level from recent accuracy
- selection: Branching policy with injectable randomness
- progress: Pure mastery-progress merge
- engine: RecommendationService wiring the store to the pipeline
"""
from src.adaptive.classifier import (
    ConceptClassification,
    ConceptLabel,
    RankedConcept,
    classify_concepts,
)
from src.adaptive.difficulty import (
    global_difficulty,
    recommend_difficulty,
    suggest_question_type,
)
from src.adaptive.engine import RecommendationService
from src.adaptive.performance import (
    NO_HISTORY,
    ConceptStat,
    ResolvedAnswer,
    UserPerformance,
    aggregate_performance,
    resolve_records,
    summarize_user_stats,
)
from src.adaptive.progress import merge_progress
from src.adaptive.selection import (
    RandomSource,
    Recommendation,
    RecommendationCategory,
    SeededRandom,
    SelectionPolicy,
)

__all__ = [
    # Main service
    "RecommendationService",
    # Pipeline stages
    "aggregate_performance",
    "resolve_records",
    "summarize_user_stats",
    "classify_concepts",
    "recommend_difficulty",
    "global_difficulty",
    "suggest_question_type",
    "merge_progress",
    "SelectionPolicy",
    # Randomness
    "RandomSource",
    "SeededRandom",
    # Data models
    "NO_HISTORY",
    "ConceptStat",
    "ResolvedAnswer",
    "UserPerformance",
    "ConceptClassification",
    "ConceptLabel",
    "RankedConcept",
    "Recommendation",
    "RecommendationCategory",
]
