"""
Core Module - Shared domain models and interfaces.

Components:
- concepts: Canonical concept enumeration and bilingual normalizer
- models: Question, AnswerRecord, ConceptProgress and friends
- interfaces: Protocols for the persistence store, question corpus and
  generative text service
- exceptions: Domain error hierarchy

Design Principle:
src/adaptive/, src/grading/ and src/practice/ import from src/core/
rather than from each other's internals.
"""

from src.core.concepts import (
    CANONICAL_CONCEPTS,
    ENTRY_CONCEPT,
    Concept,
    identify_concepts,
    normalize_concept,
)
from src.core.exceptions import (
    AnswerPersistenceError,
    GenerationError,
    InvalidRequestError,
    QuestionGenerationError,
    QuestionNotFoundError,
    StoreError,
    StoreUnavailableError,
    TutorError,
)
from src.core.models import (
    AnswerRecord,
    AnswerSubmission,
    ConceptProgress,
    MasterySignal,
    Question,
    QuestionMeta,
    QuestionSource,
    QuestionType,
)

__all__ = [
    # Concepts
    "CANONICAL_CONCEPTS",
    "ENTRY_CONCEPT",
    "Concept",
    "identify_concepts",
    "normalize_concept",
    # Models
    "AnswerRecord",
    "AnswerSubmission",
    "ConceptProgress",
    "MasterySignal",
    "Question",
    "QuestionMeta",
    "QuestionSource",
    "QuestionType",
    # Errors
    "AnswerPersistenceError",
    "GenerationError",
    "InvalidRequestError",
    "QuestionGenerationError",
    "QuestionNotFoundError",
    "StoreError",
    "StoreUnavailableError",
    "TutorError",
]
