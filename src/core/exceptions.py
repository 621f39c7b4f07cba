"""
Exception hierarchy for the tutoring backend.

Collaborator failures (store reads, generative service) are recovered
locally by the services that call them. Only input validation problems,
missing questions and failed answer writes reach the routing layer.
"""

from __future__ import annotations


class TutorError(Exception):
    """Base class for all domain errors."""


class InvalidRequestError(TutorError):
    """Caller supplied missing or malformed input. No work was performed."""


class QuestionNotFoundError(TutorError):
    """A referenced question does not exist in the corpus."""

    def __init__(self, question_id: str):
        super().__init__(f"Question not found: {question_id}")
        self.question_id = question_id


class StoreError(TutorError):
    """Base class for persistence store failures."""


class StoreUnavailableError(StoreError):
    """The persistence store could not be reached or failed a read."""


class AnswerPersistenceError(StoreError):
    """A submitted answer could not be durably recorded."""


class GenerationError(TutorError):
    """The generative text service failed or returned an unusable envelope."""


class QuestionGenerationError(GenerationError):
    """A generated question could not be parsed or was missing fields."""
