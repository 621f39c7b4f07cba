"""Practice workflow: recommend, serve, generate and grade questions."""

from src.practice.service import (
    NextQuestion,
    PracticeService,
    SubmissionResult,
    UserProgressReport,
)

__all__ = [
    "NextQuestion",
    "PracticeService",
    "SubmissionResult",
    "UserProgressReport",
]
