# SQLAlchemy models
from .base import Base
from .practice import (
    LearningProgress,
    PracticeQuestion,
    UserAnswer,
)

__all__ = [
    "Base",
    "LearningProgress",
    "PracticeQuestion",
    "UserAnswer",
]
