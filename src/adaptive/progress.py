"""Pure mastery-progress merge used by the practice submit and chat flows."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from src.core.models import ConceptProgress, MasterySignal

INITIAL_MASTERY_CORRECT = 0.2
INITIAL_MASTERY_INCORRECT = 0.05
MASTERY_CAP = 0.95
MASTERY_RATE_MULTIPLIER = 1.1

# Discussing a concept in chat nudges mastery but never past beginner level.
DISCUSSION_MASTERY_DELTA = 0.1
DISCUSSION_MASTERY_CEILING = 0.3


def merge_progress(
    old: ConceptProgress,
    signal: MasterySignal,
    now: datetime | None = None,
) -> ConceptProgress:
    """
    Fold one graded answer into a progress record.

    A first attempt seeds mastery at 0.2 (correct) or 0.05 (wrong). After
    that mastery tracks min(0.95, correct_rate * 1.1). The signal's
    mastery_delta is added on top and the result stays within [0, 0.95].

    An ungraded signal (is_correct None) leaves the counts alone and adds
    mastery_delta to the current level, up to DISCUSSION_MASTERY_CEILING.
    Mastery already above the ceiling is left unchanged.
    """
    if signal.is_correct is None:
        return _merge_discussion(old, signal, now)

    practice_count = old.practice_count + 1
    correct_answers = old.correct_answers + (1 if signal.is_correct else 0)

    if old.practice_count <= 0:
        base = INITIAL_MASTERY_CORRECT if signal.is_correct else INITIAL_MASTERY_INCORRECT
    else:
        base = min(MASTERY_CAP, correct_answers / practice_count * MASTERY_RATE_MULTIPLIER)

    mastery = min(MASTERY_CAP, max(0.0, base + signal.mastery_delta))

    return replace(
        old,
        mastery_level=mastery,
        practice_count=practice_count,
        correct_answers=correct_answers,
        last_practiced=now or datetime.now(timezone.utc),
    )


def _merge_discussion(
    old: ConceptProgress, signal: MasterySignal, now: datetime | None
) -> ConceptProgress:
    mastery = old.mastery_level
    if mastery < DISCUSSION_MASTERY_CEILING:
        mastery = min(DISCUSSION_MASTERY_CEILING, max(0.0, mastery + signal.mastery_delta))
    return replace(old, mastery_level=mastery, last_practiced=now or datetime.now(timezone.utc))
