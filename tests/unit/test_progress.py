"""
Unit tests for the mastery progress merge.
"""

from datetime import datetime, timezone

import pytest

from src.adaptive.progress import (
    DISCUSSION_MASTERY_CEILING,
    DISCUSSION_MASTERY_DELTA,
    MASTERY_CAP,
    merge_progress,
)
from src.core.concepts import Concept
from src.core.models import ConceptProgress, MasterySignal

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _fresh():
    return ConceptProgress(user_id="u1", concept=Concept.CORRELATION)


class TestMergeProgress:
    def test_first_correct_answer(self):
        merged = merge_progress(_fresh(), MasterySignal(is_correct=True), now=NOW)

        assert merged.mastery_level == pytest.approx(0.2)
        assert merged.practice_count == 1
        assert merged.correct_answers == 1
        assert merged.last_practiced == NOW

    def test_first_wrong_answer(self):
        merged = merge_progress(_fresh(), MasterySignal(is_correct=False), now=NOW)
        assert merged.mastery_level == pytest.approx(0.05)
        assert merged.correct_answers == 0

    def test_rate_based_after_first_attempt(self):
        old = ConceptProgress("u1", Concept.CORRELATION, mastery_level=0.2, practice_count=3, correct_answers=2)
        merged = merge_progress(old, MasterySignal(is_correct=True), now=NOW)
        # 3 of 4 correct * 1.1
        assert merged.mastery_level == pytest.approx(0.825)

    def test_capped(self):
        old = ConceptProgress("u1", Concept.CORRELATION, mastery_level=0.9, practice_count=9, correct_answers=9)
        merged = merge_progress(old, MasterySignal(is_correct=True), now=NOW)
        assert merged.mastery_level == pytest.approx(MASTERY_CAP)

    def test_delta_is_bounded(self):
        old = ConceptProgress("u1", Concept.CORRELATION, practice_count=1, correct_answers=0)
        low = merge_progress(old, MasterySignal(is_correct=False, mastery_delta=-1.0), now=NOW)
        high = merge_progress(old, MasterySignal(is_correct=True, mastery_delta=5.0), now=NOW)
        assert low.mastery_level == 0.0
        assert high.mastery_level == pytest.approx(MASTERY_CAP)

    def test_counts_never_diverge(self):
        progress = _fresh()
        for i in range(25):
            progress = merge_progress(progress, MasterySignal(is_correct=i % 4 == 0), now=NOW)
            assert 0 <= progress.correct_answers <= progress.practice_count
            assert 0.0 <= progress.mastery_level <= MASTERY_CAP
        assert progress.practice_count == 25

    def test_original_is_unchanged(self):
        old = _fresh()
        merge_progress(old, MasterySignal(is_correct=True), now=NOW)
        assert old.practice_count == 0


class TestDiscussionSignal:
    def test_fresh_row_gets_delta(self):
        signal = MasterySignal(is_correct=None, mastery_delta=DISCUSSION_MASTERY_DELTA)
        merged = merge_progress(_fresh(), signal, now=NOW)

        assert merged.mastery_level == pytest.approx(0.1)
        assert merged.practice_count == 0
        assert merged.correct_answers == 0
        assert merged.last_practiced == NOW

    def test_stops_at_ceiling(self):
        signal = MasterySignal(is_correct=None, mastery_delta=DISCUSSION_MASTERY_DELTA)
        progress = _fresh()
        for _ in range(10):
            progress = merge_progress(progress, signal, now=NOW)
        assert progress.mastery_level == pytest.approx(DISCUSSION_MASTERY_CEILING)

    def test_never_lowers_earned_mastery(self):
        old = ConceptProgress("u1", Concept.CORRELATION, mastery_level=0.8, practice_count=5, correct_answers=4)
        merged = merge_progress(old, MasterySignal(is_correct=None, mastery_delta=0.1), now=NOW)
        assert merged.mastery_level == pytest.approx(0.8)
        assert merged.practice_count == 5

    def test_next_graded_answer_recomputes(self):
        chatted = merge_progress(_fresh(), MasterySignal(is_correct=None, mastery_delta=0.1), now=NOW)
        answered = merge_progress(chatted, MasterySignal(is_correct=False), now=NOW)
        assert answered.mastery_level == pytest.approx(0.05)
        assert answered.practice_count == 1
