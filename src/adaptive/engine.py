"""
Recommendation orchestration.

RecommendationService wires the persistence store to the pure pipeline:

    fetch history -> resolve metadata -> aggregate -> classify/select

Store failures degrade to the new_user branch instead of failing the
request.
"""

from __future__ import annotations

from loguru import logger

from src.adaptive.performance import (
    HISTORY_LIMIT,
    NO_HISTORY,
    UserPerformance,
    aggregate_performance,
    resolve_records,
)
from src.adaptive.selection import Recommendation, SelectionPolicy
from src.core.exceptions import InvalidRequestError, StoreError
from src.core.interfaces import PersistenceStore


class RecommendationService:
    """Produces a fresh Recommendation per user request."""

    def __init__(
        self,
        store: PersistenceStore,
        policy: SelectionPolicy | None = None,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.store = store
        self.policy = policy or SelectionPolicy()
        self.history_limit = min(history_limit, HISTORY_LIMIT)

    async def load_performance(self, user_id: str) -> UserPerformance:
        """
        Aggregate a user's recent answers.

        History and metadata are fetched in sequence since the metadata
        lookup needs the question ids from the history.
        """
        try:
            records = await self.store.fetch_recent_answers(user_id, self.history_limit)
        except StoreError as e:
            logger.warning(f"Answer history unavailable for {user_id}, treating as new user: {e}")
            return NO_HISTORY

        if not records:
            return NO_HISTORY

        question_ids = {r.question_id for r in records}
        try:
            question_meta = await self.store.fetch_question_meta(question_ids)
        except StoreError as e:
            logger.warning(f"Question metadata unavailable for {user_id}, treating as new user: {e}")
            return NO_HISTORY

        return aggregate_performance(resolve_records(records, question_meta))

    async def recommend(self, user_id: str) -> Recommendation:
        if not user_id or not str(user_id).strip():
            raise InvalidRequestError("user_id is required")

        performance = await self.load_performance(user_id)
        recommendation = self.policy.select(performance)
        logger.info(
            f"Recommendation for {user_id}: {recommendation.category.value} "
            f"concept={recommendation.concept.value if recommendation.concept else None} "
            f"difficulty={recommendation.difficulty}"
        )
        return recommendation
