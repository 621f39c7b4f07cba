"""
Service wiring for the API.

get_practice_service() and get_chat_service() build the services once per
process from settings. Tests replace them through app.dependency_overrides.
"""

from __future__ import annotations

from functools import lru_cache

from loguru import logger

from config import get_settings
from src.adaptive.engine import RecommendationService
from src.adaptive.selection import SeededRandom, SelectionPolicy
from src.chat.service import ChatService
from src.db.store import SqlAlchemyStore
from src.generation.llm_client import ChatCompletionClient
from src.generation.question_generator import QuestionGenerator
from src.grading.grader import AnswerGrader
from src.practice.service import PracticeService


@lru_cache(maxsize=1)
def get_llm_client() -> ChatCompletionClient | None:
    client = ChatCompletionClient.from_settings(get_settings())
    if client is None:
        logger.warning("Generative text service not configured; open-ended answers get fallback grades")
    return client


@lru_cache(maxsize=1)
def get_practice_service() -> PracticeService:
    settings = get_settings()
    store = SqlAlchemyStore()
    llm = get_llm_client()

    policy = SelectionPolicy(SeededRandom(settings.recommendation_seed))
    recommender = RecommendationService(
        store, policy=policy, history_limit=settings.answer_history_limit
    )
    return PracticeService(
        store=store,
        corpus=store,
        grader=AnswerGrader(llm),
        recommender=recommender,
        generator=QuestionGenerator(llm) if llm is not None else None,
        history_limit=settings.answer_history_limit,
    )


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    return ChatService(get_llm_client(), store=SqlAlchemyStore())


async def close_clients() -> None:
    """Close the shared HTTP client if one was created."""
    if get_llm_client.cache_info().currsize:
        client = get_llm_client()
        if client is not None:
            await client.close()
        get_llm_client.cache_clear()
        get_practice_service.cache_clear()
        get_chat_service.cache_clear()
