"""API routers for the statistics tutor backend."""

from src.api.routers import chat_router, practice_router

__all__ = [
    "chat_router",
    "practice_router",
]
