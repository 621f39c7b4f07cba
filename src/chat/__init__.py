"""Tutor chat: proxy student questions to the generative text service."""

from src.chat.service import ChatReply, ChatService, detect_misconceptions

__all__ = [
    "ChatReply",
    "ChatService",
    "detect_misconceptions",
]
