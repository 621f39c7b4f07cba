"""
Chat API Router.

Endpoint for sending a student's question to the AI tutor. Blank
messages are 400; an unconfigured or failing generative service is 502.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.api.dependencies import get_chat_service
from src.chat.service import ChatService
from src.core.exceptions import GenerationError, InvalidRequestError

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ChatMessageRequest(BaseModel):
    """Request model for one chat message."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="The student's question")
    user_id: str | None = Field(None, alias="userId")
    session_id: str | None = Field(None, alias="sessionId", description="UUID of an ongoing chat")


class ChatProgress(BaseModel):
    concept: str
    mastery_level: float


class ChatMessageResponse(BaseModel):
    """The tutor's reply."""

    response: str
    session_id: str
    concepts: list[str] = Field(default_factory=list, description="Concepts mentioned in the message")
    misconceptions: list[str] = Field(default_factory=list)
    progress: list[ChatProgress] = Field(default_factory=list)


# ========================================
# Endpoints
# ========================================


@router.post("/message", response_model=ChatMessageResponse, summary="Ask the AI tutor")
async def send_message(
    request: ChatMessageRequest,
    service: ChatService = Depends(get_chat_service),
) -> ChatMessageResponse:
    """
    Send a question to the AI tutor.

    Concepts mentioned in the message are tagged, and when a user id is
    given the user's mastery of each one is nudged up.
    """
    try:
        reply = await service.send_message(
            request.message, user_id=request.user_id, session_id=request.session_id
        )
        return ChatMessageResponse(**reply.to_dict())
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GenerationError as exc:
        logger.warning(f"Chat reply failed: {exc}")
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Failed to process chat message")
        raise HTTPException(status_code=500, detail=str(exc))
