"""
Practice API Router.

Endpoints for:
- Concept list
- Recommendation and next-question selection
- Question generation and listing
- Answer submission, grading without recording
- User progress

Domain errors map to status codes: invalid input 400, unknown question
404, generative service failure 502, store failure 500.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.api.dependencies import get_practice_service
from src.core.concepts import CANONICAL_CONCEPTS
from src.core.exceptions import (
    GenerationError,
    InvalidRequestError,
    QuestionNotFoundError,
    TutorError,
)
from src.core.models import AnswerSubmission
from src.practice.service import PracticeService

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ConceptResponse(BaseModel):
    name: str
    label_zh: str | None = None


class ConceptListResponse(BaseModel):
    concepts: list[ConceptResponse]
    count: int


class RecommendationResponse(BaseModel):
    """Next practice target for a user."""

    concept: str | None = Field(None, description="Canonical concept name, null for any")
    difficulty: int = Field(..., ge=1, le=3)
    category: str = Field(..., description="new_user, weak_concept_focus, need_more_practice, doing_well")
    rationale: str
    weak_concepts: list[str] = Field(default_factory=list)
    strong_concepts: list[str] = Field(default_factory=list)
    explored: bool = False
    question_type: str | None = None


class GenerateRequest(BaseModel):
    """Request model for generating a practice question."""

    model_config = ConfigDict(populate_by_name=True)

    concept: str = Field(..., description="Concept name (English or Chinese)")
    difficulty: str | int = Field("basic", description="basic, medium, advanced or 1-3")
    question_type: str = Field(
        "multiple_choice", alias="questionType", description="Question type to generate"
    )
    save_to_database: bool = Field(True, alias="saveToDatabase")


class SubmitRequest(BaseModel):
    """Request model for submitting an answer."""

    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(..., alias="questionId")
    user_id: str | None = Field(None, alias="userId")
    user_answer: str = Field(..., alias="userAnswer")
    session_id: str | None = Field(None, alias="sessionId")
    time_taken: int = Field(0, ge=0, alias="timeTaken", description="Seconds spent")
    submission_id: str | None = Field(
        None, alias="submissionId", description="Client idempotency key"
    )


class ValidateAnswerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(..., alias="questionId")
    user_answer: str = Field(..., alias="userAnswer")


class GradingResponse(BaseModel):
    is_correct: bool
    score: int = Field(..., ge=0, le=100)
    feedback: str
    matched_points: list[str] = Field(default_factory=list)
    missing_points: list[str] = Field(default_factory=list)
    grading_mode: str
    fallback: bool = False


# ========================================
# Error mapping
# ========================================


def _http_error(exc: TutorError, action: str) -> HTTPException:
    if isinstance(exc, InvalidRequestError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, QuestionNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, GenerationError):
        logger.warning(f"{action}: {exc}")
        return HTTPException(status_code=502, detail=str(exc))
    logger.exception(action)
    return HTTPException(status_code=500, detail=str(exc))


# ========================================
# Endpoints
# ========================================


@router.get("/concepts", response_model=ConceptListResponse, summary="List concepts")
async def list_concepts() -> ConceptListResponse:
    """All canonical statistics concepts."""
    concepts = [ConceptResponse(name=c.value, label_zh=c.label_zh) for c in CANONICAL_CONCEPTS]
    return ConceptListResponse(concepts=concepts, count=len(concepts))


@router.get(
    "/recommendation/{user_id}",
    response_model=RecommendationResponse,
    summary="Recommend next practice target",
)
async def get_recommendation(
    user_id: str,
    service: PracticeService = Depends(get_practice_service),
) -> RecommendationResponse:
    """
    Recommend the next concept and difficulty for a user.

    Degrades to the new_user recommendation when history is unavailable.
    """
    try:
        recommendation = await service.recommend(user_id)
        return RecommendationResponse(**recommendation.to_dict())
    except TutorError as exc:
        raise _http_error(exc, f"Failed to recommend for {user_id}") from exc
    except Exception as exc:
        logger.exception(f"Failed to recommend for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/next-question", summary="Get next question")
async def next_question(
    user_id: str | None = Query(None, description="Use this user's recommendation when no filters are given"),
    concept: str | None = Query(None, description="Concept filter"),
    difficulty: str | None = Query(None, description="basic, medium, advanced or 1-3"),
    question_type: str | None = Query(None, description="Question type filter"),
    service: PracticeService = Depends(get_practice_service),
) -> dict[str, Any]:
    """Serve a question from the bank, generating one on a miss when configured."""
    try:
        result = await service.next_question(
            user_id=user_id, concept=concept, difficulty=difficulty, question_type=question_type
        )
        return result.to_dict()
    except TutorError as exc:
        raise _http_error(exc, "Failed to select next question") from exc
    except Exception as exc:
        logger.exception("Failed to select next question")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/generate", summary="Generate a practice question")
async def generate_question(
    request: GenerateRequest,
    service: PracticeService = Depends(get_practice_service),
) -> dict[str, Any]:
    logger.info(f"Generating {request.question_type} question for {request.concept} ({request.difficulty})")
    try:
        question = await service.generate_question(
            request.concept,
            request.difficulty,
            request.question_type,
            save=request.save_to_database,
        )
        return {"question": question.to_dict(include_answer=True), "generated": True}
    except TutorError as exc:
        raise _http_error(exc, "Failed to generate question") from exc
    except Exception as exc:
        logger.exception("Failed to generate question")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/questions", summary="List questions")
async def list_questions(
    concept: str | None = Query(None),
    difficulty: str | None = Query(None),
    question_type: str | None = Query(None),
    limit: int = Query(10, ge=1, le=100),
    service: PracticeService = Depends(get_practice_service),
) -> dict[str, Any]:
    try:
        questions = await service.list_questions(concept, difficulty, question_type, limit)
        return {
            "questions": [q.to_dict(include_answer=False) for q in questions],
            "count": len(questions),
        }
    except TutorError as exc:
        raise _http_error(exc, "Failed to list questions") from exc
    except Exception as exc:
        logger.exception("Failed to list questions")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/question/{question_id}", summary="Get one question")
async def get_question(
    question_id: str,
    service: PracticeService = Depends(get_practice_service),
) -> dict[str, Any]:
    try:
        question = await service.get_question(question_id)
        return {"question": question.to_dict(include_answer=False)}
    except TutorError as exc:
        raise _http_error(exc, f"Failed to get question {question_id}") from exc
    except Exception as exc:
        logger.exception(f"Failed to get question {question_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/submit", summary="Submit an answer")
async def submit_answer(
    request: SubmitRequest,
    service: PracticeService = Depends(get_practice_service),
) -> dict[str, Any]:
    """
    Grade and record an answer.

    Returns 500 if the answer could not be recorded; the grade is not
    reported as successful in that case.
    """
    submission = AnswerSubmission(
        question_id=request.question_id,
        user_answer=request.user_answer,
        user_id=request.user_id,
        session_id=request.session_id,
        time_taken=request.time_taken,
        submission_id=request.submission_id,
    )
    try:
        result = await service.submit_answer(submission)
        return result.to_dict()
    except TutorError as exc:
        raise _http_error(exc, f"Failed to submit answer for {request.question_id}") from exc
    except Exception as exc:
        logger.exception(f"Failed to submit answer for {request.question_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/validate-answer", response_model=GradingResponse, summary="Grade without recording")
async def validate_answer(
    request: ValidateAnswerRequest,
    service: PracticeService = Depends(get_practice_service),
) -> GradingResponse:
    try:
        result = await service.check_answer(request.question_id, request.user_answer)
        return GradingResponse(**result.to_dict())
    except TutorError as exc:
        raise _http_error(exc, f"Failed to validate answer for {request.question_id}") from exc
    except Exception as exc:
        logger.exception(f"Failed to validate answer for {request.question_id}")
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/user-progress/{user_id}", summary="User practice progress")
async def user_progress(
    user_id: str,
    service: PracticeService = Depends(get_practice_service),
) -> dict[str, Any]:
    try:
        report = await service.user_progress(user_id)
        return report.to_dict()
    except TutorError as exc:
        raise _http_error(exc, f"Failed to get progress for {user_id}") from exc
    except Exception as exc:
        logger.exception(f"Failed to get progress for {user_id}")
        raise HTTPException(status_code=500, detail=str(exc))
