"""
FastAPI application for the statistics tutor backend.

Provides REST API for:
- Adaptive practice recommendations
- Practice question serving and generation
- Answer grading (exact-match and AI-graded) and recording
- Per-user progress
- AI tutor chat
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from src.api.dependencies import close_clients
from src.core.log_config import configure_logging
from src.db.database import dispose_engines, get_engine, init_db

settings = get_settings()

SERVICE_NAME = "stats-tutor-backend"
VERSION = "0.1.0"


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging(settings)
    logger.info(f"Starting {SERVICE_NAME}...")
    try:
        init_db()
    except SQLAlchemyError as e:
        # Recommendations still degrade gracefully without a database.
        logger.error(f"Database initialization failed: {e}")
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVICE_NAME}...")
    await close_clients()
    await dispose_engines()


app = FastAPI(
    title="Statistics Tutor Backend",
    description="""
    Adaptive practice backend for a statistics-tutoring application.

    ## Features

    - **Recommendations**: Next concept and difficulty from answer history
    - **Question Bank**: Authored, teacher and AI-generated questions
    - **Grading**: Exact and numeric matching, AI grading for open-ended answers
    - **Progress**: Per-concept accuracy and mastery
    - **Chat**: AI tutor answers with concept tagging

    ## Recommendation Flow

    ```
    Answer history
        ↓ aggregate
    Per-concept stats
        ↓ classify
    Weak / strong concepts
        ↓ select
    Concept + difficulty + rationale
    ```
    """,
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "database": db_status,
            "ai": "configured" if settings.has_ai_configured() else "not_configured",
        },
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


@app.get("/config", tags=["Health"])
def get_config() -> dict[str, Any]:
    """Get current configuration (non-sensitive)."""
    return {
        "database_url": settings.database_url.split("@")[-1]
        if "@" in settings.database_url
        else "configured",
        "ai": settings.get_llm_config(),
        "recommendation": {
            "seeded": settings.recommendation_seed is not None,
            "history_limit": settings.answer_history_limit,
        },
    }


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import chat_router, practice_router  # noqa: E402

app.include_router(practice_router.router, prefix="/api/practice", tags=["Practice"])
app.include_router(chat_router.router, prefix="/api/chat", tags=["Chat"])
