"""
Structured output extraction for generative text responses.

Model replies may be bare JSON, JSON inside a ```json fence, JSON inside a
plain fence, or JSON surrounded by prose. extract_json() tries those in
order and returns the first object that parses:

    whole_body -> json_fence -> generic_fence -> balanced_object

Results are tagged: Parsed carries the value and the strategy that found
it; Unparseable carries a reason. Nothing here raises on bad input.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T
    strategy: str


@dataclass(frozen=True)
class Unparseable:
    reason: str
    excerpt: str = ""


ExtractionResult = Union[Parsed[dict[str, Any]], Unparseable]


# =============================================================================
# Extraction strategies
# =============================================================================

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_GENERIC_FENCE = re.compile(r"```[A-Za-z0-9_-]*\s*([\s\S]*?)\s*```")


def _whole_body(text: str) -> list[str]:
    return [text.strip()]


def _json_fence(text: str) -> list[str]:
    return _JSON_FENCE.findall(text)


def _generic_fence(text: str) -> list[str]:
    return _GENERIC_FENCE.findall(text)


def _balanced_object(text: str) -> list[str]:
    """Every balanced {...} span, in order of its opening brace."""
    spans: list[str] = []
    start = text.find("{")
    while start != -1:
        end = _match_brace(text, start)
        if end is not None:
            spans.append(text[start : end + 1])
        start = text.find("{", start + 1)
    return spans


def _match_brace(text: str, start: int) -> int | None:
    """Index of the brace closing text[start], skipping braces inside strings."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


EXTRACTION_CHAIN: tuple[tuple[str, Callable[[str], list[str]]], ...] = (
    ("whole_body", _whole_body),
    ("json_fence", _json_fence),
    ("generic_fence", _generic_fence),
    ("balanced_object", _balanced_object),
)


def _loads_object(candidate: str) -> dict[str, Any] | None:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def extract_json(text: Any) -> ExtractionResult:
    """Return the first JSON object found by the extraction chain."""
    if not isinstance(text, str) or not text.strip():
        return Unparseable(reason="empty response")

    for name, strategy in EXTRACTION_CHAIN:
        for candidate in strategy(text):
            data = _loads_object(candidate)
            if data is not None:
                return Parsed(value=data, strategy=name)

    return Unparseable(reason="no JSON object found", excerpt=text[:200])


def parse_payload(text: Any, model: type[M]) -> Parsed[M] | Unparseable:
    """Extract a JSON object and validate it against a payload model."""
    extracted = extract_json(text)
    if isinstance(extracted, Unparseable):
        return extracted
    try:
        payload = model.model_validate(extracted.value)
    except ValidationError as e:
        return Unparseable(
            reason=f"invalid {model.__name__}: {e.error_count()} error(s)",
            excerpt=json.dumps(extracted.value, ensure_ascii=False)[:200],
        )
    return Parsed(value=payload, strategy=extracted.strategy)


# =============================================================================
# Payload models
# =============================================================================


def _as_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None and str(v).strip()]
    return [str(value)]


class GradingPayload(BaseModel):
    """What the grading prompt asks the model to return."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    score: float = Field(..., validation_alias=AliasChoices("score", "total_score", "totalScore"))
    feedback: str = ""
    matched_points: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("matched_points", "matchedPoints"),
    )
    missing_points: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("missing_points", "missingPoints"),
    )

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, v: float) -> float:
        if v != v:  # NaN
            raise ValueError("score is NaN")
        return max(0.0, min(100.0, v))

    @field_validator("feedback", mode="before")
    @classmethod
    def _coerce_feedback(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("matched_points", "missing_points", mode="before")
    @classmethod
    def _coerce_points(cls, v: Any) -> list[str]:
        return _as_string_list(v)


class GeneratedQuestionPayload(BaseModel):
    """What the question-generation prompt asks the model to return."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    question_text: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("question_text", "questionText", "question")
    )
    correct_answer: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("correct_answer", "correctAnswer", "answer")
    )
    question_type: str | None = Field(
        default=None, validation_alias=AliasChoices("question_type", "questionType")
    )
    options: list[str] | None = None
    explanation: str | None = None
    difficulty_level: int | None = Field(
        default=None, validation_alias=AliasChoices("difficulty_level", "difficultyLevel", "difficulty")
    )
    concept_name: str | None = Field(
        default=None, validation_alias=AliasChoices("concept_name", "conceptName", "concept")
    )

    @field_validator("question_text", "correct_answer", mode="before")
    @classmethod
    def _strip_required(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, v: Any) -> list[str] | None:
        if v is None:
            return None
        if isinstance(v, dict):
            return [f"{key}) {text}" for key, text in v.items()]
        options = _as_string_list(v)
        return options or None

    @field_validator("difficulty_level", mode="before")
    @classmethod
    def _coerce_difficulty(cls, v: Any) -> int | None:
        try:
            return int(v) if v is not None else None
        except (TypeError, ValueError):
            return None


# =============================================================================
# Answer sanitization
# =============================================================================

_LEADING_CHOICE = re.compile(r"^\s*\(?([A-Fa-f])(?:[).:：、\s]|$)")


def sanitize_choice_answer(answer: str) -> str:
    """
    Reduce a multiple-choice answer to its option letter.

    "D) Standard Deviation" -> "D", "(b) ..." -> "B". Answers without a
    leading option token are returned trimmed but otherwise unchanged.
    """
    match = _LEADING_CHOICE.match(answer)
    if match:
        return match.group(1).upper()
    return answer.strip()
