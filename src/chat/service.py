"""
Tutor Chat Service.

Proxies a student's free-form question to the generative text service
with the tutor system prompt, tags the concepts the message mentions and
nudges the student's mastery of those concepts.

Failure policy:
- blank message                -> InvalidRequestError
- no service configured        -> GenerationError
- completion failure           -> GenerationError
- mastery write failure        -> logged, the reply is still returned
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from loguru import logger

from src.adaptive.progress import DISCUSSION_MASTERY_DELTA
from src.core.concepts import Concept, identify_concepts
from src.core.exceptions import GenerationError, InvalidRequestError, StoreError
from src.core.interfaces import GenerativeTextService, PersistenceStore
from src.core.models import ConceptProgress, MasterySignal
from src.generation.prompts import build_tutor_system_prompt

CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 1000


# =============================================================================
# Misconception detection
# =============================================================================

MISCONCEPTION_SD_VS_MEAN = "Confuses standard deviation with the mean"
MISCONCEPTION_CORRELATION_CAUSATION = "Confuses correlation with causation"
MISCONCEPTION_P_VALUE = "Reads the p-value as the probability of a hypothesis"


def _mentions(text: str, *terms: str) -> bool:
    return any(term in text for term in terms)


def detect_misconceptions(message: str) -> list[str]:
    """Common statistics misconceptions a message hints at."""
    text = message.casefold()
    found: list[str] = []

    if (
        _mentions(text, "標準差", "standard deviation")
        and _mentions(text, "平均數", "mean")
        and _mentions(text, "一樣", "相同", "same")
    ):
        found.append(MISCONCEPTION_SD_VS_MEAN)

    if _mentions(text, "相關", "correlat") and _mentions(text, "因果", "caus"):
        found.append(MISCONCEPTION_CORRELATION_CAUSATION)

    if _mentions(text, "p值", "p-value", "p value") and _mentions(
        text, "機率", "可能性", "probability", "chance"
    ):
        found.append(MISCONCEPTION_P_VALUE)

    return found


# =============================================================================
# Service
# =============================================================================


@dataclass
class ChatReply:
    """The tutor's answer to one chat message."""

    response: str
    session_id: str
    concepts: list[Concept] = field(default_factory=list)
    misconceptions: list[str] = field(default_factory=list)
    progress: list[ConceptProgress] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "session_id": self.session_id,
            "concepts": [c.value for c in self.concepts],
            "misconceptions": list(self.misconceptions),
            "progress": [p.to_dict() for p in self.progress],
        }


def _session_id(raw: str | None) -> str:
    """Keep a client-supplied UUID, otherwise start a new session id."""
    if raw:
        try:
            return str(UUID(str(raw)))
        except ValueError:
            logger.debug(f"Ignoring malformed session id {raw!r}")
    return str(uuid4())


class ChatService:
    """Answer student questions through the generative text service."""

    def __init__(
        self,
        llm: GenerativeTextService | None,
        store: PersistenceStore | None = None,
        mastery_delta: float = DISCUSSION_MASTERY_DELTA,
    ):
        self.llm = llm
        self.store = store
        self.mastery_delta = mastery_delta

    async def send_message(
        self,
        message: str | None,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> ChatReply:
        """
        Send one student message and return the tutor's reply.

        Mastery is only touched when a user id is given and the message
        mentions at least one known concept.

        Raises:
            InvalidRequestError: Blank message
            GenerationError: Chat not configured or the completion failed
        """
        if message is None or not message.strip():
            raise InvalidRequestError("message is required")
        if self.llm is None:
            raise GenerationError("Tutor chat is not configured")

        text = message.strip()
        session = _session_id(session_id)
        concepts = identify_concepts(text)
        logger.debug(f"Chat {session}: concepts {[c.value for c in concepts]}")

        response = await self.llm.complete(
            text,
            system=build_tutor_system_prompt(concepts),
            temperature=CHAT_TEMPERATURE,
            max_tokens=CHAT_MAX_TOKENS,
        )

        misconceptions = detect_misconceptions(text)
        if misconceptions and concepts:
            logger.info(f"Chat {session} ({concepts[0].value}): {'; '.join(misconceptions)}")

        progress: list[ConceptProgress] = []
        if user_id and user_id.strip():
            progress = await self._nudge_mastery(user_id.strip(), concepts)

        return ChatReply(
            response=response,
            session_id=session,
            concepts=concepts,
            misconceptions=misconceptions,
            progress=progress,
        )

    async def _nudge_mastery(self, user_id: str, concepts: list[Concept]) -> list[ConceptProgress]:
        if self.store is None:
            return []
        signal = MasterySignal(is_correct=None, mastery_delta=self.mastery_delta)
        updated = []
        for concept in concepts:
            try:
                updated.append(await self.store.upsert_mastery(user_id, concept, signal))
            except StoreError as e:
                logger.warning(f"Mastery update failed for {user_id}/{concept.value}: {e}")
        return updated
