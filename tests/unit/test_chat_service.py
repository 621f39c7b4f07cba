"""
Unit tests for the tutor chat service.
"""

from uuid import UUID

import pytest
from conftest import FakeLLM

from src.chat.service import (
    CHAT_MAX_TOKENS,
    CHAT_TEMPERATURE,
    MISCONCEPTION_CORRELATION_CAUSATION,
    MISCONCEPTION_P_VALUE,
    MISCONCEPTION_SD_VS_MEAN,
    ChatService,
    detect_misconceptions,
)
from src.core.concepts import Concept
from src.core.exceptions import GenerationError, InvalidRequestError

SD_QUESTION = "標準差和平均數是一樣的東西嗎？"


class TestDetectMisconceptions:
    def test_sd_vs_mean(self):
        assert detect_misconceptions(SD_QUESTION) == [MISCONCEPTION_SD_VS_MEAN]

    def test_correlation_causation(self):
        assert detect_misconceptions("Does correlation prove causation?") == [
            MISCONCEPTION_CORRELATION_CAUSATION
        ]

    def test_p_value(self):
        assert detect_misconceptions("p值就是虛無假設為真的機率嗎") == [MISCONCEPTION_P_VALUE]

    def test_plain_question(self):
        assert detect_misconceptions("How do I compute a standard deviation?") == []


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_proxies_with_tutor_prompt(self, store):
        llm = FakeLLM("標準差描述資料的分散程度。")
        reply = await ChatService(llm, store).send_message(f"  {SD_QUESTION}  ")

        assert reply.response == "標準差描述資料的分散程度。"
        assert llm.prompts == [SD_QUESTION]
        call = llm.calls[0]
        assert call["temperature"] == CHAT_TEMPERATURE
        assert call["max_tokens"] == CHAT_MAX_TOKENS
        assert "Standard Deviation (標準差)" in call["system"]
        assert reply.concepts == [Concept.DESCRIPTIVE_STATISTICS, Concept.STANDARD_DEVIATION]
        assert reply.misconceptions == [MISCONCEPTION_SD_VS_MEAN]

    @pytest.mark.asyncio
    async def test_no_concepts_named_in_prompt(self, store):
        llm = FakeLLM("Hello!")
        reply = await ChatService(llm, store).send_message("Hi there")

        assert reply.concepts == []
        assert "none in particular" in llm.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_nudges_mastery_for_each_concept(self, store):
        reply = await ChatService(FakeLLM("ok"), store).send_message(SD_QUESTION, user_id="u1")

        assert {p.concept for p in reply.progress} == {
            Concept.DESCRIPTIVE_STATISTICS,
            Concept.STANDARD_DEVIATION,
        }
        progress = store.progress[("u1", Concept.STANDARD_DEVIATION)]
        assert progress.mastery_level == pytest.approx(0.1)
        assert progress.practice_count == 0

    @pytest.mark.asyncio
    async def test_anonymous_chat_leaves_progress_alone(self, store):
        await ChatService(FakeLLM("ok"), store).send_message(SD_QUESTION)
        assert store.progress == {}

    @pytest.mark.asyncio
    async def test_mastery_failure_still_replies(self, store):
        store.fail_mastery = True
        reply = await ChatService(FakeLLM("ok"), store).send_message(SD_QUESTION, user_id="u1")
        assert reply.response == "ok"
        assert reply.progress == []

    @pytest.mark.asyncio
    async def test_keeps_valid_session_id(self, store):
        session = "0b7c6a8e-3f5d-4c2a-9e1b-2d4f6a8c0e12"
        reply = await ChatService(FakeLLM("ok"), store).send_message("hi", session_id=session)
        assert reply.session_id == session

    @pytest.mark.asyncio
    async def test_replaces_malformed_session_id(self, store):
        reply = await ChatService(FakeLLM("ok"), store).send_message("hi", session_id="not-a-uuid")
        assert reply.session_id != "not-a-uuid"
        UUID(reply.session_id)

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, store):
        llm = FakeLLM("unused")
        with pytest.raises(InvalidRequestError):
            await ChatService(llm, store).send_message("   ", user_id="u1")
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_not_configured(self, store):
        with pytest.raises(GenerationError, match="not configured"):
            await ChatService(None, store).send_message("What is a t-test?")

    @pytest.mark.asyncio
    async def test_service_failure_writes_nothing(self, store):
        llm = FakeLLM(error=GenerationError("upstream timeout"))
        with pytest.raises(GenerationError):
            await ChatService(llm, store).send_message(SD_QUESTION, user_id="u1")
        assert store.progress == {}
