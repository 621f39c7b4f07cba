"""Generative text service integration: prompts, client, parsing and question generation.

Usage:
    from src.generation import ChatCompletionClient, QuestionGenerator

    llm = ChatCompletionClient.from_settings(get_settings())
    question = await QuestionGenerator(llm).generate(Concept.CORRELATION, 2)
"""
from src.generation.llm_client import ChatCompletionClient
from src.generation.parsing import (
    GeneratedQuestionPayload,
    GradingPayload,
    Parsed,
    Unparseable,
    extract_json,
    parse_payload,
    sanitize_choice_answer,
)
from src.generation.question_generator import QuestionGenerator

__all__ = [
    "ChatCompletionClient",
    "QuestionGenerator",
    "GeneratedQuestionPayload",
    "GradingPayload",
    "Parsed",
    "Unparseable",
    "extract_json",
    "parse_payload",
    "sanitize_choice_answer",
]
