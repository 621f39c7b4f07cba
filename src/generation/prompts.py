"""
Prompts for the generative text service.

Three prompts are used:
- Question generation: one statistics practice question as JSON
- Open-ended grading: score a student answer against a reference answer
- Tutor chat: system message for free-form student questions

The first two ask for JSON only; replies are still run through the extraction chain
in src.generation.parsing because models do not always comply.
"""
from __future__ import annotations

from src.core.concepts import Concept
from src.core.models import Question, QuestionType

# =============================================================================
# Question Generation
# =============================================================================

DIFFICULTY_LABELS = {1: "Basic", 2: "Intermediate", 3: "Advanced"}

DIFFICULTY_DESCRIPTIONS = {
    1: "Basic concept understanding, suitable for beginners",
    2: "Concept application and analysis, requires some understanding",
    3: "In-depth analysis and critical thinking, requires mastery of knowledge",
}

GENERATION_PROMPT = """You are a statistics question generator. Based on your knowledge base, generate a {difficulty_label} difficulty {type_label} question for the concept "{concept}".

**IMPORTANT: Return ONLY JSON format, no other text or explanation.**

JSON format example:
```json
{{
    "question_text": "Question content (must include psychology context)",
    "question_type": "{question_type}",
    "options": {options_example},
    "correct_answer": "{answer_example}",
    "explanation": "Detailed explanation of why this is the correct answer",
    "difficulty_level": {difficulty},
    "concept_name": "{concept}"
}}
```
{choice_rule}
Difficulty description: {difficulty_description}

**Generate the question now, return ONLY JSON, no other content.**"""

CHOICE_RULE = (
    '\n**CRITICAL: For multiple choice questions, "correct_answer" must be ONLY a single '
    "letter (A, B, C, or D), NOT the full option text.**\n"
)


def build_generation_prompt(concept: Concept, difficulty: int, question_type: QuestionType) -> str:
    """Format the generation prompt for a concept, difficulty and question type."""
    is_choice = question_type is QuestionType.MULTIPLE_CHOICE
    return GENERATION_PROMPT.format(
        difficulty_label=DIFFICULTY_LABELS.get(difficulty, "Basic"),
        type_label=question_type.display_name,
        concept=concept.value,
        question_type=question_type.value,
        options_example='["Option A", "Option B", "Option C", "Option D"]' if is_choice else "null",
        answer_example="A" if is_choice else "Correct answer",
        difficulty=difficulty,
        choice_rule=CHOICE_RULE if is_choice else "",
        difficulty_description=DIFFICULTY_DESCRIPTIONS.get(difficulty, DIFFICULTY_DESCRIPTIONS[1]),
    )


# =============================================================================
# Open-ended Grading
# =============================================================================

GRADING_PROMPT = """You are grading a student's answer to a statistics question.

QUESTION ({question_type}, concept: {concept}):
{question_text}

REFERENCE ANSWER:
{reference_answer}

STUDENT ANSWER:
{user_answer}

Compare the student answer with the reference answer. Award credit for each
key point the student covers correctly, even if worded differently. Do not
award credit for statements that contradict the reference answer.

Return ONLY JSON in this format:
```json
{{
    "score": 0-100,
    "feedback": "Two or three sentences of feedback addressed to the student",
    "matched_points": ["key points the student covered"],
    "missing_points": ["key points the student missed or got wrong"]
}}
```"""


def build_grading_prompt(question: Question, user_answer: str) -> str:
    return GRADING_PROMPT.format(
        question_type=question.question_type.display_name,
        concept=question.concept.value,
        question_text=question.text,
        reference_answer=question.correct_answer or "(no reference answer provided)",
        user_answer=user_answer.strip() or "(blank)",
    )


# =============================================================================
# Tutor Chat
# =============================================================================

TUTOR_SYSTEM_PROMPT = """You are a statistics teaching assistant for an introductory statistics course for psychology students. Follow these principles:

1. Answer in Traditional Chinese
2. Give clear, accurate explanations a beginner can follow
3. Guide the student with Socratic questions rather than handing over answers
4. Illustrate statistical ideas with examples from psychology research
5. Suggest practice when it would help
6. Encourage critical thinking and the ethical use of statistics
7. Adjust the depth of the explanation to the student's level

Statistical concepts detected in this message: {concepts}

Answer the student's question helpfully, and ask a guiding question where appropriate."""


def build_tutor_system_prompt(concepts: list[Concept]) -> str:
    """System message for a chat turn, naming the concepts the student mentioned."""
    named = ", ".join(f"{c.value} ({c.label_zh})" if c.label_zh else c.value for c in concepts)
    return TUTOR_SYSTEM_PROMPT.format(concepts=named or "none in particular")
