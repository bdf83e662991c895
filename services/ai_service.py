"""
services/ai_service.py

Quiz-question generation from lesson content with Ollama.

The model is asked for JSON matching GenerateQuizQuestionsOutput's schema;
the reply is validated with pydantic before anything reaches the database.
The blocking ollama.chat call runs in a worker thread so the web request
loop stays responsive while the model thinks.
"""
from __future__ import annotations

import asyncio
import logging

import ollama
from pydantic import BaseModel, Field, ValidationError, model_validator

from config import (
    AI_MAX_LESSON_CHARS,
    AI_TIMEOUT_SEC,
    DEFAULT_QUIZ_POINTS,
    OLLAMA_KEEP_ALIVE,
    OLLAMA_MODEL,
    OLLAMA_NUM_CTX,
    OLLAMA_TEMPERATURE,
    OLLAMA_TOP_P,
    QUIZ_DEFAULT_QUESTIONS,
    QUIZ_MAX_QUESTIONS,
    QUIZ_MIN_QUESTIONS,
)
from errors import QuizGenerationError
from models import QuestionType, QuizQuestion, now_ms
from services.content import strip_html

logger = logging.getLogger("classroomhq.ai")

PROMPT_TEMPLATE = (
    "You are an expert teacher who can generate engaging and relevant "
    "multiple-choice quiz questions based on lesson content.\n\n"
    "Generate {number_of_questions} multiple-choice quiz questions based on "
    "the following lesson content:\n\n"
    "{lesson_content}\n\n"
    "Each question should have 4 options, and only one correct answer."
)

# ── Schemas ───────────────────────────────────────────────

class GenerateQuizQuestionsInput(BaseModel):
    lessonContent: str = Field(min_length=1, description="The content of the lesson to generate quiz questions from.")
    numberOfQuestions: int = Field(
        default=QUIZ_DEFAULT_QUESTIONS,
        ge=QUIZ_MIN_QUESTIONS,
        le=QUIZ_MAX_QUESTIONS,
        description="The number of quiz questions to generate.",
    )


class GeneratedQuestion(BaseModel):
    questionText: str = Field(min_length=1, description="The text of the quiz question.")
    options: list[str] = Field(min_length=4, max_length=4, description="The multiple-choice options for the question.")
    correctAnswer: str = Field(min_length=1, description="The correct answer to the question.")

    @model_validator(mode="after")
    def _answer_is_an_option(self):
        if self.correctAnswer not in self.options:
            raise ValueError("correctAnswer must be one of the options")
        return self


class GenerateQuizQuestionsOutput(BaseModel):
    questions: list[GeneratedQuestion] = Field(description="The generated quiz questions.")


def build_prompt(data: GenerateQuizQuestionsInput) -> str:
    content = strip_html(data.lessonContent)[:AI_MAX_LESSON_CHARS]
    return PROMPT_TEMPLATE.format(
        number_of_questions=data.numberOfQuestions,
        lesson_content=content,
    )


def _chat_options() -> dict:
    return {
        "num_ctx": OLLAMA_NUM_CTX,
        "temperature": OLLAMA_TEMPERATURE,
        "top_p": OLLAMA_TOP_P,
    }

# ── Public API ────────────────────────────────────────────

async def generate_quiz_questions(data: GenerateQuizQuestionsInput) -> GenerateQuizQuestionsOutput:
    prompt = build_prompt(data)
    logger.info(
        "Generating %s quiz questions with %s (%s chars of lesson content)",
        data.numberOfQuestions, OLLAMA_MODEL, len(prompt),
    )
    try:
        response = await asyncio.wait_for(
            asyncio.to_thread(
                lambda: ollama.chat(
                    model=OLLAMA_MODEL,
                    messages=[{"role": "user", "content": prompt}],
                    format=GenerateQuizQuestionsOutput.model_json_schema(),
                    options=_chat_options(),
                    keep_alive=OLLAMA_KEEP_ALIVE,
                )
            ),
            timeout=AI_TIMEOUT_SEC,
        )
    except asyncio.TimeoutError:
        logger.warning("Quiz generation timed out after %ss", AI_TIMEOUT_SEC)
        raise QuizGenerationError(f"Quiz generation timed out after {AI_TIMEOUT_SEC}s.") from None
    except (ollama.ResponseError, ConnectionError) as exc:
        logger.error("Ollama request failed: %s", exc)
        raise QuizGenerationError(f"AI server error: {exc}") from exc

    raw = response["message"]["content"]
    try:
        output = GenerateQuizQuestionsOutput.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Model returned malformed quiz JSON: %s", exc)
        raise QuizGenerationError("AI server returned an invalid quiz.") from exc

    if not output.questions:
        raise QuizGenerationError("AI server returned no questions.")
    output.questions = output.questions[: data.numberOfQuestions]
    return output


def to_quiz_questions(output: GenerateQuizQuestionsOutput, assignment_id: str) -> list[QuizQuestion]:
    """Adapt generated questions to quiz questions worth DEFAULT_QUIZ_POINTS each."""
    stamp = now_ms()
    return [
        QuizQuestion(
            id=f"ai-gen-{assignment_id}-{stamp}-{index}",
            assignment_id=assignment_id,
            question_text=q.questionText,
            question_type=QuestionType.MULTIPLE_CHOICE if q.options else QuestionType.SHORT_ANSWER,
            options=list(q.options),
            correct_answer=q.correctAnswer,
            points=float(DEFAULT_QUIZ_POINTS),
        )
        for index, q in enumerate(output.questions)
    ]
