from __future__ import annotations

import datetime as dt
import logging
import typing as t

from mentor import config
from mentor import prompts
from mentor.errors import MentorError, ValidationError
from mentor.extractor import parse_flashcards, parse_quiz, parse_quiz_item, parse_resources
from mentor.gemini_client import GeminiClient
from mentor.models import ExamEntry, MentorContext
from mentor.schemas import Flashcard, QuizItem, StudyResource

logger = logging.getLogger(__name__)

SCHEDULE_INSIGHT_FALLBACK = (
    "📊 AI scheduling analysis temporarily unavailable. "
    "Focus on your nearest exam date for optimal results."
)


def _require(value: str | None, message: str) -> str:
    v = (value or "").strip()
    if not v:
        raise ValidationError(message)
    return v


class MentorAIUtil:
    """Turns learner context into prompts, calls the model, reads the reply."""

    def __init__(self, *, gemini: GeminiClient | None = None, temperature: float | None = None) -> None:
        self.gemini = gemini or GeminiClient()
        self.temperature = config.TEMPERATURE if temperature is None else temperature

    def _complete(self, prompt: str, max_output_tokens: int) -> str:
        return self.gemini.generate_text(
            prompt,
            temperature=self.temperature,
            max_output_tokens=max_output_tokens,
        )

    def _structured(self, what: str, prompt: str, max_output_tokens: int, parse: t.Callable[[str], t.Any]) -> t.Any:
        text = self._complete(prompt, max_output_tokens)
        try:
            return parse(text)
        except MentorError as e:
            logger.warning("Could not read %s from reply: %s", what, e.detail)
            raise

    # ---------- conversational ----------

    def chat(self, context: MentorContext, message: str, now: dt.datetime | None = None) -> str:
        message = _require(message, "Please type a message first")
        return self._complete(prompts.build_chat_prompt(context, message, now), config.CHAT_MAX_OUTPUT_TOKENS)

    def insight(self, context: MentorContext, now: dt.datetime | None = None) -> str:
        return self._complete(prompts.build_insight_prompt(context, now), config.CHAT_MAX_OUTPUT_TOKENS)

    def study_plan(self, topic: str, difficulty: str) -> str:
        topic = _require(topic, "Please enter a topic first")
        if difficulty not in prompts.DIFFICULTIES:
            raise ValidationError(f"Difficulty must be one of: {', '.join(prompts.DIFFICULTIES)}")
        return self._complete(prompts.build_study_plan_prompt(topic, difficulty), config.TOOLS_MAX_OUTPUT_TOKENS)

    def study_summary(self, topic: str, subject: str | None = None) -> str:
        topic = _require(topic, "Please enter a topic first")
        return self._complete(prompts.build_summary_prompt(topic, subject), config.TOOLS_MAX_OUTPUT_TOKENS)

    def exam_recommendation(self, subject: str, days: int) -> str:
        return self._complete(
            prompts.build_exam_recommendation_prompt(subject, days),
            config.TIMETABLE_MAX_OUTPUT_TOKENS,
        )

    def schedule_insight(self, username: str, entries: t.Sequence[ExamEntry]) -> str:
        try:
            return self._complete(
                prompts.build_schedule_insight_prompt(username, entries),
                config.TIMETABLE_MAX_OUTPUT_TOKENS,
            )
        except MentorError as e:
            logger.warning("Schedule insight unavailable: %s", e.detail or e.message)
            return SCHEDULE_INSIGHT_FALLBACK

    def optimized_schedule(
        self,
        username: str,
        entries: t.Sequence[ExamEntry],
        now: dt.datetime | None = None,
    ) -> str:
        if not entries:
            raise ValidationError("Add an exam to your timetable first")
        return self._complete(
            prompts.build_optimized_schedule_prompt(username, entries, now),
            config.TIMETABLE_MAX_OUTPUT_TOKENS,
        )

    # ---------- structured ----------

    def quiz_question(self, context: MentorContext) -> QuizItem:
        return self._structured(
            "quiz question",
            prompts.build_quiz_question_prompt(context),
            config.CHAT_MAX_OUTPUT_TOKENS,
            parse_quiz_item,
        )

    def quiz(self, topic: str, level: str) -> list[QuizItem]:
        topic = _require(topic, "Please enter a topic first")
        level = _require(level, "Please choose an academic level")
        count = config.QUIZ_QUESTION_COUNT
        return self._structured(
            "quiz",
            prompts.build_quiz_prompt(topic, level, count),
            config.QUIZ_MAX_OUTPUT_TOKENS,
            lambda text: parse_quiz(text, count),
        )

    def flashcards(self, topic: str, difficulty: str) -> list[Flashcard]:
        topic = _require(topic, "Please enter a topic first")
        if difficulty not in prompts.DIFFICULTIES:
            raise ValidationError(f"Difficulty must be one of: {', '.join(prompts.DIFFICULTIES)}")
        count = config.FLASHCARD_COUNT
        return self._structured(
            "flashcards",
            prompts.build_flashcard_prompt(topic, difficulty, count),
            config.TOOLS_MAX_OUTPUT_TOKENS,
            lambda text: parse_flashcards(text, count),
        )

    def resources(self, topic: str, subject: str | None = None) -> list[StudyResource]:
        topic = _require(topic, "Please enter a topic to search for")
        count = config.RESOURCE_COUNT
        return self._structured(
            "resources",
            prompts.build_resources_prompt(topic, subject, count),
            config.TOOLS_MAX_OUTPUT_TOKENS,
            lambda text: parse_resources(text, count),
        )
