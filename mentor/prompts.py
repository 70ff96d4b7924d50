"""Prompt builders for the mentor.

Every builder is a pure function of its arguments. Structured builders spell
out the exact JSON shape the reply must have, so that the extractor can hold
the model to it.
"""
from __future__ import annotations

import datetime as dt
import json
import math
import typing as t

from mentor.models import ExamConfiguration, ExamEntry, MentorContext

_SECONDS_PER_DAY = 24 * 60 * 60

DIFFICULTIES = ("beginner", "medium", "advanced")


def _as_local_datetime(value: dt.date | dt.datetime) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    return dt.datetime.combine(value, dt.time.min)


def days_until_exam(exam_date: dt.date | dt.datetime | None, now: dt.datetime | None = None) -> int:
    """Calendar-day ceiling of (exam date - now), local time, not clamped."""
    if exam_date is None:
        raise ValueError("exam_date is required to count days until the exam")
    now = now or dt.datetime.now()
    delta = _as_local_datetime(exam_date) - now
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def days_label(days: int) -> str:
    if days < 0:
        return "past"
    if days == 0:
        return "today"
    if days == 1:
        return "1 day"
    return f"{days} days"


def _syllabus_block(configuration: ExamConfiguration) -> str:
    excerpts = configuration.syllabus_excerpts()
    if not excerpts:
        return ""
    joined = "\n---\n".join(excerpts)
    return f"\nSyllabus notes provided by the student:\n{joined}\n"


def _json_shape(example: t.Any) -> str:
    return json.dumps(example, indent=2, ensure_ascii=False)


# --------------------------
# Conversational prompts
# --------------------------

def greeting_text(context: MentorContext, now: dt.datetime | None = None) -> str:
    cfg = context.configuration
    days = days_until_exam(cfg.exam_date, now)
    return (
        f"Hello {context.username}! I'm your AI study mentor.\n\n"
        f"Subject: {cfg.subject}\n"
        f"Academic level: {cfg.academic_level}\n"
        f"Exam date: {cfg.exam_date.isoformat()}\n"
        f"Time left: {days_label(days)}\n\n"
        f"What area of {cfg.subject} shall we explore first?"
    )


def build_chat_prompt(context: MentorContext, message: str, now: dt.datetime | None = None) -> str:
    cfg = context.configuration
    days = days_until_exam(cfg.exam_date, now)
    return (
        f"You are an AI study mentor for {context.username}, a {cfg.academic_level} student "
        f"preparing for their {cfg.subject} exam on {cfg.exam_date.isoformat()} "
        f"({days} days from now).\n\n"
        "TEACHING APPROACH:\n"
        "- Break complex concepts into small, digestible steps\n"
        "- Create practice scenarios and problems on demand\n"
        "- Offer study strategies that fit the time left before the exam\n"
        "- Ask a follow-up question to check understanding\n"
        "- Be encouraging and warm\n"
        f"{_syllabus_block(cfg)}\n"
        f"Student message: {message}\n\n"
        "Reply with a helpful, educational answer."
    )


def build_insight_prompt(context: MentorContext, now: dt.datetime | None = None) -> str:
    cfg = context.configuration
    days = days_until_exam(cfg.exam_date, now)
    return (
        f"Generate a motivational study insight for {context.username}, a {cfg.academic_level} student "
        f"studying {cfg.subject} with {days} days until their exam. "
        "Keep it short, encouraging, and specific to their situation. Include an emoji."
    )


def build_study_plan_prompt(topic: str, difficulty: str) -> str:
    return (
        f'Create a comprehensive study plan for the topic "{topic}" at {difficulty} difficulty level.\n'
        "Include:\n"
        "1. Learning objectives\n"
        "2. Key concepts to master\n"
        "3. Study timeline (weekly breakdown)\n"
        "4. Practice activities\n"
        "5. Assessment methods\n\n"
        "Format it in a clear, structured way with bullet points and sections."
    )


def build_summary_prompt(topic: str, subject: str | None) -> str:
    return (
        f'Create a comprehensive study summary for the topic "{topic}" in {subject or "general studies"}.\n\n'
        "Include:\n"
        "1. Key concepts and definitions\n"
        "2. Important facts and figures\n"
        "3. Common misconceptions\n"
        "4. Memory techniques or mnemonics\n"
        "5. Practice questions or examples\n\n"
        "Format it clearly with sections and bullet points. Keep it concise but comprehensive."
    )


def build_exam_recommendation_prompt(subject: str, days: int) -> str:
    return (
        f"Create a brief study recommendation for a {subject} exam in {days} days. "
        "Consider the time available and suggest a priority level (high/medium/low) and a focus strategy. "
        "Keep it under 50 words."
    )


def _entry_line(entry: ExamEntry, now: dt.datetime | None) -> str:
    return f"{entry.subject}: {entry.exam_date.isoformat()} ({days_until_exam(entry.exam_date, now)} days)"


def build_schedule_insight_prompt(username: str, entries: t.Sequence[ExamEntry]) -> str:
    details = ", ".join(f"{e.subject} on {e.exam_date.isoformat()}" for e in entries)
    return (
        f"As an AI study mentor for {username}, analyze this exam schedule: {details}. "
        "Provide a strategic insight about time management, priority allocation, and focus areas. "
        "Keep it concise, motivational, and actionable. Include an emoji."
    )


def build_optimized_schedule_prompt(
    username: str,
    entries: t.Sequence[ExamEntry],
    now: dt.datetime | None = None,
) -> str:
    exams = ", ".join(_entry_line(e, now) for e in entries)
    return (
        f"Create an optimized weekly study schedule for {username} with these exams: {exams}. "
        "Provide time allocation suggestions, priority focus, and study strategies. "
        "Format as actionable bullet points. Keep it concise and motivational."
    )


# --------------------------
# Structured prompts
# --------------------------

def build_quiz_question_prompt(context: MentorContext) -> str:
    cfg = context.configuration
    shape = {
        "question": "Your question here",
        "options": ["Option A", "Option B", "Option C", "Option D"],
        "correctAnswer": 0,
        "explanation": "Brief explanation of why this is correct",
    }
    return (
        f"Create a multiple choice question for {cfg.subject} at {cfg.academic_level} level.\n"
        f"{_syllabus_block(cfg)}\n"
        "Respond ONLY with a valid JSON object in this exact format:\n"
        f"{_json_shape(shape)}\n\n"
        "Rules:\n"
        "- exactly 4 options\n"
        "- correctAnswer is the integer index (0-3) of the correct option\n"
        "Make it challenging but appropriate for the level. Do not include any other text or formatting."
    )


def build_quiz_prompt(topic: str, level: str, count: int = 5) -> str:
    shape = [
        {
            "question": "Question text here?",
            "options": ["Option A", "Option B", "Option C", "Option D"],
            "correctAnswer": 0,
            "explanation": "Detailed explanation of why this is correct",
            "memoryTip": "A helpful memory tip or mnemonic device",
        }
    ]
    return (
        f'Create exactly {count} multiple choice questions about "{topic}" for {level} students.\n\n'
        "For each question, also provide a memory tip or mnemonic device to help remember the answer.\n\n"
        "Respond ONLY with a valid JSON array in this exact format:\n"
        f"{_json_shape(shape)}\n\n"
        "Make sure:\n"
        f"- the array holds exactly {count} questions\n"
        f"- questions are appropriate for {level}\n"
        "- each question has exactly 4 options\n"
        "- correctAnswer is the integer index (0-3) of the correct option\n"
        "- include detailed explanations\n"
        "- provide creative memory tips for each question"
    )


def build_flashcard_prompt(topic: str, difficulty: str, count: int = 5) -> str:
    shape = [{"question": f"Question {i}", "answer": f"Answer {i}"} for i in range(1, count + 1)]
    return (
        f'Create exactly {count} flashcards for the topic "{topic}" at {difficulty} difficulty level.\n\n'
        "Respond ONLY with a valid JSON array in this format:\n"
        f"{_json_shape(shape)}\n\n"
        "Make the questions challenging but appropriate for the level."
    )


def build_resources_prompt(topic: str, subject: str | None, count: int = 6) -> str:
    shape = [
        {"title": "Resource Title", "type": kind, "description": "Brief description of the resource"}
        for kind in ("article", "video", "practice", "reference")
    ]
    return (
        f'Generate exactly {count} study resources for the topic "{topic}" in {subject or "general studies"}.\n\n'
        "Respond ONLY with a valid JSON array of objects in this format:\n"
        f"{_json_shape(shape)}\n\n"
        f"The array must hold exactly {count} objects. "
        "The type must be one of: article, video, practice, reference. Mix the types. "
        "Make titles specific and descriptions helpful."
    )
