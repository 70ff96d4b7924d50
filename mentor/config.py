# config.py

import os


# --- helpers ---
def _get_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")

def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default

def _get_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default

# --- Completion endpoint ---
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-exp")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_TIMEOUT_S = _get_float("GEMINI_TIMEOUT_S", 60.0)

# --- Generation controls ---
TEMPERATURE = _get_float("MENTOR_TEMPERATURE", 0.7)
CHAT_MAX_OUTPUT_TOKENS      = _get_int("CHAT_MAX_OUTPUT_TOKENS", 1000)
QUIZ_MAX_OUTPUT_TOKENS      = _get_int("QUIZ_MAX_OUTPUT_TOKENS", 3000)
TOOLS_MAX_OUTPUT_TOKENS     = _get_int("TOOLS_MAX_OUTPUT_TOKENS", 2000)
TIMETABLE_MAX_OUTPUT_TOKENS = _get_int("TIMETABLE_MAX_OUTPUT_TOKENS", 800)

# --- Structured reply sizes ---
QUIZ_QUESTION_COUNT = _get_int("QUIZ_QUESTION_COUNT", 5)
FLASHCARD_COUNT     = _get_int("FLASHCARD_COUNT", 5)
RESOURCE_COUNT      = _get_int("RESOURCE_COUNT", 6)

# --- Uploads ---
MAX_UPLOAD_MB = _get_int("MAX_UPLOAD_MB", 10)
SYLLABUS_EXCERPT_CHARS = _get_int("SYLLABUS_EXCERPT_CHARS", 2000)

# --- Server ---
PORT = _get_int("PORT", 8080)
SESSION_IDLE_TIMEOUT_S = _get_float("SESSION_IDLE_TIMEOUT_S", 6 * 60 * 60)
DEBUG = _get_bool("FLASK_DEBUG", False)
