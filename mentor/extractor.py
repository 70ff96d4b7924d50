"""Recover structured JSON from free-form model replies.

Models wrap JSON in prose and markdown fences. The scanner walks the text
with a bracket stack that understands JSON strings, so braces inside quoted
values never end a match early. An opener that never closes means the reply
was cut off, which is reported straight away instead of guessing at a
substring.
"""
from __future__ import annotations

import json
import logging
import re
import typing as t

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from mentor.errors import ExtractionError, SchemaValidationError
from mentor.schemas import Flashcard, QuizItem, StudyResource

logger = logging.getLogger(__name__)

# fences on their own line, or hugging the start/end of the reply
_FENCE_LINE_RE = re.compile(r"^[ \t]*```[a-zA-Z0-9_-]*[ \t]*$\n?", re.MULTILINE)
_LEADING_FENCE_RE = re.compile(r"\A```[a-zA-Z0-9_-]*")
_TRAILING_FENCE_RE = re.compile(r"```\Z")
_CLOSERS = {"{": "}", "[": "]"}

M = t.TypeVar("M", bound=BaseModel)


def strip_code_fences(text: str) -> str:
    s = _FENCE_LINE_RE.sub("", text.strip()).strip()
    s = _LEADING_FENCE_RE.sub("", s)
    return _TRAILING_FENCE_RE.sub("", s).strip()


def _balanced_end(text: str, start: int) -> int:
    """Index one past the delimiter closing ``text[start]``, or -1."""
    stack: list[str] = []
    in_str = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack[-1] != ch:
                return -1
            stack.pop()
            if not stack:
                return i + 1
    return -1


def extract_json(text: str, expect: type | None = None) -> t.Any:
    """Return the first well-formed JSON object or array embedded in ``text``.

    ``expect`` (``dict`` or ``list``) skips balanced candidates of the other
    container type, e.g. a stray ``{note}`` ahead of the array we asked for.
    """
    s = strip_code_fences(text or "")
    pos = 0
    found_any = False
    while True:
        starts = [i for i in (s.find("{", pos), s.find("[", pos)) if i != -1]
        if not starts:
            break
        start = min(starts)
        end = _balanced_end(s, start)
        if end == -1:
            raise ExtractionError(f"unbalanced JSON starting at offset {start}")
        found_any = True
        candidate = s[start:end]
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            pos = start + 1
            continue
        if expect is not None and not isinstance(value, expect):
            pos = end
            continue
        return value

    if not found_any:
        raise ExtractionError("no JSON object or array in reply")
    raise ExtractionError("no parseable JSON of the expected shape in reply")


def _validate(model: type[M], value: t.Any) -> M:
    try:
        return model.model_validate(value)
    except PydanticValidationError as e:
        raise SchemaValidationError(f"{model.__name__}: {e}") from e


def _validate_list(model: type[M], value: t.Any, count: int) -> list[M]:
    if not isinstance(value, list):
        raise SchemaValidationError(f"expected a list of {model.__name__}, got {type(value).__name__}")
    if len(value) != count:
        raise SchemaValidationError(f"expected exactly {count} {model.__name__} items, got {len(value)}")
    return [_validate(model, item) for item in value]


def parse_quiz_item(text: str) -> QuizItem:
    return _validate(QuizItem, extract_json(text, expect=dict))


def parse_quiz(text: str, count: int = 5) -> list[QuizItem]:
    return _validate_list(QuizItem, extract_json(text, expect=list), count)


def parse_flashcards(text: str, count: int = 5) -> list[Flashcard]:
    return _validate_list(Flashcard, extract_json(text, expect=list), count)


def parse_resources(text: str, count: int = 6) -> list[StudyResource]:
    return _validate_list(StudyResource, extract_json(text, expect=list), count)
