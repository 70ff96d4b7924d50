from __future__ import annotations

import datetime as dt
import threading

from bson import ObjectId

from mentor.models import ChatMessage


class Conversation:
    """Append-only chat history for one session, in insertion order."""

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []
        self._lock = threading.Lock()

    def _append(self, text: str, is_from_assistant: bool) -> ChatMessage:
        message = ChatMessage(
            id=str(ObjectId()),
            text=text,
            is_from_assistant=is_from_assistant,
            timestamp=dt.datetime.now(dt.timezone.utc),
        )
        with self._lock:
            self._messages.append(message)
        return message

    def add_user_message(self, text: str) -> ChatMessage:
        return self._append(text, is_from_assistant=False)

    def add_assistant_message(self, text: str) -> ChatMessage:
        return self._append(text, is_from_assistant=True)

    def messages(self) -> tuple[ChatMessage, ...]:
        with self._lock:
            return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
