from __future__ import annotations

import dataclasses
import typing as t

from mentor.errors import InvalidTransitionError, ValidationError
from mentor.models import JsonDict
from mentor.schemas import QuizItem


@dataclasses.dataclass(frozen=True)
class AnswerFeedback:
    correct: bool
    selected: int
    correct_answer: int
    explanation: str
    memory_tip: str | None
    score: int

    def to_dict(self) -> JsonDict:
        return {
            "isCorrect": self.correct,
            "selected": self.selected,
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
            "memoryTip": self.memory_tip,
            "score": self.score,
        }


class QuizSession:
    """Walks through a generated quiz one question at a time.

    Each question takes exactly one answer, checked locally against the
    index the model declared.
    """

    def __init__(self, topic: str, items: t.Sequence[QuizItem]) -> None:
        if not items:
            raise ValidationError("A quiz needs at least one question")
        self.topic = topic
        self.items = list(items)
        self.current = 0
        self.score = 0
        self.selected: int | None = None
        self.completed = False

    @property
    def current_item(self) -> QuizItem:
        return self.items[self.current]

    def answer(self, index: t.Any) -> AnswerFeedback:
        if self.completed:
            raise InvalidTransitionError("This quiz is already complete")
        if self.selected is not None:
            raise InvalidTransitionError("This question has already been answered")
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError("Answer must be an option index")
        item = self.current_item
        if not 0 <= index < len(item.options):
            raise ValidationError(f"Answer must be between 0 and {len(item.options) - 1}")

        self.selected = index
        correct = item.is_correct(index)
        if correct:
            self.score += 1
        return AnswerFeedback(
            correct=correct,
            selected=index,
            correct_answer=item.correct_answer,
            explanation=item.explanation,
            memory_tip=item.memory_tip,
            score=self.score,
        )

    def next_question(self) -> None:
        if self.completed:
            raise InvalidTransitionError("This quiz is already complete")
        if self.selected is None:
            raise InvalidTransitionError("Answer the current question first")
        if self.current < len(self.items) - 1:
            self.current += 1
            self.selected = None
        else:
            self.completed = True

    def to_dict(self) -> JsonDict:
        item = self.current_item
        out: JsonDict = {
            "topic": self.topic,
            "index": self.current,
            "total": len(self.items),
            "score": self.score,
            "completed": self.completed,
            "question": item.question,
            "options": list(item.options),
            "answered": self.selected is not None,
        }
        if self.selected is not None:
            out["selected"] = self.selected
            out["correctAnswer"] = item.correct_answer
            out["explanation"] = item.explanation
            out["memoryTip"] = item.memory_tip
        return out
