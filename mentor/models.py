from __future__ import annotations

import dataclasses
import datetime as dt
import typing as t

JsonDict = dict[str, t.Any]

Priority = t.Literal["high", "medium", "low"]


@dataclasses.dataclass(frozen=True)
class FileRef:
    id: str
    name: str
    mime_type: str
    size_bytes: int
    preview: str | None = None
    text_excerpt: str | None = None

    def to_dict(self) -> JsonDict:
        # the excerpt stays server-side, it only feeds prompts
        return {
            "id": self.id,
            "name": self.name,
            "type": self.mime_type,
            "size": self.size_bytes,
            "preview": self.preview,
        }


@dataclasses.dataclass(frozen=True)
class ExamConfiguration:
    subject: str
    academic_level: str
    exam_date: dt.date
    syllabus_files: tuple[FileRef, ...] = ()

    def syllabus_excerpts(self) -> list[str]:
        return [f.text_excerpt for f in self.syllabus_files if f.text_excerpt]

    def to_dict(self) -> JsonDict:
        return {
            "subject": self.subject,
            "academicLevel": self.academic_level,
            "examDate": self.exam_date.isoformat(),
            "syllabusFiles": [f.to_dict() for f in self.syllabus_files],
        }


@dataclasses.dataclass(frozen=True)
class MentorContext:
    """Everything a prompt needs about the learner, passed explicitly."""

    username: str
    configuration: ExamConfiguration


@dataclasses.dataclass(frozen=True)
class ChatMessage:
    id: str
    text: str
    is_from_assistant: bool
    timestamp: dt.datetime

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "text": self.text,
            "isBot": self.is_from_assistant,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclasses.dataclass(frozen=True)
class ExamEntry:
    id: str
    subject: str
    exam_date: dt.date
    priority: Priority
    study_hours: float
    progress_percent: int
    ai_recommendation: str

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "subject": self.subject,
            "examDate": self.exam_date.isoformat(),
            "priority": self.priority,
            "studyHours": self.study_hours,
            "progress": self.progress_percent,
            "aiRecommendation": self.ai_recommendation,
        }
