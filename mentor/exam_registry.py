from __future__ import annotations

import dataclasses
import datetime as dt
import math
import threading
import typing as t

from bson import ObjectId

from mentor.errors import NotFoundError, ValidationError
from mentor.models import ExamConfiguration, ExamEntry, Priority
from mentor.onboarding import parse_exam_date
from mentor.prompts import days_until_exam

# hours of study that count as fully prepared
FULL_PREPARATION_HOURS = 10

PRIMARY_RECOMMENDATION = "Primary focus exam - allocate maximum study time"


def priority_for_days(days: int) -> Priority:
    if days <= 7:
        return "high"
    if days <= 21:
        return "medium"
    return "low"


def progress_for_hours(hours: float) -> int:
    # half-up rounding, so 0.05h shows as 1%
    hours = min(hours, FULL_PREPARATION_HOURS)
    return math.floor(hours / FULL_PREPARATION_HOURS * 100 + 0.5)


class ExamRegistry:
    """Exams the learner is tracking, kept sorted by date.

    Priority is fixed when an exam is added and is not revisited as the date
    gets closer.
    """

    def __init__(self) -> None:
        self._entries: list[ExamEntry] = []
        self._lock = threading.Lock()

    def _insert(self, entry: ExamEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            # list.sort is stable, equal dates keep insertion order
            self._entries.sort(key=lambda e: e.exam_date)

    def add(
        self,
        subject: t.Any,
        exam_date: t.Any,
        ai_recommendation: str = "",
        now: dt.datetime | None = None,
    ) -> ExamEntry:
        subject_s = str(subject or "").strip()
        date_v = parse_exam_date(exam_date)
        if not subject_s or date_v is None:
            raise ValidationError("Please fill in both subject and exam date")

        days = days_until_exam(date_v, now)
        entry = ExamEntry(
            id=str(ObjectId()),
            subject=subject_s,
            exam_date=date_v,
            priority=priority_for_days(days),
            study_hours=0,
            progress_percent=0,
            ai_recommendation=ai_recommendation,
        )
        self._insert(entry)
        return entry

    def seed_primary(self, configuration: ExamConfiguration) -> ExamEntry:
        entry = ExamEntry(
            id=str(ObjectId()),
            subject=configuration.subject,
            exam_date=configuration.exam_date,
            priority="high",
            study_hours=0,
            progress_percent=0,
            ai_recommendation=PRIMARY_RECOMMENDATION,
        )
        self._insert(entry)
        return entry

    def update_study_hours(self, entry_id: str, hours: t.Any) -> ExamEntry:
        try:
            hours_f = float(hours)
        except (TypeError, ValueError) as e:
            raise ValidationError("Study hours must be a number") from e
        if math.isnan(hours_f) or math.isinf(hours_f):
            raise ValidationError("Study hours must be a number")
        hours_f = max(hours_f, 0.0)

        with self._lock:
            for i, entry in enumerate(self._entries):
                if entry.id == entry_id:
                    updated = dataclasses.replace(
                        entry,
                        study_hours=hours_f,
                        progress_percent=progress_for_hours(hours_f),
                    )
                    self._entries[i] = updated
                    return updated
        raise NotFoundError("Exam entry not found")

    def get(self, entry_id: str) -> ExamEntry:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        raise NotFoundError("Exam entry not found")

    def entries(self) -> tuple[ExamEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
