"""Step-by-step exam setup.

The wizard collects the exam date, the academic level and the subject, then
optionally syllabus files, and hands back one ExamConfiguration. Moving
forward only happens when the current step's field is valid; moving back
keeps everything already entered. Once confirmed the wizard is spent.
"""
from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import typing as t

from mentor.errors import InvalidTransitionError, NotFoundError
from mentor.models import ExamConfiguration, FileRef, JsonDict


class OnboardingState(enum.Enum):
    GREETING = "greeting"
    AWAITING_EXAM_DATE = "awaiting_exam_date"
    AWAITING_ACADEMIC_LEVEL = "awaiting_academic_level"
    AWAITING_SUBJECT = "awaiting_subject"
    AWAITING_SYLLABUS = "awaiting_syllabus"
    CONFIRMED = "confirmed"


_ORDER = list(OnboardingState)

# which field each step collects
_FIELD_FOR_STATE = {
    OnboardingState.AWAITING_EXAM_DATE: "examDate",
    OnboardingState.AWAITING_ACADEMIC_LEVEL: "academicLevel",
    OnboardingState.AWAITING_SUBJECT: "subject",
}

_STATE_PROMPTS = {
    OnboardingState.GREETING: "Welcome {username}! Tell me about your upcoming exam so I can build a personalised study plan.",
    OnboardingState.AWAITING_EXAM_DATE: "When is your exam?",
    OnboardingState.AWAITING_ACADEMIC_LEVEL: "What is your academic level?",
    OnboardingState.AWAITING_SUBJECT: "Which subject are you preparing for?",
    OnboardingState.AWAITING_SYLLABUS: "Upload your syllabus materials (PDFs or images) to personalise your content, or skip this step.",
    OnboardingState.CONFIRMED: "All set! Let's start learning.",
}


@dataclasses.dataclass(frozen=True)
class StepResult:
    state: OnboardingState
    advanced: bool
    message: str | None = None
    configuration: ExamConfiguration | None = None


def parse_exam_date(value: t.Any) -> dt.date | None:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


class OnboardingMachine:
    def __init__(self, username: str = "", today: t.Callable[[], dt.date] | None = None) -> None:
        self.username = username
        self._today = today or dt.date.today
        self.state = OnboardingState.GREETING
        self.exam_date: dt.date | None = None
        self.academic_level = ""
        self.subject = ""
        self.syllabus_files: list[FileRef] = []
        self.last_message: str | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _require_open(self) -> None:
        if self._closed:
            raise InvalidTransitionError("Onboarding is already complete; start a new setup to change it")

    def prompt(self) -> str:
        return _STATE_PROMPTS[self.state].format(username=self.username or "there")

    # ---------- field entry ----------

    def set_field(self, name: str, value: t.Any) -> None:
        """Store the current step's value without moving.

        Earlier answers are changed by going back to their step first.
        """
        self._require_open()
        if name != _FIELD_FOR_STATE.get(self.state):
            raise InvalidTransitionError(f"{name} cannot be changed at this step")
        if name == "examDate":
            self.exam_date = parse_exam_date(value)
        elif name == "academicLevel":
            self.academic_level = str(value or "").strip()
        elif name == "subject":
            self.subject = str(value or "").strip()

    def add_files(self, files: t.Iterable[FileRef]) -> None:
        self._require_open()
        if self.state is not OnboardingState.AWAITING_SYLLABUS:
            raise InvalidTransitionError("Files can only be added at the syllabus step")
        self.syllabus_files.extend(files)

    def remove_file(self, file_id: str) -> FileRef:
        self._require_open()
        for i, f in enumerate(self.syllabus_files):
            if f.id == file_id:
                return self.syllabus_files.pop(i)
        raise NotFoundError("File not found")

    # ---------- transitions ----------

    def _validation_message(self, state: OnboardingState | None = None) -> str | None:
        state = state or self.state
        if state is OnboardingState.AWAITING_EXAM_DATE:
            if self.exam_date is None:
                return "Please choose your exam date"
            if self.exam_date <= self._today():
                return "Exam date must be in the future"
        elif state is OnboardingState.AWAITING_ACADEMIC_LEVEL:
            if not self.academic_level:
                return "Please select your academic level"
        elif state is OnboardingState.AWAITING_SUBJECT:
            if not self.subject:
                return "Please select your subject"
        return None

    def _stay(self, message: str) -> StepResult:
        self.last_message = message
        return StepResult(state=self.state, advanced=False, message=message)

    def _move(self, state: OnboardingState) -> StepResult:
        self.state = state
        self.last_message = None
        return StepResult(state=state, advanced=True)

    def _confirm(self, files: list[FileRef]) -> StepResult:
        # the date can go stale while the syllabus step is open
        for state in _FIELD_FOR_STATE:
            message = self._validation_message(state)
            if message:
                self.state = state
                return self._stay(message)

        configuration = ExamConfiguration(
            subject=self.subject,
            academic_level=self.academic_level,
            exam_date=t.cast(dt.date, self.exam_date),
            syllabus_files=tuple(files),
        )
        self.state = OnboardingState.CONFIRMED
        self.last_message = None
        self._closed = True
        self.exam_date = None
        self.academic_level = ""
        self.subject = ""
        self.syllabus_files = []
        return StepResult(state=self.state, advanced=True, configuration=configuration)

    def advance(self) -> StepResult:
        self._require_open()
        message = self._validation_message()
        if message:
            return self._stay(message)
        if self.state is OnboardingState.AWAITING_SYLLABUS:
            return self._confirm(list(self.syllabus_files))
        return self._move(_ORDER[_ORDER.index(self.state) + 1])

    def submit(self, value: t.Any) -> StepResult:
        """Answer the current step and try to move on."""
        self._require_open()
        field = _FIELD_FOR_STATE.get(self.state)
        if field:
            self.set_field(field, value)
        return self.advance()

    def skip(self) -> StepResult:
        self._require_open()
        if self.state is not OnboardingState.AWAITING_SYLLABUS:
            return self._stay("Only the syllabus step can be skipped")
        return self._confirm([])

    def back(self) -> StepResult:
        self._require_open()
        if self.state is OnboardingState.GREETING:
            return self._stay("You are already at the first step")
        return self._move(_ORDER[_ORDER.index(self.state) - 1])

    def to_dict(self) -> JsonDict:
        return {
            "state": self.state.value,
            "prompt": self.prompt(),
            "message": self.last_message,
            "examDate": self.exam_date.isoformat() if self.exam_date else None,
            "academicLevel": self.academic_level,
            "subject": self.subject,
            "syllabusFiles": [f.to_dict() for f in self.syllabus_files],
        }
