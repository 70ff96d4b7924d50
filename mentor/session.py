"""Per-learner state held by the API between requests.

A session owns its onboarding wizard, exam configuration, chat history, exam
registry, quiz and timer. Nothing is shared across sessions. Network calls
run outside the session lock under a single-flight guard; when one returns
after the session was discarded or expired its result is dropped, not applied.
Sessions nobody has touched for a while expire.
"""
from __future__ import annotations

import logging
import threading
import time
import typing as t

from bson import ObjectId

from mentor import config
from mentor.conversation import Conversation
from mentor.errors import InvalidTransitionError, NotFoundError, SessionClosedError
from mentor.exam_registry import ExamRegistry
from mentor.models import ExamConfiguration, JsonDict, MentorContext
from mentor.onboarding import OnboardingMachine
from mentor.quiz import QuizSession
from mentor.single_flight import SingleFlight
from mentor.study_timer import StudyTimer

logger = logging.getLogger(__name__)

T = t.TypeVar("T")


class MentorSession:
    def __init__(self, username: str, user_id: str | None = None) -> None:
        self.id = str(ObjectId())
        self.username = username
        self.user_id = user_id
        self.onboarding: OnboardingMachine | None = OnboardingMachine(username=username)
        self.configuration: ExamConfiguration | None = None
        self.conversation = Conversation()
        self.registry = ExamRegistry()
        self.quiz: QuizSession | None = None
        self.timer = StudyTimer()
        self.flights = SingleFlight()
        self.lock = threading.RLock()
        self.closed = False

    def require_onboarding(self) -> OnboardingMachine:
        if self.onboarding is None:
            raise InvalidTransitionError("Onboarding is already complete")
        return self.onboarding

    def context(self) -> MentorContext:
        if self.configuration is None:
            raise InvalidTransitionError("Finish setting up your exam first")
        return MentorContext(username=self.username, configuration=self.configuration)

    def complete_onboarding(self, configuration: ExamConfiguration) -> None:
        with self.lock:
            self.configuration = configuration
            self.onboarding = None
            self.registry.seed_primary(configuration)

    def run(self, action: str, call: t.Callable[[], T]) -> T:
        """Run ``call`` as the single in-flight ``action`` of this session."""
        if self.closed:
            raise SessionClosedError()
        with self.flights.guard(action):
            result = call()
        if self.closed:
            logger.info("Dropping %s result for discarded session %s", action, self.id)
            raise SessionClosedError()
        return result

    def to_dict(self) -> JsonDict:
        return {
            "sessionID": self.id,
            "username": self.username,
            "onboarding": self.onboarding.to_dict() if self.onboarding else None,
            "configuration": self.configuration.to_dict() if self.configuration else None,
        }


class SessionStore:
    """Live sessions by id. Sessions idle longer than ``idle_timeout_s`` are
    closed and dropped the next time the store is used."""

    def __init__(
        self,
        idle_timeout_s: float | None = None,
        clock: t.Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, MentorSession] = {}
        self._last_seen: dict[str, float] = {}
        self.idle_timeout_s = config.SESSION_IDLE_TIMEOUT_S if idle_timeout_s is None else idle_timeout_s
        self._clock = clock

    def _sweep(self, now: float) -> list[MentorSession]:
        # caller holds self._lock
        expired = [sid for sid, seen in self._last_seen.items() if now - seen > self.idle_timeout_s]
        out = []
        for sid in expired:
            del self._last_seen[sid]
            out.append(self._sessions.pop(sid))
        return out

    @staticmethod
    def _close(session: MentorSession) -> None:
        session.closed = True
        session.timer.pause()

    def _expire(self, expired: list[MentorSession]) -> None:
        for session in expired:
            logger.info("Session %s expired after %.0fs idle", session.id, self.idle_timeout_s)
            self._close(session)

    def create(self, username: str, user_id: str | None = None) -> MentorSession:
        session = MentorSession(username=username, user_id=user_id)
        with self._lock:
            now = self._clock()
            expired = self._sweep(now)
            self._sessions[session.id] = session
            self._last_seen[session.id] = now
        self._expire(expired)
        return session

    def get(self, session_id: str) -> MentorSession:
        with self._lock:
            now = self._clock()
            expired = self._sweep(now)
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_seen[session_id] = now
        self._expire(expired)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)
        if session is None:
            raise NotFoundError("Session not found")
        self._close(session)

    def __len__(self) -> int:
        return len(self._sessions)
