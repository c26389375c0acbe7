"""Facade shared by the API server and the desktop UI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from threading import Lock
from typing import Callable

from debug_arena.core.code_verifier import CodeVerifier
from debug_arena.core.errors import RecordNotFoundError, SessionStateError
from debug_arena.core.models import Assignment, Quiz, SessionContext
from debug_arena.core.services.code_executor import PistonExecutor, PlaygroundRun
from debug_arena.core.services.leaderboard import Leaderboard, LeaderboardRow
from debug_arena.core.services.quiz_authoring import QuizAuthoring
from debug_arena.core.services.quiz_session import QuizSession, SessionSnapshot, SubmissionOutcome
from debug_arena.core.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)

SessionFactory = Callable[[SessionContext], QuizSession]


class ClientEvent(str, Enum):
    """Browser signals forwarded by the learner page."""

    VISIBILITY_HIDDEN = "visibility_hidden"
    VISIBILITY_VISIBLE = "visibility_visible"
    COPY = "copy"
    PASTE = "paste"
    BACK_NAVIGATION = "back_navigation"


@dataclass(slots=True)
class ClientEventResult:
    tab_switch_count: int
    suppress_default: bool


@dataclass(slots=True)
class AssignmentSummary:
    assignment: Assignment
    quiz: Quiz | None


class ArenaManager:
    """Facade over storage, sessions, leaderboard, playground and authoring."""

    def __init__(
        self,
        store: QuizStore,
        executor: PistonExecutor | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._lock = Lock()
        self._store = store
        self._executor = executor
        self._verifier = CodeVerifier(executor)
        self._leaderboard = Leaderboard(store)
        self._session_factory = session_factory or self._default_session_factory
        self._sessions: dict[tuple[str, str], QuizSession] = {}

    @property
    def store(self) -> QuizStore:
        return self._store

    # --- Quiz sessions ---

    def open_session(self, context: SessionContext, assignment_id: str) -> SessionSnapshot:
        """Start a session, or return the running one for the same learner and assignment."""
        key = (context.user_id, assignment_id)
        with self._lock:
            existing = self._sessions.get(key)
        if existing is not None:
            return existing.snapshot()

        session = self._session_factory(context)
        snapshot = session.start(assignment_id)
        with self._lock:
            current = self._sessions.setdefault(key, session)
        if current is not session:
            session.close()
            return current.snapshot()
        return snapshot

    def get_snapshot(self, context: SessionContext, assignment_id: str) -> SessionSnapshot:
        return self._require_session(context, assignment_id).snapshot()

    def update_code(self, context: SessionContext, assignment_id: str, code: str) -> None:
        self._require_session(context, assignment_id).update_code(code)

    def submit(
        self, context: SessionContext, assignment_id: str, question_id: str | None = None
    ) -> SubmissionOutcome:
        return self._require_session(context, assignment_id).submit(question_id)

    def record_client_event(
        self,
        context: SessionContext,
        assignment_id: str,
        event: ClientEvent,
    ) -> ClientEventResult:
        session = self._require_session(context, assignment_id)
        if event in (ClientEvent.VISIBILITY_HIDDEN, ClientEvent.VISIBILITY_VISIBLE):
            count = session.record_visibility_change(hidden=event == ClientEvent.VISIBILITY_HIDDEN)
            return ClientEventResult(tab_switch_count=count, suppress_default=False)
        if event == ClientEvent.BACK_NAVIGATION:
            suppress = session.handle_back_navigation()
        else:
            suppress = session.record_clipboard_attempt(event.value)
        return ClientEventResult(tab_switch_count=session.snapshot().tab_switch_count, suppress_default=suppress)

    def close_session(self, context: SessionContext, assignment_id: str) -> None:
        with self._lock:
            session = self._sessions.pop((context.user_id, assignment_id), None)
        if session is not None:
            session.close()

    def shutdown(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
        if self._executor is not None:
            self._executor.close()

    # --- Dashboard and leaderboard ---

    def list_assignments(self, context: SessionContext) -> list[AssignmentSummary]:
        summaries: list[AssignmentSummary] = []
        for assignment in self._store.list_assignments_for_user(context.user_id):
            try:
                quiz = self._store.get_quiz(assignment.quiz_id)
            except RecordNotFoundError:
                quiz = None
            summaries.append(AssignmentSummary(assignment=assignment, quiz=quiz))
        return summaries

    def list_quizzes(self, active_only: bool = True) -> list[Quiz]:
        return self._store.list_quizzes(active_only=active_only)

    def get_leaderboard(self, quiz_id: str | None = None) -> list[LeaderboardRow]:
        return self._leaderboard.compute(quiz_id)

    def run_playground(self, language: str, code: str) -> PlaygroundRun:
        if self._executor is None:
            raise SessionStateError("Code execution is not configured.")
        return self._executor.run_playground(language, code)

    # --- Authoring ---

    def authoring(self, context: SessionContext) -> QuizAuthoring:
        return QuizAuthoring(self._store, context)

    # --- Internals ---

    def _require_session(self, context: SessionContext, assignment_id: str) -> QuizSession:
        with self._lock:
            session = self._sessions.get((context.user_id, assignment_id))
        if session is None:
            raise SessionStateError(f"No open session for assignment '{assignment_id}'.")
        return session

    def _default_session_factory(self, context: SessionContext) -> QuizSession:
        return QuizSession(context, self._store, self._verifier)
