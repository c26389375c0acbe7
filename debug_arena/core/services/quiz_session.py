"""State machine driving one learner through one assignment."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math
import random
from threading import Lock
import time
from typing import Callable, Protocol

from debug_arena.core.code_verifier import CodeVerifier, VerificationMethod
from debug_arena.core.errors import (
    DuplicateRecordError,
    SessionStateError,
    StorageError,
    SubmissionInProgressError,
    SubmissionNotSavedError,
)
from debug_arena.core.models import (
    Assignment,
    Question,
    Quiz,
    QuizResults,
    SessionContext,
    Submission,
    utc_now,
)
from debug_arena.core.services.assignment_loader import AssignmentLoader
from debug_arena.core.services.cheat_monitor import CheatMonitor
from debug_arena.core.services.question_timer import QuestionTimer
from debug_arena.core.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[Callable[[], None]], TimerHandle]


class SessionState(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


@dataclass(slots=True)
class SubmissionOutcome:
    question_id: str
    is_correct: bool
    method: VerificationMethod
    time_taken: int
    auto_submitted: bool
    duplicate: bool = False
    quiz_completed: bool = False


@dataclass(slots=True)
class SessionSnapshot:
    """Read-only view of the session for the API and UI layers."""

    state: SessionState
    assignment_id: str | None
    quiz: Quiz | None
    question: Question | None
    question_index: int
    question_count: int
    code: str
    remaining_seconds: int
    tab_switch_count: int
    results: QuizResults | None
    last_error: str | None


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class QuizSession:
    """Sequences questions, runs the countdown and records submissions.

    Every state exit cancels the running timer, and ticks are tagged with a
    generation number so a callback from a cancelled timer is ignored.
    """

    def __init__(
        self,
        context: SessionContext,
        store: QuizStore,
        verifier: CodeVerifier,
        *,
        timer_factory: TimerFactory = QuestionTimer,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self._context = context
        self._store = store
        self._verifier = verifier
        self._timer_factory = timer_factory
        self._clock = clock
        self._rng = rng
        self._lock = Lock()

        self._state = SessionState.LOADING
        self._assignment: Assignment | None = None
        self._quiz: Quiz | None = None
        self._questions: list[Question] = []
        self._index: int = 0
        self._code: str = ""
        self._remaining: int = 0
        self._question_started_at: float = 0.0
        self._results: QuizResults | None = None
        self._last_error: str | None = None
        self._monitor: CheatMonitor | None = None

        self._timer: TimerHandle | None = None
        self._timer_generation: int = 0
        self._closed = False

    # --- Lifecycle ---

    def start(self, assignment_id: str) -> SessionSnapshot:
        """Load the assignment and enter the first unanswered question."""
        with self._lock:
            if self._state != SessionState.LOADING:
                raise SessionStateError("Session already started.")

        loaded = AssignmentLoader(self._store, self._context, self._rng).load(assignment_id)

        with self._lock:
            self._assignment = loaded.assignment
            self._quiz = loaded.quiz
            self._questions = loaded.questions
            self._monitor = CheatMonitor(self._store, self._context, loaded.assignment.id)
            if loaded.already_completed:
                self._state = SessionState.COMPLETED
                self._results = self._fetch_results()
            elif loaded.all_answered:
                self._index = len(self._questions)
                self._complete()
            else:
                self._enter_question(loaded.resume_index)
        return self.snapshot()

    def close(self) -> None:
        """Abandon the session; unsubmitted typing is discarded."""
        with self._lock:
            self._closed = True
            self._cancel_timer()

    # --- Learner actions ---

    def update_code(self, code: str) -> None:
        with self._lock:
            if self._state != SessionState.ACTIVE:
                raise SessionStateError(f"Cannot edit code while {self._state.value}.")
            self._code = code

    def submit(self, question_id: str | None = None) -> SubmissionOutcome:
        """Submit the current question.

        ``question_id`` names the question the learner was looking at; when the
        timer already auto-submitted it the call is rejected instead of
        submitting the next question.
        """
        outcome = self._submit(question_id, auto=False)
        if outcome is None:
            raise SessionStateError(f"Question '{question_id}' was already submitted.")
        return outcome

    def tick(self, generation: int | None = None) -> None:
        """Advance the countdown by one second, auto-submitting at zero.

        Ticks carrying a ``generation`` other than the running timer's are dropped.
        """
        with self._lock:
            if generation is not None and generation != self._timer_generation:
                return
            if self._closed or self._state != SessionState.ACTIVE:
                return
            if self._remaining > 1:
                self._remaining -= 1
                return
            self._remaining = 0
            question_id = self._questions[self._index].id

        try:
            self._submit(question_id, auto=True)
        except SubmissionNotSavedError as exc:
            logger.warning("Auto-submit failed for assignment %s: %s", self.assignment_id, exc)

    # --- Anti-cheat signals ---

    def record_visibility_change(self, hidden: bool) -> int:
        with self._lock:
            if hidden and self._monitor is not None and self._state in (SessionState.ACTIVE, SessionState.SUBMITTING):
                return self._monitor.record_tab_switch()
            return self._monitor.tab_switch_count if self._monitor else 0

    def record_clipboard_attempt(self, action: str | None = None) -> bool:
        with self._lock:
            if self._monitor is None or self._state == SessionState.COMPLETED:
                return False
            self._monitor.record_copy_paste_attempt(action)
            return True

    def handle_back_navigation(self) -> bool:
        """Return True when the client should re-assert the quiz location."""
        with self._lock:
            if self._monitor is None or self._state == SessionState.COMPLETED:
                return False
            self._monitor.record_back_navigation()
            return True

    # --- Queries ---

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def assignment_id(self) -> str | None:
        return self._assignment.id if self._assignment else None

    @property
    def results(self) -> QuizResults | None:
        with self._lock:
            return self._results

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            question = self._current_question()
            return SessionSnapshot(
                state=self._state,
                assignment_id=self.assignment_id,
                quiz=self._quiz,
                question=question,
                question_index=self._index,
                question_count=len(self._questions),
                code=self._code,
                remaining_seconds=self._remaining,
                tab_switch_count=self._monitor.tab_switch_count if self._monitor else 0,
                results=self._results,
                last_error=self._last_error,
            )

    # --- Internals ---

    def _submit(self, question_id: str | None, auto: bool) -> SubmissionOutcome | None:
        """Verify, persist and advance; returns None when ``question_id`` is no longer current."""
        with self._lock:
            if self._state == SessionState.SUBMITTING:
                if auto:
                    return None
                raise SubmissionInProgressError("A submission is already in progress.")
            if self._state != SessionState.ACTIVE or self._closed:
                if auto:
                    return None
                raise SessionStateError(f"Cannot submit while {self._state.value}.")
            assignment, quiz = self._require_loaded()
            question = self._questions[self._index]
            if question_id is not None and question.id != question_id:
                return None
            code = self._code
            if auto:
                time_taken = quiz.time_per_question
            else:
                time_taken = _round_half_up(self._clock() - self._question_started_at)
            language = quiz.language
            assignment_id = assignment.id
            self._state = SessionState.SUBMITTING
            self._cancel_timer()

        verification = self._verifier.verify(question, language, code)
        submission = Submission(
            assignment_id=assignment_id,
            question_id=question.id,
            user_code=code,
            is_correct=verification.is_correct,
            time_taken=time_taken,
        )

        duplicate = False
        try:
            self._store.insert_submission(submission)
        except DuplicateRecordError:
            logger.warning("Question %s already answered for %s; skipping write", question.id, assignment_id)
            duplicate = True
        except StorageError as exc:
            with self._lock:
                self._state = SessionState.ACTIVE
                self._last_error = "Submission not confirmed. Please try again."
                if self._remaining > 0 and not self._closed:
                    self._start_timer()
            raise SubmissionNotSavedError(f"Could not save submission for question '{question.id}'") from exc

        logger.info(
            "Submitted question %s for %s: correct=%s via %s in %ss%s",
            question.id,
            assignment_id,
            verification.is_correct,
            verification.method.value,
            time_taken,
            " (auto)" if auto else "",
        )
        with self._lock:
            self._last_error = None
            completed = self._advance()
        return SubmissionOutcome(
            question_id=question.id,
            is_correct=verification.is_correct,
            method=verification.method,
            time_taken=time_taken,
            auto_submitted=auto,
            duplicate=duplicate,
            quiz_completed=completed,
        )

    def _current_question(self) -> Question | None:
        if self._state in (SessionState.ACTIVE, SessionState.SUBMITTING) and self._index < len(self._questions):
            return self._questions[self._index]
        return None

    def _require_loaded(self) -> tuple[Assignment, Quiz]:
        if self._assignment is None or self._quiz is None:
            raise SessionStateError("Session has not been started.")
        return self._assignment, self._quiz

    def _enter_question(self, index: int) -> None:
        _assignment, quiz = self._require_loaded()
        self._cancel_timer()
        self._index = index
        self._code = self._questions[index].incorrect_code
        self._remaining = quiz.time_per_question
        self._question_started_at = self._clock()
        self._state = SessionState.ACTIVE
        if not self._closed:
            self._start_timer()

    def _advance(self) -> bool:
        if self._index + 1 < len(self._questions):
            self._enter_question(self._index + 1)
            return False
        self._index = len(self._questions)
        self._complete()
        return True

    def _complete(self) -> None:
        assignment, _quiz = self._require_loaded()
        self._cancel_timer()
        self._state = SessionState.COMPLETED
        self._code = ""
        self._remaining = 0
        try:
            self._store.mark_assignment_completed(assignment.id, utc_now())
        except StorageError as exc:
            # The next load finds every question answered and completes again.
            logger.warning("Could not mark assignment %s completed: %s", assignment.id, exc)
        assignment.is_completed = True
        self._results = self._fetch_results()

    def _fetch_results(self) -> QuizResults | None:
        assignment, _quiz = self._require_loaded()
        try:
            submissions = self._store.list_submissions(assignment.id)
        except StorageError as exc:
            logger.warning("Could not fetch results for %s: %s", assignment.id, exc)
            return None
        return QuizResults(correct=sum(1 for s in submissions if s.is_correct), total=len(submissions))

    def _start_timer(self) -> None:
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._timer_factory(lambda: self.tick(generation))
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_generation += 1
