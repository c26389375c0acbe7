from __future__ import annotations

import threading
from typing import Callable

import pytest

from debug_arena.core.code_verifier import VerificationMethod
from debug_arena.core.errors import (
    AssignmentNotFoundError,
    DuplicateRecordError,
    SessionStateError,
    StorageError,
    SubmissionInProgressError,
    SubmissionNotSavedError,
)
from debug_arena.core.models import CheatEventType, QuestionOrder, Submission
from debug_arena.core.services.quiz_session import SessionState
from debug_arena.core.services.quiz_store import InMemoryQuizStore

from conftest import StubExecutor


class FlakyStore(InMemoryQuizStore):
    """In-memory store whose writes can be made to fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.submission_error: type[StorageError] | None = None
        self.fail_completion = False
        self.fail_cheat_events = False

    def insert_submission(self, submission: Submission) -> None:
        if self.submission_error is not None:
            raise self.submission_error("write rejected")
        super().insert_submission(submission)

    def mark_assignment_completed(self, assignment_id, completed_at) -> None:
        if self.fail_completion:
            raise StorageError("update rejected")
        super().mark_assignment_completed(assignment_id, completed_at)

    def insert_cheat_event(self, event) -> None:
        if self.fail_cheat_events:
            raise StorageError("insert rejected")
        super().insert_cheat_event(event)


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


def _fix(session) -> None:
    question = session.snapshot().question
    session.update_code(question.correct_code)


def test_start_enters_first_question_with_buggy_code(make_quiz, make_session, timers):
    assignment = make_quiz()
    session = make_session()

    snapshot = session.start(assignment.id)

    assert snapshot.state == SessionState.ACTIVE
    assert snapshot.question_index == 0
    assert snapshot.question_count == 2
    assert snapshot.code == snapshot.question.incorrect_code
    assert snapshot.remaining_seconds == 10
    assert len(timers.active) == 1


def test_start_rejects_foreign_assignment(make_quiz, make_session):
    assignment = make_quiz(user_id="someone-else")
    session = make_session()

    with pytest.raises(AssignmentNotFoundError):
        session.start(assignment.id)


def test_start_twice_is_rejected(make_quiz, make_session):
    assignment = make_quiz()
    session = make_session()
    session.start(assignment.id)

    with pytest.raises(SessionStateError):
        session.start(assignment.id)


def test_ticks_count_down_and_auto_submit_once_at_zero(store, make_quiz, make_session, timers):
    assignment = make_quiz(count=2, time_per_question=10)
    session = make_session()
    session.start(assignment.id)
    first_question = session.snapshot().question
    first_timer = timers.latest

    first_timer.fire(9)
    assert session.snapshot().remaining_seconds == 1
    assert store.list_submissions(assignment.id) == []

    first_timer.fire()

    submissions = store.list_submissions(assignment.id)
    assert len(submissions) == 1
    assert submissions[0].question_id == first_question.id
    assert submissions[0].time_taken == 10
    assert submissions[0].user_code == first_question.incorrect_code
    assert not submissions[0].is_correct
    assert first_timer.cancelled

    snapshot = session.snapshot()
    assert snapshot.question_index == 1
    assert snapshot.remaining_seconds == 10

    # A late wake-up of the cancelled timer must not touch the next question.
    first_timer.fire(5)
    assert session.snapshot().remaining_seconds == 10
    assert len(store.list_submissions(assignment.id)) == 1


def test_auto_submit_completes_quiz_after_last_question(store, make_quiz, make_session, timers):
    assignment = make_quiz(count=2, time_per_question=3)
    session = make_session()
    session.start(assignment.id)

    timers.latest.fire(3)
    timers.latest.fire(3)

    snapshot = session.snapshot()
    assert snapshot.state == SessionState.COMPLETED
    assert snapshot.results.correct == 0
    assert snapshot.results.total == 2
    assert all(s.time_taken == 3 for s in store.list_submissions(assignment.id))
    assert store.get_assignment(assignment.id, assignment.user_id).is_completed
    assert timers.active == []


def test_manual_submit_records_elapsed_seconds_rounded_half_up(store, make_quiz, make_session, clock):
    assignment = make_quiz()
    session = make_session()
    session.start(assignment.id)
    _fix(session)

    clock.advance(4.5)
    outcome = session.submit()

    assert outcome.is_correct
    assert outcome.method == VerificationMethod.NORMALIZED
    assert outcome.time_taken == 5
    assert not outcome.auto_submitted
    assert not outcome.quiz_completed
    assert store.list_submissions(assignment.id)[0].time_taken == 5


def test_full_run_reports_results(store, make_quiz, make_session, clock):
    assignment = make_quiz(count=2)
    session = make_session()
    session.start(assignment.id)

    _fix(session)
    clock.advance(3)
    session.submit()
    clock.advance(2)
    outcome = session.submit()

    assert outcome.quiz_completed
    assert not outcome.is_correct
    assert session.state == SessionState.COMPLETED
    assert session.results.correct == 1
    assert session.results.total == 2
    assert session.snapshot().question is None


def test_submit_while_submission_in_flight_is_rejected(make_quiz, make_session):
    assignment = make_quiz(count=2, expected_output="0")
    executor = StubExecutor(stdout="0\n")
    session = make_session(executor=executor)
    session.start(assignment.id)
    nested: list[Exception] = []

    def reenter() -> None:
        executor.on_execute = None
        try:
            session.submit()
        except SubmissionInProgressError as exc:
            nested.append(exc)
        # Ticks arriving mid-flight are ignored rather than queued.
        for _ in range(20):
            session.tick()

    executor.on_execute = reenter
    outcome = session.submit()

    assert len(nested) == 1
    assert outcome.method == VerificationMethod.OUTPUT
    assert outcome.is_correct
    assert session.snapshot().question_index == 1
    assert session.snapshot().remaining_seconds == 10


def test_storage_failure_keeps_learner_on_question(store, make_quiz, make_session, timers):
    assignment = make_quiz()
    session = make_session()
    session.start(assignment.id)
    question = session.snapshot().question
    store.submission_error = StorageError

    with pytest.raises(SubmissionNotSavedError):
        session.submit()

    snapshot = session.snapshot()
    assert snapshot.state == SessionState.ACTIVE
    assert snapshot.question.id == question.id
    assert snapshot.last_error
    assert len(timers.active) == 1

    store.submission_error = None
    session.submit()
    assert session.snapshot().question_index == 1
    assert session.snapshot().last_error is None


def test_auto_submit_storage_failure_is_not_raised(store, make_quiz, make_session, timers):
    assignment = make_quiz(time_per_question=2)
    session = make_session()
    session.start(assignment.id)
    store.submission_error = StorageError

    timers.latest.fire(2)

    snapshot = session.snapshot()
    assert snapshot.state == SessionState.ACTIVE
    assert snapshot.question_index == 0
    assert snapshot.remaining_seconds == 0
    assert store.list_submissions(assignment.id) == []


def test_duplicate_submission_is_treated_as_saved(store, make_quiz, make_session):
    assignment = make_quiz()
    session = make_session()
    session.start(assignment.id)
    store.submission_error = DuplicateRecordError

    outcome = session.submit()

    assert outcome.duplicate
    assert session.snapshot().question_index == 1


def test_resume_skips_answered_questions(store, make_quiz, make_session):
    assignment = make_quiz(count=3)
    store.insert_question_orders(
        [
            QuestionOrder(assignment_id=assignment.id, question_id="quiz-1-q2", order_index=0),
            QuestionOrder(assignment_id=assignment.id, question_id="quiz-1-q0", order_index=1),
            QuestionOrder(assignment_id=assignment.id, question_id="quiz-1-q1", order_index=2),
        ]
    )
    store.insert_submission(
        Submission(assignment_id=assignment.id, question_id="quiz-1-q2", user_code="", is_correct=True, time_taken=4)
    )
    session = make_session()

    snapshot = session.start(assignment.id)

    assert snapshot.question_index == 1
    assert snapshot.question.id == "quiz-1-q0"


def test_resume_with_every_question_answered_completes(store, make_quiz, make_session):
    assignment = make_quiz(count=1)
    store.insert_question_orders(
        [QuestionOrder(assignment_id=assignment.id, question_id="quiz-1-q0", order_index=0)]
    )
    store.insert_submission(
        Submission(assignment_id=assignment.id, question_id="quiz-1-q0", user_code="", is_correct=True, time_taken=4)
    )
    session = make_session()

    snapshot = session.start(assignment.id)

    assert snapshot.state == SessionState.COMPLETED
    assert snapshot.results.correct == 1
    assert store.get_assignment(assignment.id, assignment.user_id).is_completed


def test_completed_assignment_opens_on_results(store, make_quiz, make_session, clock, timers):
    assignment = make_quiz(count=1)
    first = make_session()
    first.start(assignment.id)
    _fix(first)
    first.submit()

    snapshot = make_session().start(assignment.id)

    assert snapshot.state == SessionState.COMPLETED
    assert snapshot.results.correct == 1
    assert snapshot.results.total == 1


def test_completion_write_failure_still_shows_results(store, make_quiz, make_session):
    assignment = make_quiz(count=1)
    session = make_session()
    session.start(assignment.id)
    store.fail_completion = True

    outcome = session.submit()

    assert outcome.quiz_completed
    assert session.state == SessionState.COMPLETED
    assert session.results.total == 1
    assert not store.get_assignment(assignment.id, assignment.user_id).is_completed


def test_tab_switches_are_counted_and_logged(store, make_quiz, make_session):
    assignment = make_quiz()
    session = make_session()
    session.start(assignment.id)

    assert session.record_visibility_change(hidden=True) == 1
    assert session.record_visibility_change(hidden=False) == 1
    assert session.record_visibility_change(hidden=True) == 2

    events = store.get_cheat_events()
    assert [e.event_type for e in events] == [CheatEventType.TAB_SWITCH, CheatEventType.TAB_SWITCH]
    assert all(e.assignment_id == assignment.id for e in events)
    assert session.snapshot().tab_switch_count == 2


def test_clipboard_attempts_are_suppressed_and_logged(store, make_quiz, make_session):
    assignment = make_quiz()
    session = make_session()
    session.start(assignment.id)

    assert session.record_clipboard_attempt("paste")

    (event,) = store.get_cheat_events()
    assert event.event_type == CheatEventType.COPY_PASTE_ATTEMPT
    assert "paste" in event.details


def test_cheat_log_failures_do_not_interrupt_quiz(store, make_quiz, make_session):
    assignment = make_quiz()
    session = make_session()
    session.start(assignment.id)
    store.fail_cheat_events = True

    assert session.record_visibility_change(hidden=True) == 1
    assert session.record_clipboard_attempt("copy")
    assert session.state == SessionState.ACTIVE


def test_back_navigation_is_suppressed_only_while_running(store, make_quiz, make_session):
    assignment = make_quiz(count=1)
    session = make_session()
    session.start(assignment.id)

    assert session.handle_back_navigation()
    session.submit()
    assert not session.handle_back_navigation()
    assert not session.record_clipboard_attempt("copy")


def test_close_cancels_timer_and_ignores_late_ticks(store, make_quiz, make_session, timers):
    assignment = make_quiz(time_per_question=2)
    session = make_session()
    session.start(assignment.id)
    timer = timers.latest

    session.close()
    timer.fire(5)

    assert timer.cancelled
    assert store.list_submissions(assignment.id) == []


def test_update_code_after_completion_is_rejected(make_quiz, make_session):
    assignment = make_quiz(count=1)
    session = make_session()
    session.start(assignment.id)
    session.submit()

    with pytest.raises(SessionStateError):
        session.update_code("anything")
    with pytest.raises(SessionStateError):
        session.submit()


def test_answer_first_then_let_second_time_out(store, make_quiz, make_session, clock, timers):
    assignment = make_quiz(count=2, time_per_question=10)
    session = make_session()
    session.start(assignment.id)
    first = session.snapshot().question

    _fix(session)
    clock.advance(4)
    timers.latest.fire(4)
    session.submit()
    second = session.snapshot().question
    timers.latest.fire(10)

    by_question = {s.question_id: s for s in store.list_submissions(assignment.id)}
    assert len(by_question) == 2
    assert by_question[first.id].is_correct
    assert by_question[first.id].time_taken == 4
    assert not by_question[second.id].is_correct
    assert by_question[second.id].time_taken == 10
    assert store.get_assignment(assignment.id, assignment.user_id).is_completed
    assert session.results.correct == 1
    assert session.results.total == 2


class InterleavingLock:
    """Session lock that runs ``before_next`` once, just ahead of the next acquisition."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.before_next: Callable[[], object] | None = None

    def __enter__(self) -> bool:
        hook, self.before_next = self.before_next, None
        if hook is not None:
            hook()
        return self._lock.__enter__()

    def __exit__(self, *exc_info) -> None:
        self._lock.__exit__(*exc_info)


def test_manual_submit_loses_to_auto_submit_of_same_question(store, make_quiz, make_session, timers):
    assignment = make_quiz(count=2, time_per_question=10)
    session = make_session()
    session.start(assignment.id)
    first = session.snapshot().question
    timers.latest.fire(9)
    lock = InterleavingLock()
    session._lock = lock
    lock.before_next = timers.latest.fire

    with pytest.raises(SessionStateError):
        session.submit(first.id)

    submissions = store.list_submissions(assignment.id)
    assert [s.question_id for s in submissions] == [first.id]
    assert submissions[0].time_taken == 10
    snapshot = session.snapshot()
    assert snapshot.question_index == 1
    assert snapshot.remaining_seconds == 10


def test_submit_naming_current_question_is_accepted(store, make_quiz, make_session):
    assignment = make_quiz(count=2)
    session = make_session()
    session.start(assignment.id)
    question = session.snapshot().question

    outcome = session.submit(question.id)

    assert outcome.question_id == question.id
    assert session.snapshot().question_index == 1


def test_tick_from_replaced_timer_leaves_next_question_alone(store, make_quiz, make_session, timers):
    assignment = make_quiz(count=2, time_per_question=10)
    session = make_session()
    session.start(assignment.id)
    first_timer = timers.latest
    lock = InterleavingLock()
    session._lock = lock
    lock.before_next = session.submit

    first_timer.fire()

    snapshot = session.snapshot()
    assert snapshot.question_index == 1
    assert snapshot.remaining_seconds == 10
    assert len(store.list_submissions(assignment.id)) == 1


def test_submit_before_start_is_rejected(make_session):
    session = make_session()

    with pytest.raises(SessionStateError):
        session.submit()
    with pytest.raises(SessionStateError):
        session.update_code("x")
