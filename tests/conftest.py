"""Shared fixtures: seeded in-memory store, manual timers, fake clock and executor stubs."""

from __future__ import annotations

import random
from typing import Callable

import pytest

from debug_arena.core.code_verifier import CodeVerifier
from debug_arena.core.errors import ExecutionError
from debug_arena.core.models import Assignment, Profile, Question, Quiz, SessionContext, UserRole
from debug_arena.core.services.code_executor import ExecutionResult
from debug_arena.core.services.quiz_session import QuizSession
from debug_arena.core.services.quiz_store import InMemoryQuizStore

LEARNER_ID = "learner-1"
ADMIN_ID = "admin-1"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimer:
    """Timer double; ``fire`` runs the callback even after cancel, like a late thread wake-up."""

    def __init__(self, on_tick: Callable[[], None]) -> None:
        self.on_tick = on_tick
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            self.on_tick()


class ManualTimerFactory:
    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, on_tick: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(on_tick)
        self.timers.append(timer)
        return timer

    @property
    def latest(self) -> ManualTimer:
        return self.timers[-1]

    @property
    def active(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


class StubExecutor:
    """Returns canned stdout, or raises ``ExecutionError`` when ``fail`` is set."""

    def __init__(self, stdout: str = "", fail: bool = False) -> None:
        self.stdout = stdout
        self.fail = fail
        self.calls: list[tuple[str, str]] = []
        self.on_execute: Callable[[], None] | None = None

    def execute(self, language: str, source: str) -> ExecutionResult:
        self.calls.append((language, source))
        if self.on_execute is not None:
            self.on_execute()
        if self.fail:
            raise ExecutionError("service unavailable")
        return ExecutionResult(stdout=self.stdout, stderr="", output=self.stdout)


@pytest.fixture
def learner() -> SessionContext:
    return SessionContext(user_id=LEARNER_ID)


@pytest.fixture
def admin() -> SessionContext:
    return SessionContext(user_id=ADMIN_ID, role=UserRole.ADMIN)


@pytest.fixture
def store() -> InMemoryQuizStore:
    return InMemoryQuizStore()


@pytest.fixture
def make_quiz(store: InMemoryQuizStore):
    """Create a quiz with ``count`` questions and assign it to the learner."""

    def factory(
        quiz_id: str = "quiz-1",
        count: int = 2,
        time_per_question: int = 10,
        expected_output: str | None = None,
        user_id: str = LEARNER_ID,
        assignment_id: str | None = None,
    ) -> Assignment:
        store.insert_quiz(
            Quiz(id=quiz_id, title=f"Quiz {quiz_id}", language="javascript", time_per_question=time_per_question)
        )
        for index in range(count):
            store.insert_question(
                Question(
                    id=f"{quiz_id}-q{index}",
                    quiz_id=quiz_id,
                    title=f"Bug {index}",
                    incorrect_code=f"for(let i=0;i<={index};i++){{console.log(i)}}",
                    correct_code=f"for(let i=0;i<{index};i++){{console.log(i)}}",
                    language="javascript",
                    expected_output=expected_output,
                    order_index=index,
                )
            )
        return store.add_assignment(
            Assignment(id=assignment_id or f"{quiz_id}-{user_id}", quiz_id=quiz_id, user_id=user_id)
        )

    return factory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()


@pytest.fixture
def make_session(store, learner, clock, timers):
    def factory(executor: StubExecutor | None = None, session_store=None, context=None) -> QuizSession:
        return QuizSession(
            context or learner,
            session_store or store,
            CodeVerifier(executor),
            timer_factory=timers,
            clock=clock,
            rng=random.Random(7),
        )

    return factory


@pytest.fixture
def add_profile(store: InMemoryQuizStore):
    def factory(user_id: str, email: str, full_name: str | None = None) -> Profile:
        profile = Profile(id=user_id, email=email, full_name=full_name)
        store.add_profile(profile)
        return profile

    return factory
