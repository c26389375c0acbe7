"""Domain models for Debug Arena."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class CheatEventType(str, Enum):
    TAB_SWITCH = "tab_switch"
    COPY_PASTE_ATTEMPT = "copy_paste_attempt"


@dataclass(slots=True, frozen=True)
class SessionContext:
    """Identity of the authenticated caller, supplied by the hosted auth provider."""

    user_id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(slots=True)
class Quiz:
    """Quiz definition authored by an administrator."""

    id: str
    title: str
    language: str
    time_per_question: int
    is_active: bool = True
    description: str | None = None
    created_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Question:
    """A buggy snippet plus its canonical fix."""

    id: str
    quiz_id: str
    title: str
    incorrect_code: str
    correct_code: str
    language: str
    expected_output: str | None = None
    order_index: int = 0


@dataclass(slots=True)
class Assignment:
    """Binds one quiz to one learner."""

    id: str
    quiz_id: str
    user_id: str
    is_completed: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class QuestionOrder:
    """Rank of one question inside an assignment's persisted permutation."""

    assignment_id: str
    question_id: str
    order_index: int


@dataclass(slots=True)
class Submission:
    """The learner's final answer for one question of an assignment."""

    assignment_id: str
    question_id: str
    user_code: str
    is_correct: bool
    time_taken: int
    submitted_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class CheatEvent:
    """Write-only anti-cheat telemetry entry."""

    user_id: str
    event_type: CheatEventType
    details: str | None = None
    assignment_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Profile:
    id: str
    email: str
    full_name: str | None = None


@dataclass(slots=True)
class CompletedSubmission:
    """Submission row joined to its completed assignment, as scanned by the leaderboard."""

    user_id: str
    quiz_id: str
    is_correct: bool
    time_taken: int


@dataclass(slots=True)
class QuizResults:
    correct: int
    total: int
