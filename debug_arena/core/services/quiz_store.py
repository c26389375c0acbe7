"""Storage contract for the hosted quiz collections, plus an in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from threading import Lock
from uuid import uuid4

from debug_arena.core.errors import DuplicateRecordError, RecordNotFoundError
from debug_arena.core.models import (
    Assignment,
    CheatEvent,
    CompletedSubmission,
    Profile,
    Question,
    QuestionOrder,
    Quiz,
    Submission,
)


class QuizStore(ABC):
    """Collections the core reads and writes.

    Implementations surface every rejection as a ``StorageError`` subclass;
    uniqueness violations are reported as ``DuplicateRecordError``.
    """

    # --- Assignments ---

    @abstractmethod
    def get_assignment(self, assignment_id: str, user_id: str) -> Assignment: ...

    @abstractmethod
    def list_assignments_for_user(self, user_id: str) -> list[Assignment]: ...

    @abstractmethod
    def upsert_assignments(self, quiz_id: str, user_ids: list[str]) -> list[Assignment]: ...

    @abstractmethod
    def mark_assignment_started(self, assignment_id: str, started_at: datetime) -> None: ...

    @abstractmethod
    def mark_assignment_completed(self, assignment_id: str, completed_at: datetime) -> None: ...

    # --- Quizzes and questions ---

    @abstractmethod
    def get_quiz(self, quiz_id: str) -> Quiz: ...

    @abstractmethod
    def list_quizzes(self, active_only: bool = False) -> list[Quiz]: ...

    @abstractmethod
    def insert_quiz(self, quiz: Quiz) -> Quiz: ...

    @abstractmethod
    def update_quiz(self, quiz: Quiz) -> Quiz: ...

    @abstractmethod
    def delete_quiz(self, quiz_id: str) -> None: ...

    @abstractmethod
    def get_question(self, question_id: str) -> Question: ...

    @abstractmethod
    def list_questions(self, quiz_id: str) -> list[Question]: ...

    @abstractmethod
    def insert_question(self, question: Question) -> Question: ...

    @abstractmethod
    def update_question(self, question: Question) -> Question: ...

    @abstractmethod
    def delete_question(self, question_id: str) -> None: ...

    # --- Session state ---

    @abstractmethod
    def list_question_orders(self, assignment_id: str) -> list[QuestionOrder]: ...

    @abstractmethod
    def insert_question_orders(self, orders: list[QuestionOrder]) -> None: ...

    @abstractmethod
    def list_submissions(self, assignment_id: str) -> list[Submission]: ...

    @abstractmethod
    def insert_submission(self, submission: Submission) -> None: ...

    @abstractmethod
    def insert_cheat_event(self, event: CheatEvent) -> None: ...

    # --- Leaderboard ---

    @abstractmethod
    def list_completed_submissions(self, quiz_id: str | None = None) -> list[CompletedSubmission]: ...

    @abstractmethod
    def get_profiles(self, user_ids: list[str]) -> dict[str, Profile]: ...


class InMemoryQuizStore(QuizStore):
    """Process-local store enforcing the same uniqueness rules as the hosted schema."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._quizzes: dict[str, Quiz] = {}
        self._questions: dict[str, Question] = {}
        self._assignments: dict[str, Assignment] = {}
        self._orders: dict[tuple[str, str], QuestionOrder] = {}
        self._submissions: dict[tuple[str, str], Submission] = {}
        self._cheat_events: list[CheatEvent] = []
        self._profiles: dict[str, Profile] = {}

    # --- Seeding helpers ---

    def add_profile(self, profile: Profile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile

    def get_cheat_events(self) -> list[CheatEvent]:
        with self._lock:
            return list(self._cheat_events)

    # --- Assignments ---

    def get_assignment(self, assignment_id: str, user_id: str) -> Assignment:
        with self._lock:
            assignment = self._assignments.get(assignment_id)
            if assignment is None or assignment.user_id != user_id:
                raise RecordNotFoundError(f"quiz_assignments row '{assignment_id}' not found")
            return replace(assignment)

    def list_assignments_for_user(self, user_id: str) -> list[Assignment]:
        with self._lock:
            owned = [replace(a) for a in self._assignments.values() if a.user_id == user_id]
        return sorted(owned, key=lambda a: a.created_at, reverse=True)

    def upsert_assignments(self, quiz_id: str, user_ids: list[str]) -> list[Assignment]:
        with self._lock:
            if quiz_id not in self._quizzes:
                raise RecordNotFoundError(f"quizzes row '{quiz_id}' not found")
            result: list[Assignment] = []
            for user_id in user_ids:
                existing = next(
                    (a for a in self._assignments.values() if a.quiz_id == quiz_id and a.user_id == user_id),
                    None,
                )
                if existing is None:
                    existing = Assignment(id=uuid4().hex, quiz_id=quiz_id, user_id=user_id)
                    self._assignments[existing.id] = existing
                result.append(replace(existing))
            return result

    def add_assignment(self, assignment: Assignment) -> Assignment:
        with self._lock:
            if any(
                a.quiz_id == assignment.quiz_id and a.user_id == assignment.user_id
                for a in self._assignments.values()
            ):
                raise DuplicateRecordError("quiz_assignments (quiz_id, user_id) already exists")
            self._assignments[assignment.id] = replace(assignment)
            return replace(assignment)

    def mark_assignment_started(self, assignment_id: str, started_at: datetime) -> None:
        with self._lock:
            self._require_assignment(assignment_id).started_at = started_at

    def mark_assignment_completed(self, assignment_id: str, completed_at: datetime) -> None:
        with self._lock:
            assignment = self._require_assignment(assignment_id)
            assignment.is_completed = True
            assignment.completed_at = completed_at

    # --- Quizzes and questions ---

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
            if quiz is None:
                raise RecordNotFoundError(f"quizzes row '{quiz_id}' not found")
            return replace(quiz)

    def list_quizzes(self, active_only: bool = False) -> list[Quiz]:
        with self._lock:
            quizzes = [replace(q) for q in self._quizzes.values() if q.is_active or not active_only]
        return sorted(quizzes, key=lambda q: q.title)

    def insert_quiz(self, quiz: Quiz) -> Quiz:
        with self._lock:
            if quiz.id in self._quizzes:
                raise DuplicateRecordError(f"quizzes row '{quiz.id}' already exists")
            self._quizzes[quiz.id] = replace(quiz)
            return replace(quiz)

    def update_quiz(self, quiz: Quiz) -> Quiz:
        with self._lock:
            if quiz.id not in self._quizzes:
                raise RecordNotFoundError(f"quizzes row '{quiz.id}' not found")
            self._quizzes[quiz.id] = replace(quiz)
            return replace(quiz)

    def delete_quiz(self, quiz_id: str) -> None:
        with self._lock:
            if self._quizzes.pop(quiz_id, None) is None:
                raise RecordNotFoundError(f"quizzes row '{quiz_id}' not found")
            for question_id in [q.id for q in self._questions.values() if q.quiz_id == quiz_id]:
                self._drop_question(question_id)
            for assignment_id in [a.id for a in self._assignments.values() if a.quiz_id == quiz_id]:
                del self._assignments[assignment_id]
                self._cheat_events = [e for e in self._cheat_events if e.assignment_id != assignment_id]

    def get_question(self, question_id: str) -> Question:
        with self._lock:
            question = self._questions.get(question_id)
            if question is None:
                raise RecordNotFoundError(f"questions row '{question_id}' not found")
            return replace(question)

    def list_questions(self, quiz_id: str) -> list[Question]:
        with self._lock:
            questions = [replace(q) for q in self._questions.values() if q.quiz_id == quiz_id]
        return sorted(questions, key=lambda q: q.order_index)

    def insert_question(self, question: Question) -> Question:
        with self._lock:
            if question.quiz_id not in self._quizzes:
                raise RecordNotFoundError(f"quizzes row '{question.quiz_id}' not found")
            if question.id in self._questions:
                raise DuplicateRecordError(f"questions row '{question.id}' already exists")
            self._questions[question.id] = replace(question)
            return replace(question)

    def update_question(self, question: Question) -> Question:
        with self._lock:
            if question.id not in self._questions:
                raise RecordNotFoundError(f"questions row '{question.id}' not found")
            self._questions[question.id] = replace(question)
            return replace(question)

    def delete_question(self, question_id: str) -> None:
        with self._lock:
            if question_id not in self._questions:
                raise RecordNotFoundError(f"questions row '{question_id}' not found")
            self._drop_question(question_id)

    # --- Session state ---

    def list_question_orders(self, assignment_id: str) -> list[QuestionOrder]:
        with self._lock:
            orders = [replace(o) for o in self._orders.values() if o.assignment_id == assignment_id]
        return sorted(orders, key=lambda o: o.order_index)

    def insert_question_orders(self, orders: list[QuestionOrder]) -> None:
        with self._lock:
            keys = [(o.assignment_id, o.question_id) for o in orders]
            if len(set(keys)) != len(keys) or any(key in self._orders for key in keys):
                raise DuplicateRecordError("question_orders (assignment_id, question_id) already exists")
            for key, order in zip(keys, orders):
                self._orders[key] = replace(order)

    def list_submissions(self, assignment_id: str) -> list[Submission]:
        with self._lock:
            return [replace(s) for s in self._submissions.values() if s.assignment_id == assignment_id]

    def insert_submission(self, submission: Submission) -> None:
        key = (submission.assignment_id, submission.question_id)
        with self._lock:
            if key in self._submissions:
                raise DuplicateRecordError("submissions (assignment_id, question_id) already exists")
            self._submissions[key] = replace(submission)

    def insert_cheat_event(self, event: CheatEvent) -> None:
        with self._lock:
            self._cheat_events.append(replace(event))

    # --- Leaderboard ---

    def list_completed_submissions(self, quiz_id: str | None = None) -> list[CompletedSubmission]:
        with self._lock:
            rows: list[CompletedSubmission] = []
            for submission in self._submissions.values():
                assignment = self._assignments.get(submission.assignment_id)
                if assignment is None or not assignment.is_completed:
                    continue
                if quiz_id is not None and assignment.quiz_id != quiz_id:
                    continue
                rows.append(
                    CompletedSubmission(
                        user_id=assignment.user_id,
                        quiz_id=assignment.quiz_id,
                        is_correct=submission.is_correct,
                        time_taken=submission.time_taken,
                    )
                )
            return rows

    def get_profiles(self, user_ids: list[str]) -> dict[str, Profile]:
        with self._lock:
            return {uid: replace(self._profiles[uid]) for uid in user_ids if uid in self._profiles}

    # --- Internal helpers (caller holds the lock) ---

    def _require_assignment(self, assignment_id: str) -> Assignment:
        assignment = self._assignments.get(assignment_id)
        if assignment is None:
            raise RecordNotFoundError(f"quiz_assignments row '{assignment_id}' not found")
        return assignment

    def _drop_question(self, question_id: str) -> None:
        del self._questions[question_id]
        self._orders = {k: v for k, v in self._orders.items() if k[1] != question_id}
        self._submissions = {k: v for k, v in self._submissions.items() if k[1] != question_id}
