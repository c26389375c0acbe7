"""Resolves an assignment into a ready-to-run quiz session."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random

from debug_arena.core.errors import (
    AssignmentNotFoundError,
    DuplicateRecordError,
    QuestionOrderPersistError,
    RecordNotFoundError,
    StorageError,
)
from debug_arena.core.models import Assignment, Question, QuestionOrder, Quiz, SessionContext, utc_now
from debug_arena.core.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoadedAssignment:
    """Everything the session engine needs to begin or resume."""

    assignment: Assignment
    quiz: Quiz
    questions: list[Question]
    resume_index: int
    already_completed: bool = False

    @property
    def all_answered(self) -> bool:
        return self.resume_index >= len(self.questions)


class AssignmentLoader:
    """Loads quiz, stable question order and resume point for one learner."""

    def __init__(self, store: QuizStore, context: SessionContext, rng: random.Random | None = None) -> None:
        self._store = store
        self._context = context
        self._rng = rng or random.Random()

    def load(self, assignment_id: str) -> LoadedAssignment:
        try:
            assignment = self._store.get_assignment(assignment_id, self._context.user_id)
        except RecordNotFoundError as exc:
            raise AssignmentNotFoundError(assignment_id) from exc

        quiz = self._store.get_quiz(assignment.quiz_id)
        if assignment.is_completed:
            return LoadedAssignment(
                assignment=assignment,
                quiz=quiz,
                questions=[],
                resume_index=0,
                already_completed=True,
            )

        questions = self._resolve_question_order(assignment)
        self._mark_started(assignment)
        resume_index = self.find_resume_index(assignment.id, questions)
        logger.info(
            "Loaded assignment %s: %d question(s), resuming at %d",
            assignment.id,
            len(questions),
            resume_index,
        )
        return LoadedAssignment(
            assignment=assignment,
            quiz=quiz,
            questions=questions,
            resume_index=resume_index,
        )

    def find_resume_index(self, assignment_id: str, questions: list[Question]) -> int:
        answered = {s.question_id for s in self._store.list_submissions(assignment_id)}
        return next((i for i, q in enumerate(questions) if q.id not in answered), len(questions))

    def _resolve_question_order(self, assignment: Assignment) -> list[Question]:
        persisted = self._store.list_question_orders(assignment.id)
        if persisted:
            return self._questions_for_orders(assignment.quiz_id, persisted)

        questions = self._store.list_questions(assignment.quiz_id)
        shuffled = list(questions)
        self._rng.shuffle(shuffled)
        orders = [
            QuestionOrder(assignment_id=assignment.id, question_id=q.id, order_index=rank)
            for rank, q in enumerate(shuffled)
        ]
        try:
            if orders:
                self._store.insert_question_orders(orders)
        except DuplicateRecordError:
            # Another load of the same assignment stored its permutation first.
            logger.info("Question order for %s already persisted; adopting it", assignment.id)
            return self._questions_for_orders(assignment.quiz_id, self._store.list_question_orders(assignment.id))
        except StorageError as exc:
            raise QuestionOrderPersistError(
                f"Could not persist question order for assignment '{assignment.id}'"
            ) from exc
        return shuffled

    def _mark_started(self, assignment: Assignment) -> None:
        # Also covers an order persisted by a load whose start stamp failed.
        if assignment.started_at is not None:
            return
        started_at = utc_now()
        try:
            self._store.mark_assignment_started(assignment.id, started_at)
        except StorageError as exc:
            raise QuestionOrderPersistError(f"Could not mark assignment '{assignment.id}' as started") from exc
        assignment.started_at = started_at

    def _questions_for_orders(self, quiz_id: str, orders: list[QuestionOrder]) -> list[Question]:
        by_id = {q.id: q for q in self._store.list_questions(quiz_id)}
        ranked = sorted(orders, key=lambda o: o.order_index)
        return [by_id[o.question_id] for o in ranked if o.question_id in by_id]
