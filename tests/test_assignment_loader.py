from __future__ import annotations

import random

import pytest

from debug_arena.core.errors import (
    AssignmentNotFoundError,
    DuplicateRecordError,
    QuestionOrderPersistError,
    StorageError,
)
from debug_arena.core.models import Assignment, Question, QuestionOrder, Quiz, Submission
from debug_arena.core.services.assignment_loader import AssignmentLoader
from debug_arena.core.services.quiz_store import InMemoryQuizStore


class RacingStore(InMemoryQuizStore):
    """Simulates another tab persisting its permutation between our read and write."""

    def __init__(self, winning_order: list[str]) -> None:
        super().__init__()
        self.winning_order = winning_order

    def insert_question_orders(self, orders: list[QuestionOrder]) -> None:
        assignment_id = orders[0].assignment_id
        super().insert_question_orders(
            [
                QuestionOrder(assignment_id=assignment_id, question_id=qid, order_index=rank)
                for rank, qid in enumerate(self.winning_order)
            ]
        )
        raise DuplicateRecordError("question_orders (assignment_id, question_id) already exists")


class BrokenOrderStore(InMemoryQuizStore):
    def insert_question_orders(self, orders: list[QuestionOrder]) -> None:
        raise StorageError("insert rejected")


def _ids(loaded) -> list[str]:
    return [q.id for q in loaded.questions]


def _seed(store: InMemoryQuizStore, user_id: str, count: int) -> None:
    store.insert_quiz(Quiz(id="quiz-1", title="Seeded", language="python", time_per_question=30))
    for index in range(count):
        store.insert_question(
            Question(
                id=f"quiz-1-q{index}",
                quiz_id="quiz-1",
                title="Bug",
                incorrect_code="x",
                correct_code="y",
                language="python",
                order_index=index,
            )
        )
    store.add_assignment(Assignment(id="a-1", quiz_id="quiz-1", user_id=user_id))


def test_first_load_persists_permutation_and_marks_started(store, make_quiz, learner):
    assignment = make_quiz(count=4)

    loaded = AssignmentLoader(store, learner, random.Random(1)).load(assignment.id)

    orders = store.list_question_orders(assignment.id)
    assert [o.question_id for o in orders] == _ids(loaded)
    assert sorted(_ids(loaded)) == [f"quiz-1-q{i}" for i in range(4)]
    assert loaded.resume_index == 0
    assert store.get_assignment(assignment.id, learner.user_id).started_at is not None


def test_order_is_stable_across_loads(store, make_quiz, learner):
    assignment = make_quiz(count=5)

    first = AssignmentLoader(store, learner, random.Random(1)).load(assignment.id)
    started_at = store.get_assignment(assignment.id, learner.user_id).started_at
    second = AssignmentLoader(store, learner, random.Random(99)).load(assignment.id)

    assert _ids(first) == _ids(second)
    assert store.get_assignment(assignment.id, learner.user_id).started_at == started_at


@pytest.mark.parametrize("answered", [0, 1, 2, 3])
def test_resume_index_is_first_unanswered_position(store, make_quiz, learner, answered):
    assignment = make_quiz(count=3)
    loader = AssignmentLoader(store, learner, random.Random(3))
    order = _ids(loader.load(assignment.id))
    for question_id in order[:answered]:
        store.insert_submission(
            Submission(assignment_id=assignment.id, question_id=question_id, user_code="", is_correct=False, time_taken=1)
        )

    loaded = loader.load(assignment.id)

    assert loaded.resume_index == answered
    assert loaded.all_answered == (answered == 3)


def test_resume_index_points_at_earliest_unanswered_question(store, make_quiz, learner):
    assignment = make_quiz(count=3)
    loader = AssignmentLoader(store, learner, random.Random(3))
    order = _ids(loader.load(assignment.id))
    store.insert_submission(
        Submission(assignment_id=assignment.id, question_id=order[1], user_code="", is_correct=True, time_taken=1)
    )

    assert loader.load(assignment.id).resume_index == 0


def test_concurrent_first_load_adopts_stored_order(learner):
    store = RacingStore(winning_order=["quiz-1-q2", "quiz-1-q0", "quiz-1-q1"])
    _seed(store, learner.user_id, count=3)

    loaded = AssignmentLoader(store, learner, random.Random(0)).load("a-1")

    assert _ids(loaded) == ["quiz-1-q2", "quiz-1-q0", "quiz-1-q1"]


def test_order_persist_failure_aborts_load(learner):
    store = BrokenOrderStore()
    _seed(store, learner.user_id, count=1)

    with pytest.raises(QuestionOrderPersistError):
        AssignmentLoader(store, learner).load("a-1")

    assert store.get_assignment("a-1", learner.user_id).started_at is None


def test_unknown_or_foreign_assignment_is_not_found(store, make_quiz, learner):
    make_quiz(user_id="another-learner", assignment_id="foreign")

    with pytest.raises(AssignmentNotFoundError):
        AssignmentLoader(store, learner).load("foreign")
    with pytest.raises(AssignmentNotFoundError):
        AssignmentLoader(store, learner).load("missing")


def test_deleted_question_is_dropped_from_persisted_order(store, make_quiz, learner):
    assignment = make_quiz(count=3)
    loader = AssignmentLoader(store, learner, random.Random(5))
    order = _ids(loader.load(assignment.id))

    store.delete_question(order[0])

    assert _ids(loader.load(assignment.id)) == order[1:]


def test_completed_assignment_skips_order_resolution(store, make_quiz, learner):
    assignment = make_quiz(count=2)
    store.mark_assignment_completed(assignment.id, assignment.created_at)

    loaded = AssignmentLoader(store, learner).load(assignment.id)

    assert loaded.already_completed
    assert loaded.questions == []
    assert store.list_question_orders(assignment.id) == []


class StartStampFailsOnceStore(InMemoryQuizStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_start_stamp = True

    def mark_assignment_started(self, assignment_id, started_at) -> None:
        if self.fail_start_stamp:
            self.fail_start_stamp = False
            raise StorageError("update rejected")
        super().mark_assignment_started(assignment_id, started_at)


def test_start_stamp_is_retried_once_order_is_persisted(learner):
    store = StartStampFailsOnceStore()
    _seed(store, learner.user_id, count=3)
    loader = AssignmentLoader(store, learner, random.Random(2))

    with pytest.raises(QuestionOrderPersistError):
        loader.load("a-1")
    persisted = [o.question_id for o in store.list_question_orders("a-1")]
    assert store.get_assignment("a-1", learner.user_id).started_at is None

    loaded = loader.load("a-1")

    assert _ids(loaded) == persisted
    assert loaded.assignment.started_at is not None
    assert store.get_assignment("a-1", learner.user_id).started_at is not None
