"""Service for administrators managing quizzes, questions and assignments."""

from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

from debug_arena.constants.quiz_constants import (
    DEFAULT_QUESTION_TITLE,
    DEFAULT_TIME_PER_QUESTION_SECONDS,
    SUPPORTED_LANGUAGES,
)
from debug_arena.core.errors import AuthorizationError, QuizValidationError
from debug_arena.core.models import Assignment, Question, Quiz, SessionContext
from debug_arena.core.services.quiz_store import QuizStore


class QuizAuthoring:
    """Validates and stores administrator-authored content."""

    def __init__(self, store: QuizStore, context: SessionContext) -> None:
        if not context.is_admin:
            raise AuthorizationError("Administrator role required.")
        self._store = store
        self._context = context

    # --- Quizzes ---

    def create_quiz(
        self,
        title: str,
        language: str,
        time_per_question: int = DEFAULT_TIME_PER_QUESTION_SECONDS,
        description: str | None = None,
    ) -> Quiz:
        quiz = Quiz(
            id=str(uuid4()),
            title=self._validate_title(title),
            language=self._validate_language(language),
            time_per_question=self._validate_time_limit(time_per_question),
            description=(description or "").strip() or None,
            created_by=self._context.user_id,
        )
        return self._store.insert_quiz(quiz)

    def update_quiz(
        self,
        quiz_id: str,
        *,
        title: str | None = None,
        language: str | None = None,
        time_per_question: int | None = None,
        description: str | None = None,
        is_active: bool | None = None,
    ) -> Quiz:
        quiz = self._store.get_quiz(quiz_id)
        updated = replace(
            quiz,
            title=self._validate_title(title) if title is not None else quiz.title,
            language=self._validate_language(language) if language is not None else quiz.language,
            time_per_question=(
                self._validate_time_limit(time_per_question)
                if time_per_question is not None
                else quiz.time_per_question
            ),
            description=(description.strip() or None) if description is not None else quiz.description,
            is_active=is_active if is_active is not None else quiz.is_active,
        )
        return self._store.update_quiz(updated)

    def delete_quiz(self, quiz_id: str) -> None:
        self._store.delete_quiz(quiz_id)

    # --- Questions ---

    def add_question(
        self,
        quiz_id: str,
        incorrect_code: str,
        correct_code: str,
        title: str | None = None,
        expected_output: str | None = None,
    ) -> Question:
        quiz = self._store.get_quiz(quiz_id)
        existing = self._store.list_questions(quiz_id)
        question = Question(
            id=str(uuid4()),
            quiz_id=quiz_id,
            title=(title or "").strip() or DEFAULT_QUESTION_TITLE,
            incorrect_code=self._validate_code(incorrect_code, "Buggy code"),
            correct_code=self._validate_code(correct_code, "Corrected code"),
            language=quiz.language,
            expected_output=self._normalize_expected_output(expected_output),
            order_index=len(existing),
        )
        return self._store.insert_question(question)

    def add_questions(self, quiz_id: str, questions: list[Question]) -> list[Question]:
        """Append parsed questions (e.g. from an import file) in their given order."""
        if not questions:
            raise QuizValidationError("Quiz must contain at least one question.")
        return [
            self.add_question(
                quiz_id,
                incorrect_code=q.incorrect_code,
                correct_code=q.correct_code,
                title=q.title,
                expected_output=q.expected_output,
            )
            for q in questions
        ]

    def update_question(
        self,
        question_id: str,
        *,
        title: str | None = None,
        incorrect_code: str | None = None,
        correct_code: str | None = None,
        expected_output: str | None = None,
    ) -> Question:
        question = self._store.get_question(question_id)
        updated = replace(
            question,
            title=(title.strip() or DEFAULT_QUESTION_TITLE) if title is not None else question.title,
            incorrect_code=(
                self._validate_code(incorrect_code, "Buggy code")
                if incorrect_code is not None
                else question.incorrect_code
            ),
            correct_code=(
                self._validate_code(correct_code, "Corrected code")
                if correct_code is not None
                else question.correct_code
            ),
            expected_output=(
                self._normalize_expected_output(expected_output)
                if expected_output is not None
                else question.expected_output
            ),
        )
        return self._store.update_question(updated)

    def delete_question(self, question_id: str) -> None:
        self._store.delete_question(question_id)

    # --- Assignments ---

    def assign_quiz(self, quiz_id: str, user_ids: list[str]) -> list[Assignment]:
        cleaned = list(dict.fromkeys(uid.strip() for uid in user_ids if uid.strip()))
        if not cleaned:
            raise QuizValidationError("Select at least one user to assign.")
        return self._store.upsert_assignments(quiz_id, cleaned)

    # --- Validation ---

    @staticmethod
    def _validate_title(title: str) -> str:
        cleaned = title.strip()
        if not cleaned:
            raise QuizValidationError("Quiz title must not be empty.")
        return cleaned

    @staticmethod
    def _validate_language(language: str) -> str:
        normalized = language.strip().lower()
        if normalized not in SUPPORTED_LANGUAGES:
            raise QuizValidationError(
                f"Language must be one of: {', '.join(SUPPORTED_LANGUAGES)}."
            )
        return normalized

    @staticmethod
    def _validate_time_limit(time_per_question: int) -> int:
        if isinstance(time_per_question, bool) or not isinstance(time_per_question, int):
            raise QuizValidationError("Time per question must be an integer number of seconds.")
        if time_per_question <= 0:
            raise QuizValidationError("Time per question must be a positive integer.")
        return time_per_question

    @staticmethod
    def _validate_code(code: str, label: str) -> str:
        if not code.strip():
            raise QuizValidationError(f"{label} must not be empty.")
        return code

    @staticmethod
    def _normalize_expected_output(expected_output: str | None) -> str | None:
        if expected_output is None or not expected_output.strip():
            return None
        return expected_output
