"""QuizStore backed by the hosted Supabase (PostgREST) tables."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

import httpx
from pydantic import TypeAdapter

from debug_arena.constants.network_constants import STORAGE_TIMEOUT_SECONDS
from debug_arena.core.errors import DuplicateRecordError, RecordNotFoundError, StorageError
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
from debug_arena.core.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"
_RETURN_REPRESENTATION = {"Prefer": "return=representation"}
_timestamp_adapter = TypeAdapter(datetime)


def _parse_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return _timestamp_adapter.validate_python(value)


def _quiz_from_row(row: dict[str, Any]) -> Quiz:
    quiz = Quiz(
        id=row["id"],
        title=row["title"],
        language=row["language"],
        time_per_question=row["time_per_question"],
        is_active=bool(row.get("is_active", True)),
        description=row.get("description"),
        created_by=row.get("created_by"),
    )
    created_at = _parse_timestamp(row.get("created_at"))
    if created_at is not None:
        quiz.created_at = created_at
    return quiz


def _question_from_row(row: dict[str, Any]) -> Question:
    return Question(
        id=row["id"],
        quiz_id=row["quiz_id"],
        title=row["title"],
        incorrect_code=row["incorrect_code"],
        correct_code=row["correct_code"],
        language=row["language"],
        expected_output=row.get("expected_output") or None,
        order_index=row.get("order_index") or 0,
    )


def _assignment_from_row(row: dict[str, Any]) -> Assignment:
    assignment = Assignment(
        id=row["id"],
        quiz_id=row["quiz_id"],
        user_id=row["user_id"],
        is_completed=bool(row.get("is_completed")),
        started_at=_parse_timestamp(row.get("started_at")),
        completed_at=_parse_timestamp(row.get("completed_at")),
    )
    created_at = _parse_timestamp(row.get("created_at"))
    if created_at is not None:
        assignment.created_at = created_at
    return assignment


def _submission_from_row(row: dict[str, Any]) -> Submission:
    submission = Submission(
        assignment_id=row["assignment_id"],
        question_id=row["question_id"],
        user_code=row["user_code"],
        is_correct=bool(row.get("is_correct")),
        time_taken=row.get("time_taken") or 0,
    )
    submitted_at = _parse_timestamp(row.get("submitted_at"))
    if submitted_at is not None:
        submission.submitted_at = submitted_at
    return submission


def _quiz_to_row(quiz: Quiz) -> dict[str, Any]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "language": quiz.language,
        "time_per_question": quiz.time_per_question,
        "is_active": quiz.is_active,
        "created_by": quiz.created_by,
    }


def _question_to_row(question: Question) -> dict[str, Any]:
    return {
        "id": question.id,
        "quiz_id": question.quiz_id,
        "title": question.title,
        "incorrect_code": question.incorrect_code,
        "correct_code": question.correct_code,
        "expected_output": question.expected_output,
        "language": question.language,
        "order_index": question.order_index,
    }


class SupabaseQuizStore(QuizStore):
    """Talks to the PostgREST endpoint of a Supabase project.

    Row-level security is enforced by the hosted database; denials surface
    here as ``StorageError`` like any other rejection.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
        }
        self._client = client or httpx.Client(timeout=STORAGE_TIMEOUT_SECONDS)
        self._client.headers.update(headers)
        self._rest_url = f"{base_url.rstrip('/')}/rest/v1"

    def close(self) -> None:
        self._client.close()

    # --- Assignments ---

    def get_assignment(self, assignment_id: str, user_id: str) -> Assignment:
        row = self._select_one("quiz_assignments", {"id": f"eq.{assignment_id}", "user_id": f"eq.{user_id}"})
        return _assignment_from_row(row)

    def list_assignments_for_user(self, user_id: str) -> list[Assignment]:
        rows = self._select("quiz_assignments", {"user_id": f"eq.{user_id}", "order": "created_at.desc"})
        return [_assignment_from_row(row) for row in rows]

    def upsert_assignments(self, quiz_id: str, user_ids: list[str]) -> list[Assignment]:
        payload = [{"quiz_id": quiz_id, "user_id": user_id} for user_id in user_ids]
        rows = self._request(
            "POST",
            "quiz_assignments",
            params={"on_conflict": "quiz_id,user_id"},
            json=payload,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        return [_assignment_from_row(row) for row in rows or []]

    def mark_assignment_started(self, assignment_id: str, started_at: datetime) -> None:
        self._update("quiz_assignments", {"id": f"eq.{assignment_id}"}, {"started_at": started_at.isoformat()})

    def mark_assignment_completed(self, assignment_id: str, completed_at: datetime) -> None:
        self._update(
            "quiz_assignments",
            {"id": f"eq.{assignment_id}"},
            {"is_completed": True, "completed_at": completed_at.isoformat()},
        )

    # --- Quizzes and questions ---

    def get_quiz(self, quiz_id: str) -> Quiz:
        return _quiz_from_row(self._select_one("quizzes", {"id": f"eq.{quiz_id}"}))

    def list_quizzes(self, active_only: bool = False) -> list[Quiz]:
        params = {"order": "title.asc"}
        if active_only:
            params["is_active"] = "eq.true"
        return [_quiz_from_row(row) for row in self._select("quizzes", params)]

    def insert_quiz(self, quiz: Quiz) -> Quiz:
        rows = self._request("POST", "quizzes", json=[_quiz_to_row(quiz)], headers=_RETURN_REPRESENTATION)
        return _quiz_from_row(rows[0]) if rows else quiz

    def update_quiz(self, quiz: Quiz) -> Quiz:
        row = _quiz_to_row(quiz)
        del row["id"]
        rows = self._update("quizzes", {"id": f"eq.{quiz.id}"}, row)
        if not rows:
            raise RecordNotFoundError(f"quizzes row '{quiz.id}' not found")
        return _quiz_from_row(rows[0])

    def delete_quiz(self, quiz_id: str) -> None:
        self._request("DELETE", "quizzes", params={"id": f"eq.{quiz_id}"})

    def get_question(self, question_id: str) -> Question:
        return _question_from_row(self._select_one("questions", {"id": f"eq.{question_id}"}))

    def list_questions(self, quiz_id: str) -> list[Question]:
        rows = self._select("questions", {"quiz_id": f"eq.{quiz_id}", "order": "order_index.asc"})
        return [_question_from_row(row) for row in rows]

    def insert_question(self, question: Question) -> Question:
        rows = self._request("POST", "questions", json=[_question_to_row(question)], headers=_RETURN_REPRESENTATION)
        return _question_from_row(rows[0]) if rows else question

    def update_question(self, question: Question) -> Question:
        row = _question_to_row(question)
        del row["id"]
        rows = self._update("questions", {"id": f"eq.{question.id}"}, row)
        if not rows:
            raise RecordNotFoundError(f"questions row '{question.id}' not found")
        return _question_from_row(rows[0])

    def delete_question(self, question_id: str) -> None:
        self._request("DELETE", "questions", params={"id": f"eq.{question_id}"})

    # --- Session state ---

    def list_question_orders(self, assignment_id: str) -> list[QuestionOrder]:
        rows = self._select("question_orders", {"assignment_id": f"eq.{assignment_id}", "order": "order_index.asc"})
        return [
            QuestionOrder(
                assignment_id=row["assignment_id"],
                question_id=row["question_id"],
                order_index=row["order_index"],
            )
            for row in rows
        ]

    def insert_question_orders(self, orders: list[QuestionOrder]) -> None:
        payload = [
            {"assignment_id": o.assignment_id, "question_id": o.question_id, "order_index": o.order_index}
            for o in orders
        ]
        self._request("POST", "question_orders", json=payload)

    def list_submissions(self, assignment_id: str) -> list[Submission]:
        rows = self._select("submissions", {"assignment_id": f"eq.{assignment_id}"})
        return [_submission_from_row(row) for row in rows]

    def insert_submission(self, submission: Submission) -> None:
        self._request(
            "POST",
            "submissions",
            json=[
                {
                    "assignment_id": submission.assignment_id,
                    "question_id": submission.question_id,
                    "user_code": submission.user_code,
                    "is_correct": submission.is_correct,
                    "time_taken": submission.time_taken,
                }
            ],
        )

    def insert_cheat_event(self, event: CheatEvent) -> None:
        self._request(
            "POST",
            "cheat_logs",
            json=[
                {
                    "user_id": event.user_id,
                    "assignment_id": event.assignment_id,
                    "event_type": event.event_type.value,
                    "details": event.details,
                }
            ],
        )

    # --- Leaderboard ---

    def list_completed_submissions(self, quiz_id: str | None = None) -> list[CompletedSubmission]:
        params = {
            "select": "is_correct,time_taken,assignment:quiz_assignments!inner(user_id,quiz_id,is_completed)",
            "assignment.is_completed": "eq.true",
        }
        if quiz_id is not None:
            params["assignment.quiz_id"] = f"eq.{quiz_id}"
        rows = self._request("GET", "submissions", params=params) or []
        return [
            CompletedSubmission(
                user_id=row["assignment"]["user_id"],
                quiz_id=row["assignment"]["quiz_id"],
                is_correct=bool(row.get("is_correct")),
                time_taken=row.get("time_taken") or 0,
            )
            for row in rows
        ]

    def get_profiles(self, user_ids: list[str]) -> dict[str, Profile]:
        if not user_ids:
            return {}
        rows = self._select("profiles", {"id": f"in.({','.join(user_ids)})"})
        return {
            row["id"]: Profile(id=row["id"], email=row["email"], full_name=row.get("full_name"))
            for row in rows
        }

    # --- HTTP plumbing ---

    def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        return self._request("GET", table, params={"select": "*", **params}) or []

    def _select_one(self, table: str, params: dict[str, str]) -> dict[str, Any]:
        rows = self._select(table, params)
        if not rows:
            raise RecordNotFoundError(f"{table} row not found for {params}")
        return rows[0]

    def _update(self, table: str, params: dict[str, str], values: dict[str, Any]) -> list[dict[str, Any]]:
        return self._request("PATCH", table, params=params, json=values, headers=_RETURN_REPRESENTATION) or []

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self._rest_url}/{table}"
        try:
            response = self._client.request(method, url, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Storage request %s %s failed: %s", method, table, exc)
            raise StorageError(f"{method} {table} failed: {exc}") from exc

        if response.status_code >= 400:
            body = _safe_json(response)
            code = body.get("code") if isinstance(body, dict) else None
            message = body.get("message") if isinstance(body, dict) else response.text
            if response.status_code == 409 or code == _UNIQUE_VIOLATION:
                raise DuplicateRecordError(f"{table}: {message}")
            logger.warning("Storage rejected %s %s (%s): %s", method, table, response.status_code, message)
            raise StorageError(f"{method} {table} rejected with {response.status_code}: {message}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StorageError(f"{method} {table} returned a malformed body") from exc


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
