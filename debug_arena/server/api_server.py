"""FastAPI server exposing quiz sessions, leaderboard, playground and authoring."""

from __future__ import annotations

from threading import Thread

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from debug_arena.constants.about import APP_NAME, APP_VERSION
from debug_arena.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from debug_arena.constants.quiz_constants import DEFAULT_TIME_PER_QUESTION_SECONDS
from debug_arena.core.arena_manager import ArenaManager, ClientEvent
from debug_arena.core.errors import (
    ArenaError,
    AssignmentNotFoundError,
    AuthorizationError,
    DuplicateRecordError,
    ExecutionError,
    QuestionOrderPersistError,
    QuizValidationError,
    RecordNotFoundError,
    SessionStateError,
    StorageError,
    SubmissionNotSavedError,
)
from debug_arena.core.markdown_renderer import renderer
from debug_arena.core.models import Assignment, Question, Quiz, SessionContext, UserRole
from debug_arena.core.quiz_importer import QuizImportError, parse_questions_text
from debug_arena.core.services.leaderboard import Leaderboard, LeaderboardRow
from debug_arena.core.services.quiz_session import SessionSnapshot, SubmissionOutcome
from debug_arena.server.learner_page import LEARNER_PAGE_HTML

_USER_COOKIE = "debug_arena_user"

# Checked in order, so subclasses come before their bases.
_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (AssignmentNotFoundError, 404),
    (RecordNotFoundError, 404),
    (AuthorizationError, 403),
    (QuizValidationError, 422),
    (QuizImportError, 422),
    (DuplicateRecordError, 409),
    (SubmissionNotSavedError, 503),
    (QuestionOrderPersistError, 503),
    (SessionStateError, 409),
    (StorageError, 503),
    (ExecutionError, 502),
)


def _status_for(exc: Exception) -> int:
    return next((status for error_type, status in _STATUS_BY_ERROR if isinstance(exc, error_type)), 500)


class CodePayload(BaseModel):
    code: str


class SubmitPayload(BaseModel):
    question_id: str | None = None


class EventPayload(BaseModel):
    kind: ClientEvent


class PlaygroundPayload(BaseModel):
    language: str
    code: str


class QuizPayload(BaseModel):
    title: str
    language: str
    time_per_question: int = DEFAULT_TIME_PER_QUESTION_SECONDS
    description: str | None = None


class QuizUpdatePayload(BaseModel):
    title: str | None = None
    language: str | None = None
    time_per_question: int | None = None
    description: str | None = None
    is_active: bool | None = None


class QuestionPayload(BaseModel):
    incorrect_code: str
    correct_code: str
    title: str | None = None
    expected_output: str | None = None


class QuestionUpdatePayload(BaseModel):
    title: str | None = None
    incorrect_code: str | None = None
    correct_code: str | None = None
    expected_output: str | None = None


class ImportPayload(BaseModel):
    text: str


class AssignPayload(BaseModel):
    user_ids: list[str] = Field(default_factory=list)


def _serialize_quiz(quiz: Quiz | None) -> dict[str, object] | None:
    if quiz is None:
        return None
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "description_html": renderer.render_fragment(quiz.description),
        "language": quiz.language,
        "time_per_question": quiz.time_per_question,
        "is_active": quiz.is_active,
    }


def _serialize_question(question: Question, include_solution: bool = False) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": question.id,
        "quiz_id": question.quiz_id,
        "title": question.title,
        "question_html": renderer.render_question(question),
        "expected_output": question.expected_output,
        "language": question.language,
        "order_index": question.order_index,
    }
    if include_solution:
        payload["incorrect_code"] = question.incorrect_code
        payload["correct_code"] = question.correct_code
    return payload


def _serialize_assignment(assignment: Assignment) -> dict[str, object]:
    return {
        "id": assignment.id,
        "quiz_id": assignment.quiz_id,
        "user_id": assignment.user_id,
        "is_completed": assignment.is_completed,
        "started_at": assignment.started_at.isoformat() if assignment.started_at else None,
        "completed_at": assignment.completed_at.isoformat() if assignment.completed_at else None,
    }


def _serialize_snapshot(snapshot: SessionSnapshot) -> dict[str, object]:
    return {
        "state": snapshot.state.value,
        "assignment_id": snapshot.assignment_id,
        "quiz": _serialize_quiz(snapshot.quiz),
        "question": _serialize_question(snapshot.question) if snapshot.question else None,
        "question_index": snapshot.question_index,
        "question_count": snapshot.question_count,
        "code": snapshot.code,
        "remaining_seconds": snapshot.remaining_seconds,
        "tab_switch_count": snapshot.tab_switch_count,
        "results": (
            {"correct": snapshot.results.correct, "total": snapshot.results.total}
            if snapshot.results
            else None
        ),
        "last_error": snapshot.last_error,
    }


def _serialize_outcome(outcome: SubmissionOutcome) -> dict[str, object]:
    return {
        "question_id": outcome.question_id,
        "is_correct": outcome.is_correct,
        "method": outcome.method.value,
        "time_taken": outcome.time_taken,
        "auto_submitted": outcome.auto_submitted,
        "duplicate": outcome.duplicate,
        "quiz_completed": outcome.quiz_completed,
    }


def _serialize_row(row: LeaderboardRow) -> dict[str, object]:
    return {
        "rank": row.rank + 1,
        "user_id": row.user_id,
        "display_name": row.display_name,
        "email": row.email,
        "correct_count": row.correct_count,
        "total_questions": row.total_questions,
        "total_time": row.total_time,
        "formatted_time": row.formatted_time,
        "accuracy_percent": row.accuracy_percent,
        "position_bonus": row.position_bonus,
        "correctness_bonus": row.correctness_bonus,
        "speed_bonus": row.speed_bonus,
        "score": row.score,
    }


def get_session_context(
    request: Request,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> SessionContext:
    """Identity is asserted upstream by the hosted auth provider's proxy."""
    user_id = (x_user_id or request.cookies.get(_USER_COOKIE) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        role = UserRole((x_user_role or UserRole.USER.value).strip().lower())
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Unknown role") from exc
    return SessionContext(user_id=user_id, role=role)


def _get_manager_dependency(manager: ArenaManager):
    def dependency() -> ArenaManager:
        return manager

    return dependency


def create_api_app(manager: ArenaManager) -> FastAPI:
    """Create a FastAPI application wired to the provided manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    manager_dep = _get_manager_dependency(manager)

    @app.exception_handler(ArenaError)
    @app.exception_handler(QuizImportError)
    async def handle_arena_error(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})

    @app.get("/", response_class=HTMLResponse)
    def serve_learner_page() -> str:
        return LEARNER_PAGE_HTML

    # --- Learner routes ---

    @app.get("/assignments")
    def list_assignments(
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [
            {**_serialize_assignment(summary.assignment), "quiz": _serialize_quiz(summary.quiz)}
            for summary in mgr.list_assignments(context)
        ]

    @app.post("/assignments/{assignment_id}/session")
    def open_session(
        assignment_id: str,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return _serialize_snapshot(mgr.open_session(context, assignment_id))

    @app.get("/assignments/{assignment_id}/session")
    def get_session(
        assignment_id: str,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return _serialize_snapshot(mgr.get_snapshot(context, assignment_id))

    @app.put("/assignments/{assignment_id}/session/code", status_code=204)
    def update_code(
        assignment_id: str,
        payload: CodePayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> None:
        mgr.update_code(context, assignment_id, payload.code)

    @app.post("/assignments/{assignment_id}/session/submit", status_code=201)
    def submit(
        assignment_id: str,
        payload: SubmitPayload | None = None,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        outcome = mgr.submit(context, assignment_id, payload.question_id if payload else None)
        return {
            "outcome": _serialize_outcome(outcome),
            "session": _serialize_snapshot(mgr.get_snapshot(context, assignment_id)),
        }

    @app.post("/assignments/{assignment_id}/session/events")
    def record_event(
        assignment_id: str,
        payload: EventPayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        result = mgr.record_client_event(context, assignment_id, payload.kind)
        return {"tab_switch_count": result.tab_switch_count, "suppress_default": result.suppress_default}

    @app.delete("/assignments/{assignment_id}/session", status_code=204)
    def close_session(
        assignment_id: str,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> None:
        mgr.close_session(context, assignment_id)

    # --- Shared routes ---

    @app.get("/quizzes")
    def list_quizzes(
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> list[dict[str, object] | None]:
        return [_serialize_quiz(quiz) for quiz in mgr.list_quizzes(active_only=not context.is_admin)]

    @app.get("/leaderboard")
    def leaderboard(
        quiz_id: str | None = None,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        rows = mgr.get_leaderboard(quiz_id)
        return {
            "podium": [_serialize_row(row) for row in Leaderboard.podium(rows)],
            "rows": [_serialize_row(row) for row in rows],
        }

    @app.post("/playground/execute")
    def run_playground(
        payload: PlaygroundPayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        run = mgr.run_playground(payload.language, payload.code)
        return {"output": run.output, "is_error": run.is_error, "duration_ms": run.duration_ms}

    # --- Administrator routes ---

    @app.post("/admin/quizzes", status_code=201)
    def create_quiz(
        payload: QuizPayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object] | None:
        quiz = mgr.authoring(context).create_quiz(
            title=payload.title,
            language=payload.language,
            time_per_question=payload.time_per_question,
            description=payload.description,
        )
        return _serialize_quiz(quiz)

    @app.patch("/admin/quizzes/{quiz_id}")
    def update_quiz(
        quiz_id: str,
        payload: QuizUpdatePayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object] | None:
        quiz = mgr.authoring(context).update_quiz(quiz_id, **payload.model_dump(exclude_unset=True))
        return _serialize_quiz(quiz)

    @app.delete("/admin/quizzes/{quiz_id}", status_code=204)
    def delete_quiz(
        quiz_id: str,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> None:
        mgr.authoring(context).delete_quiz(quiz_id)

    @app.get("/admin/quizzes/{quiz_id}/questions")
    def list_questions(
        quiz_id: str,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        mgr.authoring(context)
        return [_serialize_question(q, include_solution=True) for q in mgr.store.list_questions(quiz_id)]

    @app.post("/admin/quizzes/{quiz_id}/questions", status_code=201)
    def add_question(
        quiz_id: str,
        payload: QuestionPayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        question = mgr.authoring(context).add_question(
            quiz_id,
            incorrect_code=payload.incorrect_code,
            correct_code=payload.correct_code,
            title=payload.title,
            expected_output=payload.expected_output,
        )
        return _serialize_question(question, include_solution=True)

    @app.post("/admin/quizzes/{quiz_id}/import", status_code=201)
    def import_questions(
        quiz_id: str,
        payload: ImportPayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        authoring = mgr.authoring(context)
        questions = authoring.add_questions(quiz_id, parse_questions_text(payload.text))
        return [_serialize_question(q, include_solution=True) for q in questions]

    @app.patch("/admin/questions/{question_id}")
    def update_question(
        question_id: str,
        payload: QuestionUpdatePayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        question = mgr.authoring(context).update_question(question_id, **payload.model_dump(exclude_unset=True))
        return _serialize_question(question, include_solution=True)

    @app.delete("/admin/questions/{question_id}", status_code=204)
    def delete_question(
        question_id: str,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> None:
        mgr.authoring(context).delete_question(question_id)

    @app.post("/admin/quizzes/{quiz_id}/assignments", status_code=201)
    def assign_quiz(
        quiz_id: str,
        payload: AssignPayload,
        context: SessionContext = Depends(get_session_context),
        mgr: ArenaManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        assignments = mgr.authoring(context).assign_quiz(quiz_id, payload.user_ids)
        return [_serialize_assignment(a) for a in assignments]

    return app


def start_api_server(
    manager: ArenaManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ArenaApiServer", daemon=True)
    thread.start()
    return thread
