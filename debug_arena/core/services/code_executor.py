"""Client for the public Piston code-execution API."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time

import httpx

from debug_arena.constants.network_constants import EXECUTION_TIMEOUT_SECONDS, PISTON_EXECUTE_URL
from debug_arena.constants.quiz_constants import LANGUAGE_VERSIONS
from debug_arena.core.errors import ExecutionError

logger = logging.getLogger(__name__)

NO_OUTPUT_MESSAGE = "Code executed successfully with no output."


@dataclass(slots=True)
class ExecutionResult:
    """Captured streams of one remote run."""

    stdout: str
    stderr: str
    output: str


@dataclass(slots=True)
class PlaygroundRun:
    output: str
    is_error: bool
    duration_ms: int


class PistonExecutor:
    """Runs source text remotely; every failure is reported as ``ExecutionError``."""

    def __init__(self, url: str = PISTON_EXECUTE_URL, client: httpx.Client | None = None) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=EXECUTION_TIMEOUT_SECONDS)

    def close(self) -> None:
        self._client.close()

    def execute(self, language: str, source: str) -> ExecutionResult:
        version = LANGUAGE_VERSIONS.get(language)
        if version is None:
            raise ExecutionError(f"Unsupported language '{language}'")

        payload = {"language": language, "version": version, "files": [{"content": source}]}
        try:
            response = self._client.post(self._url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise ExecutionError(f"Execution request failed: {exc}") from exc
        except ValueError as exc:
            raise ExecutionError("Execution service returned a malformed body") from exc

        run = data.get("run") if isinstance(data, dict) else None
        if not isinstance(run, dict):
            raise ExecutionError("Execution service response has no run output")

        return ExecutionResult(
            stdout=run.get("stdout") or "",
            stderr=run.get("stderr") or "",
            output=run.get("output") or "",
        )

    def run_playground(self, language: str, source: str) -> PlaygroundRun:
        """Execute free-form code and pick the stream worth showing."""
        started = time.perf_counter()
        result = self.execute(language, source)
        duration_ms = round((time.perf_counter() - started) * 1000)
        if result.stderr:
            return PlaygroundRun(output=result.stderr, is_error=True, duration_ms=duration_ms)
        return PlaygroundRun(output=result.output or NO_OUTPUT_MESSAGE, is_error=False, duration_ms=duration_ms)
