"""Answer verification: run-and-compare output, falling back to normalized code equality.

Verification is split into two explicit steps. ``attempt_execution`` talks
to the execution service and returns ``None`` on any soft failure;
``verify`` then picks output comparison when a run result exists and the
offline normalized comparison otherwise. The fallback never depends on the
network, so it can be exercised without an executor at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import Protocol

from debug_arena.core.errors import ExecutionError
from debug_arena.core.models import Question
from debug_arena.core.services.code_executor import ExecutionResult

logger = logging.getLogger(__name__)

_COMMENT_PATTERN = re.compile(r"/\*[\s\S]*?\*/|//.*")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_PUNCTUATION_PATTERN = re.compile(r"\s*([{}();,])\s*")


class Executor(Protocol):
    def execute(self, language: str, source: str) -> ExecutionResult: ...


class VerificationMethod(str, Enum):
    OUTPUT = "output"
    NORMALIZED = "normalized"


@dataclass(slots=True)
class VerificationResult:
    is_correct: bool
    method: VerificationMethod
    stdout: str | None = None


def normalize_code(code: str) -> str:
    """Strip comments, whitespace differences and case from a source string."""
    without_comments = _COMMENT_PATTERN.sub("", code)
    collapsed = _WHITESPACE_PATTERN.sub(" ", without_comments)
    tightened = _PUNCTUATION_PATTERN.sub(r"\1", collapsed)
    return tightened.strip().lower()


def codes_match(submitted: str, canonical: str) -> bool:
    return normalize_code(submitted) == normalize_code(canonical)


def outputs_match(actual: str, expected: str) -> bool:
    return actual.rstrip() == expected.rstrip()


class CodeVerifier:
    """Decides whether a learner's buffer fixes the question's bug."""

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor

    def attempt_execution(self, language: str, code: str) -> ExecutionResult | None:
        if self._executor is None:
            return None
        try:
            return self._executor.execute(language, code)
        except ExecutionError as exc:
            logger.warning("Execution unavailable, using normalized comparison: %s", exc)
            return None

    def verify(self, question: Question, language: str, code: str) -> VerificationResult:
        if question.expected_output:
            result = self.attempt_execution(language, code)
            if result is not None:
                return VerificationResult(
                    is_correct=outputs_match(result.stdout, question.expected_output),
                    method=VerificationMethod.OUTPUT,
                    stdout=result.stdout,
                )
        return VerificationResult(
            is_correct=codes_match(code, question.correct_code),
            method=VerificationMethod.NORMALIZED,
        )
