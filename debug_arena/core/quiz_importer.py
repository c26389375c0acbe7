"""Utilities for importing debugging questions from a plain-text file.

File format (blocks separated by a line containing only '---'):

    TITLE: Short description of the bug (optional, defaults to "Fix the bug")
    BUGGY:
    <buggy source, copied verbatim until the next marker>
    FIXED:
    <corrected source, copied verbatim until the next marker>
    OUTPUT:
    <expected standard output (optional)>

Example:

    TITLE: Off-by-one loop
    BUGGY:
    for (let i = 0; i <= 3; i++) console.log(i);
    FIXED:
    for (let i = 0; i < 3; i++) console.log(i);
    OUTPUT:
    0
    1
    2

Code sections may contain blank lines, so only '---' ends a block. Marker
lines are recognized only when the marker starts the line.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from debug_arena.constants.quiz_constants import DEFAULT_QUESTION_TITLE
from debug_arena.core.models import Question


class QuizImportError(Exception):
    """Raised when a question file cannot be parsed."""


@dataclass(slots=True)
class ImportedQuestions:
    """Container for imported questions and where they came from."""

    source_path: Path | None
    questions: list[Question]


_CODE_SECTIONS = ("BUGGY", "FIXED", "OUTPUT")


def load_questions_from_file(file_path: Path) -> ImportedQuestions:
    text = file_path.read_text(encoding="utf-8")
    return ImportedQuestions(source_path=file_path, questions=parse_questions_text(text))


def parse_questions_text(text: str) -> list[Question]:
    blocks: list[list[str]] = [[]]
    for raw_line in text.splitlines():
        if raw_line.strip() == "---":
            blocks.append([])
        else:
            blocks[-1].append(raw_line)

    questions = [_parse_block(lines) for lines in blocks if any(line.strip() for line in lines)]
    if not questions:
        raise QuizImportError("Question file did not contain any questions.")
    return questions


def _parse_block(lines: list[str]) -> Question:
    title: str | None = None
    sections: dict[str, list[str]] = {}
    current_section: str | None = None

    for raw_line in lines:
        upper = raw_line.upper()
        if upper.startswith("TITLE:"):
            title = raw_line.split(":", 1)[1].strip()
            current_section = None
            continue

        marker = next((name for name in _CODE_SECTIONS if upper.rstrip() == f"{name}:"), None)
        if marker is not None:
            if marker in sections:
                raise QuizImportError(f"Section {marker}: appears twice in one question.")
            sections[marker] = []
            current_section = marker
            continue

        if current_section is not None:
            sections[current_section].append(raw_line)
        elif raw_line.strip():
            raise QuizImportError(f"Encountered text outside of a known section: '{raw_line.strip()}'.")

    buggy = _join_section(sections.get("BUGGY"))
    fixed = _join_section(sections.get("FIXED"))
    if not buggy:
        raise QuizImportError("Buggy code missing (BUGGY:).")
    if not fixed:
        raise QuizImportError("Corrected code missing (FIXED:).")

    return Question(
        id="",  # assigned when the question is stored
        quiz_id="",
        title=title or DEFAULT_QUESTION_TITLE,
        incorrect_code=buggy,
        correct_code=fixed,
        language="",
        expected_output=_join_section(sections.get("OUTPUT")) or None,
    )


def _join_section(lines: list[str] | None) -> str:
    if not lines:
        return ""
    # Trim blank lines around the section but keep interior formatting intact.
    while lines and not lines[0].strip():
        lines = lines[1:]
    while lines and not lines[-1].strip():
        lines = lines[:-1]
    return "\n".join(lines)
