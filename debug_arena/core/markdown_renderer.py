"""Markdown rendering helpers for quiz descriptions and question prompts."""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from debug_arena.core.models import Question


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts author-supplied markdown into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str | None) -> str:
        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return ""
        return self._markdown.render(sanitized)

    def render_question(self, question: Question) -> str:
        """Render a question's title and, when set, its expected output."""
        lines = [f"### {question.title.strip() or '(untitled)'}"]
        if question.expected_output:
            lines.append("Expected output:")
            lines.append(f"```\n{question.expected_output.rstrip()}\n```")
        return self._markdown.render("\n\n".join(lines))


renderer = MarkdownRenderer()
# Shared instance; MarkdownIt renders are read-only so the API threads can reuse it.
