"""Boxed text reports written to an append-only sink."""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Protocol, Sequence

import typer

DEFAULT_BOX_WIDTH = 100
DEFAULT_MAX_CONTENT_CHARS = 4000
DEFAULT_MAX_FAILURE_LINES = 8
EMPTY_OUTPUT_PLACEHOLDER = "(command returned no output)"


class TextSink(Protocol):
    """Append-only destination for report lines."""

    def append_line(self, line: str) -> None:
        ...


class ConsoleSink:
    """Echo report lines to standard output."""

    def append_line(self, line: str) -> None:
        typer.echo(line)


class FileSink:
    """Append report lines to a log file, creating parent directories on demand."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def append_line(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")


@dataclass(slots=True)
class ReportSection:
    heading: str
    content: str


def truncate_text(content: str, max_chars: int) -> str:
    """Trim ``content`` to ``max_chars`` and note how much was dropped."""
    if len(content) <= max_chars:
        return content
    remaining = len(content) - max_chars
    return f"{content[:max_chars]}\n... [truncated {remaining} chars]"


def summarize_failures(failures: Sequence[str], limit: int = DEFAULT_MAX_FAILURE_LINES) -> str:
    """Render at most ``limit`` failure lines with an omission trailer."""
    if not failures:
        return "No route failures were captured."
    visible = "\n".join(failures[:limit])
    hidden = len(failures) - limit
    if hidden <= 0:
        return visible
    return f"{visible}\n... {hidden} more route failure(s) omitted."


def _wrap(content: str, width: int) -> List[str]:
    if width <= 0 or not content:
        return [""]
    return textwrap.wrap(
        content,
        width=width,
        expand_tabs=True,
        tabsize=4,
        replace_whitespace=False,
        drop_whitespace=True,
        break_on_hyphens=False,
    ) or [""]


def format_box(
    title: str,
    sections: Iterable[ReportSection],
    *,
    width: int = DEFAULT_BOX_WIDTH,
    max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
) -> List[str]:
    """Return the lines of a bordered report box."""
    inner = width - 2
    border = f"+{'-' * inner}+"

    def _line(content: str) -> str:
        return f"|{content[:inner].ljust(inner)}|"

    lines = [border]
    lines.extend(_line(f" {chunk}") for chunk in _wrap(title, width - 4))
    lines.append(border)
    for section in sections:
        lines.append(_line(f" {section.heading}:"))
        body = truncate_text(section.content.strip(), max_content_chars) or "(empty)"
        for raw in body.splitlines():
            for chunk in _wrap(raw.replace("\t", "    "), width - 6):
                lines.append(_line(f"   {chunk}"))
        lines.append(_line(""))
    lines.append(border)
    return lines


class Reporter:
    """Write success and failure boxes for fixer runs to a sink."""

    def __init__(
        self,
        sink: TextSink,
        *,
        width: int = DEFAULT_BOX_WIDTH,
        max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
        max_failure_lines: int = DEFAULT_MAX_FAILURE_LINES,
    ) -> None:
        self.sink = sink
        self.width = width
        self.max_content_chars = max_content_chars
        self.max_failure_lines = max_failure_lines

    def box(self, title: str, sections: Iterable[ReportSection]) -> None:
        for line in format_box(
            title,
            sections,
            width=self.width,
            max_content_chars=self.max_content_chars,
        ):
            self.sink.append_line(line)

    def success(
        self,
        label: str,
        *,
        route: str,
        prompt: str,
        output: str,
        previous_failures: Sequence[str] = (),
    ) -> None:
        sections = [
            ReportSection("Route", route),
            ReportSection("Prompt", prompt),
        ]
        if previous_failures:
            sections.append(
                ReportSection(
                    "Previous Attempts",
                    summarize_failures(previous_failures, self.max_failure_lines),
                )
            )
        sections.append(ReportSection("CLI Output", output or EMPTY_OUTPUT_PLACEHOLDER))
        self.box(f"{label} Quick Fix", sections)

    def failure(
        self,
        label: str,
        *,
        prompt: str,
        failures: Sequence[str],
        partial_output: Sequence[str] = (),
    ) -> None:
        """Report every route failure plus output captured before any timeout."""
        sections = [
            ReportSection("Prompt", prompt),
            ReportSection("Route Failures", summarize_failures(failures, self.max_failure_lines)),
        ]
        if partial_output:
            sections.append(ReportSection("Partial Output", "\n\n".join(partial_output)))
        self.box(f"{label} Quick Fix Failed", sections)

    def error(self, message: str) -> None:
        self.sink.append_line(f"[error] {message}")


__all__ = [
    "ConsoleSink",
    "DEFAULT_BOX_WIDTH",
    "DEFAULT_MAX_CONTENT_CHARS",
    "DEFAULT_MAX_FAILURE_LINES",
    "FileSink",
    "ReportSection",
    "Reporter",
    "TextSink",
    "format_box",
    "summarize_failures",
    "truncate_text",
]
