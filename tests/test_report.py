from __future__ import annotations

from pathlib import Path

from conftest import ListSink
from aqf.report import FileSink, ReportSection, Reporter, format_box, summarize_failures, truncate_text


def test_format_box_layout() -> None:
    lines = format_box("Codex CLI Quick Fix", [ReportSection("Route", "codex exec")], width=30)

    assert lines[0] == "+" + "-" * 28 + "+"
    assert lines[1] == "| Codex CLI Quick Fix".ljust(29) + "|"
    assert lines[3] == "| Route:".ljust(29) + "|"
    assert lines[4] == "|   codex exec".ljust(29) + "|"
    assert lines[-1] == lines[0]
    assert all(len(line) == 30 for line in lines)


def test_format_box_wraps_long_content() -> None:
    body = "word " * 40
    lines = format_box("T", [ReportSection("Prompt", body)], width=40)

    assert all(len(line) == 40 for line in lines)
    assert sum("word" in line for line in lines) > 1


def test_empty_section_body_is_marked() -> None:
    lines = format_box("T", [ReportSection("Prompt", "   ")], width=40)
    assert any("(empty)" in line for line in lines)


def test_truncate_text() -> None:
    assert truncate_text("abc", 5) == "abc"
    assert truncate_text("abcdefgh", 5) == "abcde\n... [truncated 3 chars]"


def test_summarize_failures() -> None:
    assert summarize_failures([]) == "No route failures were captured."
    failures = [f"route {index}: exited with code 1" for index in range(5)]
    assert summarize_failures(failures, limit=5) == "\n".join(failures)
    summary = summarize_failures(failures, limit=2)
    assert summary.splitlines() == [
        "route 0: exited with code 1",
        "route 1: exited with code 1",
        "... 3 more route failure(s) omitted.",
    ]


def test_success_report_uses_placeholder_for_empty_output(sink: ListSink) -> None:
    Reporter(sink, width=60).success("Claude CLI", route="claude -p", prompt="Fix it", output="")

    assert "Claude CLI Quick Fix" in sink.lines[1]
    assert "(command returned no output)" in sink.text
    assert "CLI Output:" in sink.text


def test_failure_report_truncates_long_content(sink: ListSink) -> None:
    reporter = Reporter(sink, width=60, max_content_chars=70, max_failure_lines=1)
    reporter.failure("Codex CLI", prompt="x" * 100, failures=["a: spawn failed (ENOENT)", "b: timed out after 3s"])

    assert "Codex CLI Quick Fix Failed" in sink.text
    assert "[truncated 30 chars]" in sink.text
    assert "a: spawn failed (ENOENT)" in sink.text
    assert "b: timed out" not in sink.text
    assert "1 more route failure(s) omitted." in sink.text


def test_file_sink_appends(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "quick-fix.log"
    reporter = Reporter(FileSink(path), width=40)

    reporter.error("first")
    reporter.error("second")

    assert path.read_text(encoding="utf-8") == "[error] first\n[error] second\n"


def test_reports_list_earlier_failures_and_partial_output(sink: ListSink) -> None:
    reporter = Reporter(sink, width=80)
    reporter.success(
        "Codex CLI",
        route="codex exec",
        prompt="Fix it",
        output="stdout:\nDone.",
        previous_failures=["codex exec (--full-auto): reported read-only sandbox"],
    )
    reporter.failure(
        "Claude CLI",
        prompt="Fix it",
        failures=["claude -p: timed out after 180s"],
        partial_output=["claude -p:\nstdout:\nThinking about app.py"],
    )

    assert "Previous Attempts:" in sink.text
    assert "codex exec (--full-auto): reported read-only sandbox" in sink.text
    assert "Partial Output:" in sink.text
    assert "Thinking about app.py" in sink.text
