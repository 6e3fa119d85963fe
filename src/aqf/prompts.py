"""Prompt text and working-directory helpers for quick-fix requests."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

CLI_INSTRUCTION = (
    "Apply the minimal quick fix by editing workspace files directly. "
    "Save changes, then return a one-line summary."
)


@dataclass(slots=True)
class PromptSpec:
    """Plain-text prompt plus the 1-based line it refers to."""

    prompt: str
    line: int


def clamp_line_index(line_count: int, requested: int) -> int:
    """Clamp a 0-based line index into ``[0, line_count - 1]``."""
    if line_count <= 0 or requested < 0:
        return 0
    return min(requested, line_count - 1)


def build_prompt(text: str, line_index: int, diagnostic: Optional[str]) -> PromptSpec:
    """Describe a diagnostic and the source line it was reported on."""
    lines = text.splitlines()
    index = clamp_line_index(len(lines), line_index)
    location_line = (lines[index] if lines else "") or "(empty line)"
    message = (diagnostic or "").strip() or "(none provided)"
    line = index + 1
    return PromptSpec(
        prompt=f"Diagnostic: {message}\nLine: {line}\nCode: {location_line}",
        line=line,
    )


def relative_display_path(file_path: Path, workspace_root: Optional[Path]) -> str:
    if workspace_root is not None:
        try:
            return file_path.resolve().relative_to(workspace_root.resolve()).as_posix()
        except ValueError:
            pass
    return str(file_path.resolve())


def build_cli_prompt(file_path: Path, workspace_root: Optional[Path], prompt: str) -> str:
    """Wrap ``prompt`` with the file location and the edit-in-place instruction."""
    return f"File: {relative_display_path(file_path, workspace_root)}\n{prompt}\n{CLI_INSTRUCTION}"


def command_working_directory(file_path: Path, workspace_root: Optional[Path]) -> Path:
    """Run fixers from the workspace root when it contains the file, else beside the file."""
    resolved = file_path.resolve()
    if workspace_root is not None:
        root = workspace_root.resolve()
        if resolved == root or root in resolved.parents:
            return root
    return resolved.parent


__all__ = [
    "CLI_INSTRUCTION",
    "PromptSpec",
    "build_cli_prompt",
    "build_prompt",
    "clamp_line_index",
    "command_working_directory",
    "relative_display_path",
]
