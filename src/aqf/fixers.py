"""Fixer kinds backed by external command-line tools."""

from __future__ import annotations

from enum import Enum


class FixerKind(str, Enum):
    """Enumeration of the CLI-backed fixers."""

    CODEX_CLI = "codex-cli"
    CLAUDE_CLI = "claude-cli"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: "FixerKind | str") -> "FixerKind":
        """Resolve ``value`` into a ``FixerKind``, accepting display spellings."""
        if isinstance(value, FixerKind):
            return value
        normalised = str(value).strip().lower().replace(" ", "-").replace("_", "-")
        try:
            return cls(normalised)
        except ValueError as error:
            valid = ", ".join(item.value for item in cls)
            raise ValueError(f"Unknown fixer '{value}'. Expected one of: {valid}") from error


_LABELS = {
    FixerKind.CODEX_CLI: "Codex CLI",
    FixerKind.CLAUDE_CLI: "Claude CLI",
}


__all__ = ["FixerKind"]
