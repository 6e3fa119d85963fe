"""Tool integrations exposed by the quick-fix runtime."""

from .process import CommandExecutor, CommandSpec, ProcessExecutor, ProcessResult

__all__ = [
    "CommandExecutor",
    "CommandSpec",
    "ProcessExecutor",
    "ProcessResult",
]
