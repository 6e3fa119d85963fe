"""Exception hierarchy raised by the quick-fix engine."""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .fixers import FixerKind

__all__ = [
    "ConfigError",
    "FixerDisabledError",
    "FixerError",
    "NoWorkingRouteError",
    "RouteExhaustedError",
]


class ConfigError(ValueError):
    """Raised when the settings file cannot be parsed into a mapping."""


class FixerError(RuntimeError):
    """Base error raised when a fixer cannot complete a quick fix."""

    def __init__(
        self,
        message: str,
        *,
        kind: "FixerKind",
        failures: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.failures = list(failures)


class FixerDisabledError(FixerError):
    """Raised when a fix is requested for a fixer turned off in settings."""


class NoWorkingRouteError(FixerError):
    """Raised when discovery finds no executable route for a fixer."""


class RouteExhaustedError(FixerError):
    """Raised after every candidate route was attempted without success."""
