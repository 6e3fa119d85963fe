"""Explicit context object wiring discovery, execution, and reporting together."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

from .config import QuickFixSettings, load_config, resolve_workspace_root
from .errors import FixerDisabledError
from .fixers import FixerKind
from .memory.store import KeyValueStore, StateStore
from .prompts import build_cli_prompt, build_prompt, command_working_directory
from .report import ConsoleSink, FileSink, Reporter, TextSink
from .routes.catalog import Route
from .routes.prober import RouteProber
from .routes.resolver import RouteResolver
from .runner import FixerRunner, FixOutcome
from .tools.process import CommandExecutor, ProcessExecutor

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FixRequest:
    """Request to run a fixer against one line of a file."""

    kind: FixerKind
    file_path: Path
    line: int
    diagnostic: Optional[str] = None


class Orchestrator:
    """Own the caches and collaborators for one process lifetime.

    Every cache lives on this instance, so tests construct a fresh orchestrator
    for isolation and :meth:`shutdown` drops all cached state.
    """

    def __init__(
        self,
        *,
        settings: QuickFixSettings | Callable[[], QuickFixSettings] | None = None,
        store: Optional[KeyValueStore] = None,
        executor: Optional[CommandExecutor] = None,
        sink: Optional[TextSink] = None,
        workspace_root: Optional[Path] = None,
    ) -> None:
        if settings is None:
            settings = QuickFixSettings()
        if isinstance(settings, QuickFixSettings):
            fixed = settings
            self._settings_provider: Callable[[], QuickFixSettings] = lambda: fixed
        else:
            self._settings_provider = settings
        initial = self._settings_provider()

        self.workspace_root = workspace_root
        self.store = store
        self.executor = executor or ProcessExecutor(max_output_chars=initial.max_output_chars)
        self.reporter = Reporter(
            sink or _default_sink(initial),
            width=initial.box_width,
            max_content_chars=initial.max_content_chars,
            max_failure_lines=initial.max_failure_lines,
        )
        self.prober = RouteProber(self.executor, timeout=initial.probe_timeout)
        self.resolver = RouteResolver(
            self.prober,
            store=store,
            probe_cwd=workspace_root or Path.cwd(),
            allow_bridge_routes=lambda: self.settings().allow_bridge_routes,
        )
        self.runner = FixerRunner(
            self.resolver,
            self.prober,
            self.executor,
            self.reporter,
            timeout=initial.run_timeout,
        )
        self._warm_up_task: Optional[asyncio.Task[None]] = None

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        config_path: Path,
        *,
        executor: Optional[CommandExecutor] = None,
        sink: Optional[TextSink] = None,
    ) -> "Orchestrator":
        """Build an orchestrator whose settings are re-read from ``config_path`` per request."""
        workspace_root = resolve_workspace_root(config, config_path)
        store = StateStore.from_config(config, base_dir=config_path.parent)

        def _settings() -> QuickFixSettings:
            return QuickFixSettings.from_config(load_config(config_path))

        return cls(
            settings=_settings,
            store=store,
            executor=executor,
            sink=sink,
            workspace_root=workspace_root,
        )

    def settings(self) -> QuickFixSettings:
        return self._settings_provider()

    async def resolve(self, kind: FixerKind, force_refresh: bool = False) -> Optional[Route]:
        return await self.resolver.resolve(FixerKind.parse(kind), force_refresh)

    async def enabled_fixers(self) -> List[FixerKind]:
        """Return enabled fixers that currently have a working route."""
        settings = self.settings()
        enabled: List[FixerKind] = []
        for kind in FixerKind:
            if settings.is_enabled(kind) and await self.resolver.resolve(kind):
                enabled.append(kind)
        return enabled

    def warm_up(self) -> Optional[asyncio.Task[None]]:
        """Schedule best-effort discovery for every enabled fixer.

        Callers need not await the returned task; failures only leave the
        cache unresolved.
        """
        settings = self.settings()
        kinds = [kind for kind in FixerKind if settings.is_enabled(kind)]
        if not kinds:
            return None
        self._warm_up_task = asyncio.ensure_future(self._warm(kinds))
        return self._warm_up_task

    async def _warm(self, kinds: List[FixerKind]) -> None:
        results = await asyncio.gather(
            *(self.resolver.resolve(kind) for kind in kinds),
            return_exceptions=True,
        )
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                LOGGER.warning("Route warm-up for %s failed: %s", kind.value, result)

    async def fix(self, request: FixRequest) -> FixOutcome:
        """Build the prompt for ``request`` and run its fixer."""
        kind = FixerKind.parse(request.kind)
        if not self.settings().is_enabled(kind):
            raise FixerDisabledError(f"{kind.label} is disabled in settings.", kind=kind)
        file_path = Path(request.file_path)
        text = file_path.read_text(encoding="utf-8", errors="replace")
        prompt_spec = build_prompt(text, request.line - 1, request.diagnostic)
        cli_prompt = build_cli_prompt(file_path, self.workspace_root, prompt_spec.prompt)
        cwd = command_working_directory(file_path, self.workspace_root)
        return await self.runner.run(kind, cli_prompt, cwd)

    def forget(self, kind: FixerKind) -> None:
        self.resolver.forget(FixerKind.parse(kind))

    def report_error(self, message: str) -> None:
        self.reporter.error(message)

    def shutdown(self) -> None:
        """Cancel pending warm-up and drop every cached verdict."""
        if self._warm_up_task is not None and not self._warm_up_task.done():
            self._warm_up_task.cancel()
        self._warm_up_task = None
        self.prober.clear()
        self.resolver.clear()
        close = getattr(self.store, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


def _default_sink(settings: QuickFixSettings) -> TextSink:
    if settings.report_log:
        return FileSink(settings.report_log)
    return ConsoleSink()


__all__ = ["FixRequest", "Orchestrator"]
