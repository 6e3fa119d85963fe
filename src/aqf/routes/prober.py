"""Executability probes for candidate routes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Tuple

from ..tools.process import CommandExecutor
from .catalog import Route

DEFAULT_PROBE_TIMEOUT = 3.0

LOGGER = logging.getLogger(__name__)

ProbeKey = Tuple[str, str, Tuple[str, ...]]


class RouteProber:
    """Run route probes once per (cwd, command, args) and share in-flight results."""

    def __init__(self, executor: CommandExecutor, *, timeout: float = DEFAULT_PROBE_TIMEOUT) -> None:
        self._executor = executor
        self._timeout = timeout
        self._cache: Dict[ProbeKey, bool] = {}
        self._in_flight: Dict[ProbeKey, asyncio.Task[bool]] = {}

    @staticmethod
    def probe_key(route: Route, cwd: Path | str) -> ProbeKey:
        spec = route.probe
        return (str(cwd), spec.command, spec.args)

    async def probe(self, route: Route, cwd: Path | str) -> bool:
        """Return whether ``route``'s transport and binary are executable in ``cwd``."""
        key = self.probe_key(route, cwd)
        if key in self._cache:
            return self._cache[key]

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_probe(route, cwd, key))
            self._in_flight[key] = task
        return await asyncio.shield(task)

    async def _run_probe(self, route: Route, cwd: Path | str, key: ProbeKey) -> bool:
        task = asyncio.current_task()
        try:
            result = await self._executor.run(route.probe, cwd, self._timeout)
            success = result.succeeded
            # A clear() during the probe unregisters it; its verdict is dropped.
            if self._in_flight.get(key) is task:
                self._cache[key] = success
            LOGGER.debug("Probe %s -> %s", " ".join(route.probe.argv), "ok" if success else "failed")
            return success
        finally:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]

    def clear(self) -> None:
        """Forget every cached probe verdict and in-flight registration."""
        self._cache.clear()
        self._in_flight.clear()


__all__ = ["DEFAULT_PROBE_TIMEOUT", "ProbeKey", "RouteProber"]
