"""Route discovery, caching, and persisted preference for CLI fixers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..fixers import FixerKind
from ..memory.store import KeyValueStore
from .catalog import Route, build_route_candidates, is_write_capable, order_routes_with_preferred
from .prober import RouteProber

ROUTE_STATE_KEY = "aiQuickFix.cliRouteByFixer.v1"

LOGGER = logging.getLogger(__name__)


class RouteResolver:
    """Find, cache, and persist a working route per fixer kind.

    The in-memory verdict for a kind is either absent (unresolved), a ``Route``
    (known-good), or ``None`` (known-bad). Known-good verdicts are mirrored to
    ``store`` under :data:`ROUTE_STATE_KEY` as ``{kind: route_id}`` so a later
    process can skip rediscovery.
    """

    def __init__(
        self,
        prober: RouteProber,
        *,
        store: Optional[KeyValueStore] = None,
        probe_cwd: Path | str = ".",
        allow_bridge_routes: Callable[[], bool] = lambda: True,
    ) -> None:
        self._prober = prober
        self._store = store
        self._probe_cwd = probe_cwd
        self._allow_bridge_routes = allow_bridge_routes
        self._cache: Dict[FixerKind, Optional[Route]] = {}
        self._in_flight: Dict[FixerKind, asyncio.Task[Optional[Route]]] = {}

    def candidates(self, kind: FixerKind) -> List[Route]:
        """Return the current candidate set for ``kind`` under live settings."""
        return build_route_candidates(kind, allow_bridge_routes=self._allow_bridge_routes())

    def is_route_available(self, kind: FixerKind, route_id: str) -> bool:
        return any(route.id == route_id for route in self.candidates(kind))

    async def resolve(self, kind: FixerKind, force_refresh: bool = False) -> Optional[Route]:
        """Return a working route for ``kind``, discovering one when needed."""
        kind = FixerKind.parse(kind)
        if not force_refresh and kind in self._cache:
            cached = self._cache[kind]
            if cached is None:
                return None
            if self.is_route_available(kind, cached.id):
                return cached
            LOGGER.debug("Cached route %s for %s left the candidate set", cached.id, kind.value)
            self.forget(kind)

        if not force_refresh:
            pending = self._in_flight.get(kind)
            if pending is not None:
                return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._discover(kind))
        self._in_flight[kind] = task
        task.add_done_callback(lambda done: self._release(kind, done))
        return await asyncio.shield(task)

    def _release(self, kind: FixerKind, task: "asyncio.Task[Optional[Route]]") -> None:
        if self._in_flight.get(kind) is task:
            del self._in_flight[kind]

    async def _discover(self, kind: FixerKind) -> Optional[Route]:
        preferred = self.discovery_preferred_route_id(kind, self.persisted_route_id(kind))
        routes = order_routes_with_preferred(self.candidates(kind), preferred)
        for route in routes:
            if await self._prober.probe(route, self._probe_cwd):
                LOGGER.debug("Discovered route %s for %s", route.id, kind.value)
                self.remember(kind, route)
                return route

        LOGGER.debug("No working route for %s among %d candidate(s)", kind.value, len(routes))
        self.remember(kind, None)
        return None

    @staticmethod
    def discovery_preferred_route_id(kind: FixerKind, route_id: Optional[str]) -> Optional[str]:
        """Filter a persisted preference before it reorders discovery.

        Codex only keeps a preference for a write-capable variant, so discovery
        climbs back to the most capable route after a restrictive fallback.
        """
        if not route_id:
            return None
        if kind is not FixerKind.CODEX_CLI:
            return route_id
        return route_id if is_write_capable(route_id) else None

    def cached(self, kind: FixerKind) -> Optional[Route]:
        return self._cache.get(kind)

    def has_verdict(self, kind: FixerKind) -> bool:
        return kind in self._cache

    def remember(self, kind: FixerKind, route: Optional[Route]) -> None:
        """Record a known-good route, or known-bad when ``route`` is ``None``."""
        self._cache[kind] = route
        self._persist(kind, route.id if route is not None else None)

    def forget(self, kind: FixerKind) -> None:
        """Reset ``kind`` to unresolved in memory and in the durable store."""
        self._cache.pop(kind, None)
        self._persist(kind, None)

    def persisted_route_id(self, kind: FixerKind) -> Optional[str]:
        value = self.persisted_routes().get(kind.value)
        return value if isinstance(value, str) else None

    def persisted_routes(self) -> Dict[str, object]:
        if self._store is None:
            return {}
        persisted = self._store.get(ROUTE_STATE_KEY, {})
        return dict(persisted) if isinstance(persisted, dict) else {}

    def _persist(self, kind: FixerKind, route_id: Optional[str]) -> None:
        if self._store is None:
            return
        persisted = self.persisted_routes()
        if route_id:
            persisted[kind.value] = route_id
        else:
            persisted.pop(kind.value, None)
        self._store.update(ROUTE_STATE_KEY, persisted)

    def clear(self) -> None:
        """Drop in-memory verdicts and in-flight registrations."""
        self._cache.clear()
        self._in_flight.clear()


__all__ = ["ROUTE_STATE_KEY", "RouteResolver"]
