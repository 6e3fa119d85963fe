"""Fixer run loop: execute routes in order with sandbox and invocation fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal

from .errors import NoWorkingRouteError, RouteExhaustedError
from .fixers import FixerKind
from .report import Reporter
from .routes.catalog import Route, order_routes_with_preferred
from .routes.prober import RouteProber
from .routes.resolver import RouteResolver
from .tools.process import CommandExecutor, ProcessResult

DEFAULT_RUN_TIMEOUT = 180.0
NO_ROUTE_ACCEPTED = "no executable command route was accepted."

LOGGER = logging.getLogger(__name__)

AttemptVerdict = Literal["succeeded", "read-only-sandbox", "invocation-failure", "failed"]


@dataclass(slots=True)
class RouteAttempt:
    """Outcome of running a single candidate route."""

    route: Route
    result: ProcessResult
    verdict: AttemptVerdict


@dataclass(slots=True)
class FixOutcome:
    """Successful fixer run: the accepted route and its captured output."""

    kind: FixerKind
    route: Route
    prompt: str
    result: ProcessResult
    attempts: List[RouteAttempt] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)


class FixerRunner:
    """Run a fixer's CLI against a prompt, falling back across candidate routes."""

    def __init__(
        self,
        resolver: RouteResolver,
        prober: RouteProber,
        executor: CommandExecutor,
        reporter: Reporter,
        *,
        timeout: float = DEFAULT_RUN_TIMEOUT,
    ) -> None:
        self._resolver = resolver
        self._prober = prober
        self._executor = executor
        self._reporter = reporter
        self._timeout = timeout

    async def run(self, kind: FixerKind, prompt: str, cwd: Path | str) -> FixOutcome:
        """Execute ``prompt`` with the first route that accepts it.

        Raises :class:`NoWorkingRouteError` when discovery finds nothing and
        :class:`RouteExhaustedError` when every attempted route failed.
        """
        kind = FixerKind.parse(kind)
        base_route = await self._resolver.resolve(kind)
        if base_route is None:
            raise NoWorkingRouteError(
                f"{kind.label} is enabled, but no working CLI route was found.",
                kind=kind,
            )

        routes = order_routes_with_preferred(self._resolver.candidates(kind), base_route.id)
        failures: List[str] = []
        partial_output: List[str] = []
        attempts: List[RouteAttempt] = []
        invocation_failures_only = True

        for route in routes:
            if route.id != base_route.id and not await self._prober.probe(route, cwd):
                continue

            LOGGER.debug("Running %s via %s", kind.value, route.id)
            result = await self._executor.run(route.build_run(prompt), cwd, self._timeout)

            if result.is_read_only_sandbox_notice():
                invocation_failures_only = False
                attempts.append(RouteAttempt(route, result, "read-only-sandbox"))
                failures.append(
                    f"{route.display}: reported read-only sandbox, so no file edits were saved."
                )
                continue

            if result.succeeded:
                attempts.append(RouteAttempt(route, result, "succeeded"))
                self._resolver.remember(kind, route)
                self._reporter.success(
                    kind.label,
                    route=route.display,
                    prompt=prompt,
                    output=result.output_text(),
                    previous_failures=failures,
                )
                return FixOutcome(
                    kind=kind,
                    route=route,
                    prompt=prompt,
                    result=result,
                    attempts=attempts,
                    failures=failures,
                )

            failures.append(f"{route.display}: {result.short_message()}")
            if result.timed_out and result.output_text():
                partial_output.append(f"{route.display}:\n{result.output_text()}")
            if not result.is_invocation_failure():
                invocation_failures_only = False
                attempts.append(RouteAttempt(route, result, "failed"))
                LOGGER.debug("Route %s failed on its merits; stopping", route.id)
                break
            attempts.append(RouteAttempt(route, result, "invocation-failure"))

        if invocation_failures_only:
            LOGGER.debug("Only invocation failures for %s; clearing cached route", kind.value)
            self._resolver.forget(kind)

        summary = failures[0] if failures else NO_ROUTE_ACCEPTED
        self._reporter.failure(
            kind.label, prompt=prompt, failures=failures, partial_output=partial_output
        )
        raise RouteExhaustedError(f"{kind.label} failed: {summary}", kind=kind, failures=failures)


__all__ = ["AttemptVerdict", "DEFAULT_RUN_TIMEOUT", "FixOutcome", "FixerRunner", "RouteAttempt"]
