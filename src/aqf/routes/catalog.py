"""Candidate route generation for the CLI-backed fixers.

A route is one concrete way of reaching a fixer's binary: a transport (direct
spawn, a login ``bash`` shell, or the WSL bridge in shell or exec mode), one of
the two binary names the tool ships under, and an argument variant. The catalog
expands the full cross product for a fixer kind in preference order. It is a
pure function of its inputs and keeps no state between calls.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..fixers import FixerKind
from ..tools.process import CommandSpec


class Transport(str, Enum):
    """Invocation mechanism used to reach a binary, in preference order."""

    NATIVE = "native"
    BASH = "bash"
    WSL = "wsl"
    WSL_EXEC = "wsl-exec"

    @property
    def uses_bridge(self) -> bool:
        return self in (Transport.WSL, Transport.WSL_EXEC)


class Binary(str, Enum):
    """Executable names the supported tools are installed under."""

    CODEX = "codex"
    CODEX_CLI = "codex-cli"
    CLAUDE = "claude"
    CLAUDE_CLI = "claude-cli"


class Variant(str, Enum):
    """Argument dialects, ordered from most to least permissive per fixer."""

    WORKSPACE_WRITE_SKIPGIT = "exec:workspace-write-skipgit"
    AUTO_SKIPGIT = "exec:auto-skipgit"
    SKIPGIT = "exec:skipgit"
    PLAIN = "exec:plain"
    PRINT_SHORT = "p"
    PRINT_LONG = "print"


@dataclass(frozen=True, slots=True)
class _VariantSpec:
    args: Tuple[str, ...]
    label: str


@dataclass(frozen=True, slots=True)
class _ToolSpec:
    binaries: Tuple[Binary, ...]
    variants: Tuple[Variant, ...]
    probe_args: Tuple[str, ...]
    variant_major: bool


_VARIANTS: Dict[Variant, _VariantSpec] = {
    Variant.WORKSPACE_WRITE_SKIPGIT: _VariantSpec(
        args=("exec", "--sandbox", "workspace-write", "--skip-git-repo-check"),
        label="exec (--sandbox workspace-write --skip-git-repo-check)",
    ),
    Variant.AUTO_SKIPGIT: _VariantSpec(
        args=("exec", "--full-auto", "--skip-git-repo-check"),
        label="exec (--full-auto --skip-git-repo-check)",
    ),
    Variant.SKIPGIT: _VariantSpec(
        args=("exec", "--skip-git-repo-check"),
        label="exec (--skip-git-repo-check)",
    ),
    Variant.PLAIN: _VariantSpec(args=("exec",), label="exec"),
    Variant.PRINT_SHORT: _VariantSpec(args=("-p",), label="-p"),
    Variant.PRINT_LONG: _VariantSpec(args=("--print",), label="--print"),
}

# Codex escalates permissions, so the variant is the outer axis. Claude's two
# spellings are equivalent, so both are tried on the cheapest transport first.
_TOOLS: Dict[FixerKind, _ToolSpec] = {
    FixerKind.CODEX_CLI: _ToolSpec(
        binaries=(Binary.CODEX, Binary.CODEX_CLI),
        variants=(
            Variant.WORKSPACE_WRITE_SKIPGIT,
            Variant.AUTO_SKIPGIT,
            Variant.SKIPGIT,
            Variant.PLAIN,
        ),
        probe_args=("exec", "--help"),
        variant_major=True,
    ),
    FixerKind.CLAUDE_CLI: _ToolSpec(
        binaries=(Binary.CLAUDE, Binary.CLAUDE_CLI),
        variants=(Variant.PRINT_SHORT, Variant.PRINT_LONG),
        probe_args=("--help",),
        variant_major=False,
    ),
}

WRITE_CAPABLE_VARIANTS = frozenset({Variant.WORKSPACE_WRITE_SKIPGIT})


def quote_for_posix_shell(value: str) -> str:
    """Quote ``value`` as a single POSIX shell word."""
    return shlex.quote(value)


def _shell_line(words: Tuple[str, ...]) -> str:
    return " ".join(quote_for_posix_shell(word) for word in words)


@dataclass(frozen=True, slots=True)
class RouteKey:
    """Structured identity of a route: transport x binary x variant."""

    transport: Transport
    binary: Binary
    variant: Variant

    @property
    def id(self) -> str:
        return f"{self.transport.value}:{self.binary.value}:{self.variant.value}"

    @classmethod
    def parse(cls, value: object) -> Optional["RouteKey"]:
        """Parse a stored route id, returning ``None`` for anything unrecognised."""
        if not isinstance(value, str):
            return None
        parts = value.split(":", 2)
        if len(parts) != 3:
            return None
        try:
            return cls(Transport(parts[0]), Binary(parts[1]), Variant(parts[2]))
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class Route:
    """One concrete strategy for invoking a fixer's CLI."""

    key: RouteKey
    probe_args: Tuple[str, ...]

    @property
    def id(self) -> str:
        return self.key.id

    @property
    def transport(self) -> Transport:
        return self.key.transport

    @property
    def display(self) -> str:
        tail = f"{self.key.binary.value} {_VARIANTS[self.key.variant].label}"
        transport = self.key.transport
        if transport is Transport.BASH:
            return f"bash -> {tail}"
        if transport is Transport.WSL:
            return f"wsl bash -> {tail}"
        if transport is Transport.WSL_EXEC:
            return f"wsl --exec {tail}"
        return tail

    @property
    def probe(self) -> CommandSpec:
        return self._wrap(self.probe_args)

    def build_run(self, prompt: str) -> CommandSpec:
        """Return the command that performs the real fix for ``prompt``."""
        return self._wrap((*_VARIANTS[self.key.variant].args, prompt))

    def _wrap(self, tool_args: Tuple[str, ...]) -> CommandSpec:
        binary = self.key.binary.value
        transport = self.key.transport
        if transport is Transport.NATIVE:
            return CommandSpec(binary, tool_args)
        if transport is Transport.WSL_EXEC:
            return CommandSpec("wsl", ("--exec", binary, *tool_args))
        line = _shell_line((binary, *tool_args))
        if transport is Transport.BASH:
            return CommandSpec("bash", ("-lc", line))
        return CommandSpec("wsl", ("bash", "-lc", line))


def build_route_candidates(kind: FixerKind, *, allow_bridge_routes: bool = True) -> List[Route]:
    """Return every candidate route for ``kind`` in preference order."""
    tool = _TOOLS[FixerKind.parse(kind)]
    transports = [item for item in Transport if allow_bridge_routes or not item.uses_bridge]

    routes: List[Route] = []
    for binary in tool.binaries:
        if tool.variant_major:
            pairs = [(transport, variant) for variant in tool.variants for transport in transports]
        else:
            pairs = [(transport, variant) for transport in transports for variant in tool.variants]
        for transport, variant in pairs:
            routes.append(Route(RouteKey(transport, binary, variant), tool.probe_args))
    return routes


def order_routes_with_preferred(routes: List[Route], preferred_id: Optional[str]) -> List[Route]:
    """Move the route named by ``preferred_id`` to the front, keeping the rest in order."""
    if not preferred_id:
        return list(routes)
    preferred = next((route for route in routes if route.id == preferred_id), None)
    if preferred is None:
        return list(routes)
    return [preferred, *(route for route in routes if route.id != preferred_id)]


def is_write_capable(route_id: Optional[str]) -> bool:
    """Return whether ``route_id`` names a most-permissive-for-writes variant."""
    key = RouteKey.parse(route_id)
    return key is not None and key.variant in WRITE_CAPABLE_VARIANTS


__all__ = [
    "Binary",
    "Route",
    "RouteKey",
    "Transport",
    "Variant",
    "WRITE_CAPABLE_VARIANTS",
    "build_route_candidates",
    "is_write_capable",
    "order_routes_with_preferred",
    "quote_for_posix_shell",
]
