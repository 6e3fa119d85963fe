from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from aqf.tools.process import CommandSpec, ProcessResult  # noqa: E402


def ok(stdout: str = "", stderr: str = "") -> ProcessResult:
    return ProcessResult(exit_code=0, stdout=stdout, stderr=stderr)


def exited(code: int, stdout: str = "", stderr: str = "") -> ProcessResult:
    return ProcessResult(exit_code=code, stdout=stdout, stderr=stderr)


def missing(command: str = "codex") -> ProcessResult:
    return ProcessResult(
        exit_code=None,
        stdout="",
        stderr=f"[Errno 2] No such file or directory: '{command}'",
        error_code="ENOENT",
    )


@dataclass(slots=True)
class FakeExecutor:
    """Spy executor that answers from ``handler`` and records every call."""

    handler: Callable[[CommandSpec], ProcessResult] = lambda spec: ok()
    delay: float = 0.0
    calls: List[Tuple[CommandSpec, str, float]] = field(default_factory=list)

    async def run(self, spec: CommandSpec, cwd, timeout: float) -> ProcessResult:
        self.calls.append((spec, str(cwd), timeout))
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)
        return self.handler(spec)

    def argvs(self) -> List[List[str]]:
        return [spec.argv for spec, _, _ in self.calls]


@dataclass(slots=True)
class ListSink:
    """Report sink capturing lines in memory."""

    lines: List[str] = field(default_factory=list)

    def append_line(self, line: str) -> None:
        self.lines.append(line)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class DictStore:
    """Dict-backed stand-in for the durable key-value store."""

    def __init__(self) -> None:
        self.data: dict = {}
        self.writes = 0

    def get(self, key, default=None):
        return self.data.get(key, default)

    def update(self, key, value) -> None:
        self.writes += 1
        if value is None:
            self.data.pop(key, None)
        else:
            self.data[key] = value


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def sink() -> ListSink:
    return ListSink()


@pytest.fixture()
def dict_store() -> DictStore:
    return DictStore()
