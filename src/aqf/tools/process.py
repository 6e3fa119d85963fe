"""Process execution with bounded output capture and timeout enforcement."""

from __future__ import annotations

import asyncio
import codecs
import errno
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

DEFAULT_MAX_OUTPUT_CHARS = 12000
_READ_CHUNK_BYTES = 4096
# Grace period for pipe readers after a kill; grandchildren may still hold the pipes.
_DRAIN_GRACE_SECONDS = 1.0

LOGGER = logging.getLogger(__name__)

_READ_ONLY_SANDBOX_PHRASES = (
    "read-only sandbox",
    "couldn't save due read-only sandbox permissions",
    "could not save due read-only sandbox permissions",
)

_INVOCATION_FAILURE_PHRASES = (
    "not found",
    "command not found",
    "unknown option",
    "unexpected argument",
    "unrecognized option",
    "invalid option",
    "unknown command",
    "no such file or directory",
    "is not recognized as an internal or external command",
)

COMMAND_NOT_FOUND_EXIT_CODE = 127


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Executable plus argument vector handed to the process executor."""

    command: str
    args: Tuple[str, ...] = ()

    @property
    def argv(self) -> List[str]:
        return [self.command, *self.args]


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Structured outcome of a single spawned process."""

    exit_code: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False
    error_code: Optional[str] = None
    timeout: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and not self.error_code and self.exit_code == 0

    @property
    def combined_output(self) -> str:
        return f"{self.stdout}\n{self.stderr}".lower()

    def is_read_only_sandbox_notice(self) -> bool:
        """Return whether the tool reported it could not persist edits."""
        output = self.combined_output
        return any(phrase in output for phrase in _READ_ONLY_SANDBOX_PHRASES)

    def is_invocation_failure(self) -> bool:
        """Return whether the transport never reached a working binary."""
        if self.timed_out:
            return False
        if self.error_code == "ENOENT":
            return True
        if self.exit_code == COMMAND_NOT_FOUND_EXIT_CODE:
            return True
        output = self.combined_output
        return any(phrase in output for phrase in _INVOCATION_FAILURE_PHRASES)

    def short_message(self) -> str:
        """Return a one-line description of why the process did not succeed."""
        if self.timed_out:
            seconds = round(self.timeout) if self.timeout is not None else 0
            return f"timed out after {seconds}s"
        if self.error_code:
            return f"spawn failed ({self.error_code})"
        if self.exit_code is not None:
            output = (self.stderr or self.stdout).strip()
            if not output:
                return f"exited with code {self.exit_code}"
            first_line = output.splitlines()[0]
            return f"exited with code {self.exit_code}: {first_line}"
        return "unknown process failure"

    def output_text(self) -> str:
        """Join trimmed stdout/stderr into a labelled block."""
        parts = []
        stdout = self.stdout.strip()
        stderr = self.stderr.strip()
        if stdout:
            parts.append(f"stdout:\n{stdout}")
        if stderr:
            parts.append(f"stderr:\n{stderr}")
        return "\n\n".join(parts)


class CommandExecutor(Protocol):
    """Anything able to run a command and report a :class:`ProcessResult`."""

    async def run(self, spec: CommandSpec, cwd: Path | str, timeout: float) -> ProcessResult:
        ...


class _BoundedBuffer:
    """Accumulates decoded text until a character budget is reached."""

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._parts: list[str] = []
        self._size = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._flushed = False

    def feed(self, chunk: bytes) -> None:
        if self._size >= self._limit:
            return
        self.append(self._decoder.decode(chunk))

    def append(self, text: str) -> None:
        remaining = self._limit - self._size
        if remaining <= 0 or not text:
            return
        piece = text[:remaining]
        self._parts.append(piece)
        self._size += len(piece)

    def text(self) -> str:
        if not self._flushed:
            # A truncated trailing sequence decodes to U+FFFD.
            self._flushed = True
            self.append(self._decoder.decode(b"", final=True))
        return "".join(self._parts)


async def _pump(stream: Optional[asyncio.StreamReader], buffer: _BoundedBuffer) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK_BYTES)
        if not chunk:
            return
        buffer.feed(chunk)


def _errno_name(error: OSError) -> str:
    if error.errno is not None and error.errno in errno.errorcode:
        return errno.errorcode[error.errno]
    return type(error).__name__


class ProcessExecutor:
    """Spawn one OS process per call and capture its bounded output."""

    def __init__(self, *, max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS) -> None:
        self.max_output_chars = max_output_chars

    async def run(self, spec: CommandSpec, cwd: Path | str, timeout: float) -> ProcessResult:
        """Run ``spec`` in ``cwd``; spawn errors and timeouts become result values."""
        stdout = _BoundedBuffer(self.max_output_chars)
        stderr = _BoundedBuffer(self.max_output_chars)

        try:
            process = await asyncio.create_subprocess_exec(
                spec.command,
                *spec.args,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as error:
            code = _errno_name(error) if isinstance(error, OSError) else "EINVAL"
            LOGGER.debug("Failed to spawn %s: %s", spec.command, code)
            stderr.append(str(error))
            return ProcessResult(
                exit_code=None,
                stdout=stdout.text(),
                stderr=stderr.text(),
                error_code=code,
                timeout=timeout,
            )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        readers = asyncio.gather(_pump(process.stdout, stdout), _pump(process.stderr, stderr))
        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
            LOGGER.debug("Killing %s after %.1fs timeout", spec.command, timeout)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

        drain_budget = _DRAIN_GRACE_SECONDS
        if not timed_out:
            drain_budget = max(deadline - loop.time(), _DRAIN_GRACE_SECONDS)
        try:
            await asyncio.wait_for(readers, timeout=drain_budget)
        except asyncio.TimeoutError:
            LOGGER.debug("Output pipes of %s stayed open after exit", spec.command)

        return ProcessResult(
            exit_code=None if timed_out else process.returncode,
            stdout=stdout.text(),
            stderr=stderr.text(),
            timed_out=timed_out,
            timeout=timeout,
        )


__all__ = [
    "COMMAND_NOT_FOUND_EXIT_CODE",
    "CommandExecutor",
    "CommandSpec",
    "DEFAULT_MAX_OUTPUT_CHARS",
    "ProcessExecutor",
    "ProcessResult",
]
