"""Async subprocess execution for package-manager and helper commands.

Each command runs as a child process with its stdout and stderr streamed
line by line into a combined capture buffer. Callers search that buffer
(e.g. for the archive path printed by `pnpm pack`), so output is always
captured; with `verbose=True` it is echoed to the terminal as well.

A non-zero exit raises `CommandError` carrying the exit code and the
captured output. When a cancel event is supplied and fires first, the
child is terminated (best effort) and `CommandCancelled` is raised.
"""

import asyncio
import contextlib
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from devpack.core.errors import CommandCancelled, CommandError

logger = logging.getLogger(__name__)

# Environment applied to every child process
DEFAULT_ENV = {"NEXT_TELEMETRY_DISABLED": "1"}

# Seconds to wait for a terminated child before killing it
TERMINATE_GRACE_SECONDS = 5.0


@dataclass
class CommandResult:
    """Outcome of a successful command invocation."""

    executable: str
    args: list[str]
    exit_code: int
    output: str
    duration_seconds: float

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        return " ".join([self.executable, *self.args])


def build_env(*overrides: Optional[Mapping[str, str]]) -> dict[str, str]:
    """Merge os.environ, DEFAULT_ENV and per-call overrides (later wins)."""
    env = dict(os.environ)
    env.update(DEFAULT_ENV)
    for override in overrides:
        if override:
            env.update(override)
    return env


async def run_command(
    executable: str,
    args: Sequence[str] = (),
    *,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    verbose: bool = False,
    cancel: Optional[asyncio.Event] = None,
) -> CommandResult:
    """Run `executable` with `args` and return its captured output.

    Raises:
        CommandError: the executable is missing or exited non-zero.
        CommandCancelled: `cancel` fired before the process finished.
    """
    args = list(args)
    command_line = " ".join([executable, *args])
    if verbose:
        logger.info("$ %s", command_line)
    else:
        logger.debug("$ %s (cwd=%s)", command_line, cwd)

    start = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *args,
            cwd=str(cwd) if cwd else None,
            env=build_env(env),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise CommandError(
            f"{executable} not found; is it installed and on PATH?",
            exit_code=127,
        ) from exc

    capture = asyncio.ensure_future(_capture(process, verbose))
    waiters: set[asyncio.Future] = {capture}
    cancel_waiter: Optional[asyncio.Future] = None
    if cancel is not None:
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        waiters.add(cancel_waiter)

    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await _terminate(process, capture)
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if not capture.done():
        await _terminate(process, capture)
        raise CommandCancelled(f"{command_line} was cancelled", exit_code=-1)

    exit_code, output = capture.result()
    duration = time.monotonic() - start

    if exit_code != 0:
        logger.debug("%s output (tail):\n%s", executable, _truncate_output(output))
        raise CommandError(
            f"{command_line} exited with code {exit_code}",
            exit_code=exit_code,
            output=output,
        )

    logger.debug("%s finished in %.1fs", command_line, duration)
    return CommandResult(
        executable=executable,
        args=args,
        exit_code=exit_code,
        output=output,
        duration_seconds=duration,
    )


async def _capture(process: asyncio.subprocess.Process, verbose: bool) -> tuple[int, str]:
    """Drain stdout and stderr into one buffer, then wait for exit."""
    combined: list[str] = []

    # Echo goes to stderr; stdout carries the command result.
    async def pump(stream: Optional[asyncio.StreamReader]) -> None:
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode("utf-8", errors="replace")
            combined.append(line)
            if verbose:
                sys.stderr.write(line)
                sys.stderr.flush()

    await asyncio.gather(
        pump(process.stdout),
        pump(process.stderr),
    )
    exit_code = await process.wait()
    return exit_code, "".join(combined)


async def _terminate(process: asyncio.subprocess.Process, capture: asyncio.Future) -> None:
    """Terminate the child, escalating to kill after a grace period."""
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
    try:
        await asyncio.wait_for(asyncio.shield(capture), timeout=TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Process %s did not exit after SIGTERM; killing", process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await capture


def _truncate_output(text: str, max_lines: int = 40, max_chars: int = 4000) -> str:
    """Return a concise tail of command output for logs."""
    if not text:
        return ""
    tail = "\n".join(text.splitlines()[-max_lines:])
    if len(tail) > max_chars:
        tail = tail[-max_chars:]
    return tail
