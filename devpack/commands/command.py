"""Preconfigured command wrappers.

`create_command()` binds an executable to default arguments and
environment, returning an awaitable callable with the same keyword
options as `run_command()`:

    pnpm = create_command("pnpm")
    result = await pnpm(["pack", "--pack-destination", tmp], cwd=pkg_dir)
"""

import asyncio
from pathlib import Path
from typing import Mapping, Optional, Sequence

from devpack.commands import runner
from devpack.commands.runner import CommandResult


class Command:
    """An executable with default args/env, invoked via `await cmd(args)`."""

    def __init__(
        self,
        executable: str,
        default_args: Sequence[str] = (),
        default_env: Optional[Mapping[str, str]] = None,
    ):
        self.executable = executable
        self.default_args = list(default_args)
        self.default_env = dict(default_env or {})

    async def __call__(
        self,
        args: Sequence[str] = (),
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        verbose: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> CommandResult:
        merged_env = {**self.default_env, **(env or {})}
        return await runner.run_command(
            self.executable,
            [*self.default_args, *args],
            cwd=cwd,
            env=merged_env,
            verbose=verbose,
            cancel=cancel,
        )

    def __repr__(self) -> str:
        return f"Command({self.executable!r}, default_args={self.default_args!r})"


def create_command(
    executable: str,
    default_args: Sequence[str] = (),
    default_env: Optional[Mapping[str, str]] = None,
) -> Command:
    return Command(executable, default_args, default_env)


pnpm = create_command("pnpm")
git = create_command("git")
op = create_command("op")
