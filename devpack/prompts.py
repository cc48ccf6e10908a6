"""Interactive terminal prompts.

Prompts run the blocking `input()` / `getpass()` calls in a worker
thread so they can be awaited from the event loop. `ConsolePrompter`
refuses to prompt when stdin is not a TTY, which turns a missing config
value or an upload-retry question into a clear error in CI instead of a
hang.
"""

import asyncio
import getpass
import sys
from typing import Callable, Optional, Protocol

from devpack.core.errors import ConfigurationError


class Confirmer(Protocol):
    async def confirm(self, message: str, default: bool = True) -> bool:
        ...


class Prompter(Confirmer, Protocol):
    async def ask(
        self,
        message: str,
        secret: bool = False,
        validate: Optional[Callable[[str], Optional[str]]] = None,
    ) -> str:
        ...


class ConsolePrompter:
    """Prompts on stdin/stderr."""

    def __init__(self, interactive: Optional[bool] = None):
        self.interactive = sys.stdin.isatty() if interactive is None else interactive

    async def confirm(self, message: str, default: bool = True) -> bool:
        self._require_tty(message)
        suffix = "[Y/n]" if default else "[y/N]"
        while True:
            answer = (await self._read(_input, f"{message} {suffix} ")).lower()
            if not answer:
                return default
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False

    async def ask(
        self,
        message: str,
        secret: bool = False,
        validate: Optional[Callable[[str], Optional[str]]] = None,
    ) -> str:
        """Ask until `validate` (returns an error message or None) accepts."""
        self._require_tty(message)
        reader = getpass.getpass if secret else _input
        while True:
            answer = await self._read(reader, f"{message} ")
            error = validate(answer) if validate else None
            if error is None and answer:
                return answer
            sys.stderr.write(f"{error or 'A value is required'}\n")

    async def _read(self, reader: Callable[[str], str], prompt: str) -> str:
        try:
            return (await asyncio.to_thread(reader, prompt)).strip()
        except EOFError as exc:
            raise ConfigurationError(f"Input closed while prompting: {prompt.strip()}") from exc

    def _require_tty(self, message: str) -> None:
        if not self.interactive:
            raise ConfigurationError(f"Cannot prompt in a non-interactive session: {message}")


def _input(prompt: str) -> str:
    sys.stderr.write(prompt)
    sys.stderr.flush()
    line = sys.stdin.readline()
    if not line:
        raise EOFError(prompt)
    return line.rstrip("\n")
