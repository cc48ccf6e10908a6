"""Subprocess wrappers for the package manager, git and the 1Password CLI."""

from devpack.commands.command import Command, create_command, git, op, pnpm
from devpack.commands.runner import CommandResult, run_command

__all__ = [
    "Command",
    "CommandResult",
    "create_command",
    "git",
    "op",
    "pnpm",
    "run_command",
]
