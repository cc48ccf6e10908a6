"""Locate the Next.js checkout to pack.

The base path is NEXT_PROJECT_PATH when set, otherwise the configured
`next_project_path`. When the current directory is inside one of the
base checkout's git worktrees, that worktree is used instead.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from devpack.commands import Command, git
from devpack.config import ConfigService
from devpack.core.errors import CommandError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Worktree:
    path: Path
    commit: str = ""
    branch: str = ""


def parse_worktrees(output: str) -> list[Worktree]:
    """Parse `git worktree list --porcelain` output."""
    worktrees: list[Worktree] = []
    entry: dict[str, str] = {}
    for line in [*output.splitlines(), ""]:
        if not line.strip():
            if "worktree" in entry:
                worktrees.append(
                    Worktree(
                        path=Path(entry["worktree"]),
                        commit=entry.get("HEAD", ""),
                        branch=entry.get("branch", "").removeprefix("refs/heads/"),
                    )
                )
            entry = {}
            continue
        key, _, value = line.partition(" ")
        entry[key] = value
    return worktrees


def _contains(parent: Path, child: Path) -> bool:
    return child == parent or parent in child.parents


async def list_worktrees(base: Path, command: Command = git) -> list[Worktree]:
    result = await command(["worktree", "list", "--porcelain"], cwd=base)
    return parse_worktrees(result.output)


async def resolve_project_path(
    config: ConfigService,
    override: Optional[Path] = None,
    cwd: Optional[Path] = None,
    command: Command = git,
) -> Path:
    """Return the project root to pack.

    Raises ConfigurationError when the resolved path is not a directory.
    """
    base = Path(override) if override else Path(await config.get("next_project_path"))
    base = base.expanduser().resolve()
    if not base.is_dir():
        raise ConfigurationError(f"Next.js project path {base} is not a directory")

    cwd = (cwd or Path.cwd()).resolve()
    try:
        worktrees = await list_worktrees(base, command)
    except CommandError as exc:
        logger.debug("Could not list git worktrees for %s: %s", base, exc)
        worktrees = []

    matches = [w for w in worktrees if _contains(w.path.resolve(), cwd)]
    if matches:
        worktree = max(matches, key=lambda w: len(w.path.parts))
        logger.info("Using worktree %s (%s at %s)", worktree.path, worktree.branch or "detached", worktree.commit[:10])
        return worktree.path

    logger.debug("Using base path %s; %s is not inside one of its worktrees", base, cwd)
    return base
