"""Run one Next.js e2e test against a Vercel deployment of a packed build.

    devpack test-deploy test/e2e/app-dir/actions/actions.test.ts

The test file must live under `<project>/test/e2e/` and match
`*.test.js` or `*.test.ts`. The Vercel credentials are read from config
before anything is packed, so a missing value is prompted for up front.
Then the project is packed and uploaded like `pack-next`, and
`pnpm test-deploy <relative test file>` runs in the project root with

    VERCEL_TEST_TEAM, VERCEL_TEST_TOKEN  from config
    NEXT_TEST_VERSION                    the packed `next` URL
"""

import logging
import re
from pathlib import Path
from typing import Optional, Sequence

from devpack.commands import Command, pnpm
from devpack.config import ConfigService
from devpack.core.errors import ConfigurationError
from devpack.packaging import DistributionCoordinator, DistributionResult, PackOptions

logger = logging.getLogger(__name__)

E2E_DIR = Path("test", "e2e")
TEST_FILE_PATTERN = re.compile(r"\.test\.(js|ts)$")


def resolve_test_file(test_file: Path, project_root: Path, cwd: Optional[Path] = None) -> Path:
    """Return `test_file` relative to `project_root`.

    Relative paths are taken from `cwd` (default: the current directory).

    Raises:
        ConfigurationError: the file is missing, outside test/e2e, or not
            named `*.test.{js,ts}`.
    """
    path = Path(test_file)
    if not path.is_absolute():
        path = (cwd or Path.cwd()) / path
    path = path.resolve()

    if not path.is_file():
        raise ConfigurationError(f"The test file {test_file} does not exist")

    root = project_root.resolve()
    e2e_dir = root / E2E_DIR
    if e2e_dir not in path.parents:
        raise ConfigurationError(
            f"The test file {test_file} is not in {e2e_dir}; only e2e tests can be deployed"
        )
    if not TEST_FILE_PATTERN.search(path.name):
        raise ConfigurationError(f"The test file {test_file} does not match *.test.js or *.test.ts")
    return path.relative_to(root)


async def run_test_deploy(
    coordinator: DistributionCoordinator,
    config: ConfigService,
    project_root: Path,
    test_file: Path,
    options: PackOptions,
    platform_filter: Optional[Sequence[str]] = None,
    cwd: Optional[Path] = None,
    command: Command = pnpm,
) -> DistributionResult:
    relative = resolve_test_file(test_file, project_root, cwd)
    team = await config.get("vercel_test_team")
    token = await config.get("vercel_test_token")

    result = await coordinator.pack_project(project_root, options, platform_filter)
    logger.info("Deploying %s with %s", relative, result.url)

    # Echo deploy output as it arrives
    await command(
        ["test-deploy", str(relative)],
        cwd=project_root,
        env={
            "VERCEL_TEST_TEAM": team,
            "VERCEL_TEST_TOKEN": token,
            "NEXT_TEST_VERSION": result.url,
        },
        verbose=True,
        cancel=options.cancel,
    )
    return result
