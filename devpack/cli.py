"""Command-line entrypoint.

    devpack pack         pack the package in the current directory
    devpack pack-next    pack next.js with its native SWC bindings
    devpack test-deploy  pack next.js and run one e2e test on Vercel
    devpack cleanup      delete uploaded artifacts older than a day
    devpack config       get or set persistent config values

Results (URLs, or JSON with `--json`) go to stdout; everything else is
logged to stderr. This is the only module that turns errors into exit
codes: 1 for any `DevpackError`, 2 for invalid settings, 130 when
interrupted.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from devpack import __version__
from devpack.cleanup import cleanup_storage
from devpack.commands import pnpm
from devpack.config import CONFIG_KEYS, SECRET_KEYS, ConfigValue, SecretReference
from devpack.core.errors import AggregateFailure, ConfigurationError, DevpackError
from devpack.core.logging import bind_run_context, configure_logging
from devpack.core.sentry import init_sentry
from devpack.core.settings import Settings, get_settings
from devpack.deploy import run_test_deploy
from devpack.factory import (
    build_config_service,
    build_object_store,
    build_pipeline,
    build_prompter,
    build_registry_client,
)
from devpack.packaging import (
    DeliveryMode,
    DistributionCoordinator,
    PackOptions,
    PackResult,
    parse_platform_filter,
)
from devpack.project import resolve_project_path

logger = logging.getLogger(__name__)

MASKED_VALUE = "********"


def _delivery_mode(args: argparse.Namespace) -> DeliveryMode:
    if getattr(args, "dry_run", False):
        return DeliveryMode.DRY_RUN
    if args.serve:
        return DeliveryMode.SERVE
    return DeliveryMode.UPLOAD


def _check_output_flags(args: argparse.Namespace) -> None:
    if args.json and args.serve:
        raise ConfigurationError("Cannot use --json and --serve together")


def _display_value(key: str, value: Optional[ConfigValue]) -> str:
    """Stored value for display; plain secrets are masked, references are shown."""
    if value is None:
        return ""
    if key in SECRET_KEYS and not isinstance(value, SecretReference):
        return MASKED_VALUE
    return str(value)


def _emit(args: argparse.Namespace, url: str, payload: dict) -> None:
    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        print(url)


async def _serve_until_cancelled(result: PackResult, options: PackOptions) -> None:
    if result.server is None:
        return
    logger.info("Serving %s; press Ctrl+C to stop", result.artifact.filename)
    try:
        await result.server.wait_closed()
    finally:
        options.cancel.set()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def pack_cmd(args: argparse.Namespace, settings: Settings) -> int:
    _check_output_flags(args)
    prompter = build_prompter()
    config = build_config_service(settings, prompter)
    pipeline = build_pipeline(settings, config, prompter)

    options = PackOptions(
        cwd=Path.cwd(),
        mode=_delivery_mode(args),
        verbose=args.verbose,
        progress=args.progress,
    )
    result = await pipeline.pack(options)
    _emit(args, result.url, result.to_dict())
    await _serve_until_cancelled(result, options)
    return 0


async def pack_next_cmd(args: argparse.Namespace, settings: Settings) -> int:
    _check_output_flags(args)
    prompter = build_prompter()
    config = build_config_service(settings, prompter)
    pipeline = build_pipeline(settings, config, prompter)
    coordinator = DistributionCoordinator(pipeline, build_registry_client(settings))

    project_root = await resolve_project_path(config, override=settings.project_path)
    options = PackOptions(
        cwd=project_root,
        mode=_delivery_mode(args),
        verbose=args.verbose,
        progress=args.progress,
    )
    result = await coordinator.pack_project(
        project_root,
        options,
        platform_filter=parse_platform_filter(args.swc_platforms),
    )
    _emit(args, result.url, result.to_dict())

    if args.install:
        if options.is_dry_run:
            logger.info("Dry run: would run pnpm add %s", result.url)
        else:
            logger.info("Installing %s into %s", result.pack.artifact.filename, Path.cwd())
            await pnpm(["add", result.url], cwd=Path.cwd(), verbose=args.verbose, cancel=options.cancel)

    await _serve_until_cancelled(result.pack, options)
    return 0


async def test_deploy_cmd(args: argparse.Namespace, settings: Settings) -> int:
    prompter = build_prompter()
    config = build_config_service(settings, prompter)
    pipeline = build_pipeline(settings, config, prompter)
    coordinator = DistributionCoordinator(pipeline, build_registry_client(settings))

    project_root = await resolve_project_path(config, override=settings.project_path)
    options = PackOptions(cwd=project_root, verbose=args.verbose, progress=args.progress)
    await run_test_deploy(
        coordinator,
        config,
        project_root,
        Path(args.test_file),
        options,
        platform_filter=parse_platform_filter(args.swc_platforms),
    )
    return 0


async def cleanup_cmd(args: argparse.Namespace, settings: Settings) -> int:
    config = build_config_service(settings, build_prompter())
    store = await build_object_store(config, settings)
    report = await cleanup_storage(
        store,
        max_age=timedelta(hours=args.max_age_hours),
        dry_run=args.dry_run,
    )
    for key, error in report.errors.items():
        logger.error("  %s: %s", key, error)
    return 0 if report.ok else 1


async def config_cmd(args: argparse.Namespace, settings: Settings) -> int:
    config = build_config_service(settings, build_prompter())

    if args.operation == "get":
        if args.key:
            print(_display_value(args.key, config.get_raw(args.key)))
            return 0
        for key in CONFIG_KEYS:
            print(f"{key}: {_display_value(key, config.get_raw(key))}")
        return 0

    if not args.key:
        raise ConfigurationError("key is required when setting a value")
    if args.value is not None:
        config.set(args.key, args.value)
    else:
        await config.prompt(args.key)
    logger.info("Saved %s to %s", args.key, settings.config_path)
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_pack_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--json", action="store_true", help="Print the result as JSON")
    p.add_argument("--serve", action="store_true", help="Serve the archive locally instead of uploading")
    p.add_argument("--progress", action="store_true", help="Log each packing step")
    p.add_argument("--verbose", action="store_true", help="Echo subprocess output and debug logs")
    p.add_argument("--dry-run", action="store_true", help="Pack and hash only; no upload, no server")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="devpack", description="Pack and share Next.js development builds")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    pack = sub.add_parser("pack", help="Pack the current package and upload it")
    _add_pack_flags(pack)
    pack.set_defaults(func=pack_cmd)

    pack_next = sub.add_parser("pack-next", help="Pack next.js and its native bindings and upload them")
    _add_pack_flags(pack_next)
    pack_next.add_argument("--install", action="store_true", help="Run `pnpm add <url>` in the current directory")
    pack_next.add_argument(
        "--swc-platforms",
        default=None,
        help="Comma separated native platforms to include (default: every built platform)",
    )
    pack_next.set_defaults(func=pack_next_cmd)

    test_deploy = sub.add_parser("test-deploy", help="Pack next.js and run one e2e test against a Vercel deployment")
    test_deploy.add_argument("test_file", help="Path to a test/e2e/**/*.test.{js,ts} file")
    test_deploy.add_argument("--progress", action="store_true", help="Log each packing step")
    test_deploy.add_argument("--verbose", action="store_true", help="Echo subprocess output and debug logs")
    test_deploy.add_argument(
        "--swc-platforms",
        default=None,
        help="Comma separated native platforms to include (default: every built platform)",
    )
    test_deploy.set_defaults(func=test_deploy_cmd)

    cleanup = sub.add_parser("cleanup", help="Delete uploaded artifacts older than a day")
    cleanup.add_argument("--dry-run", action="store_true", help="List objects without deleting them")
    cleanup.add_argument("--verbose", action="store_true", help="Log every object")
    cleanup.add_argument("--max-age-hours", type=int, default=24, help="Age cut-off in hours (default: 24)")
    cleanup.set_defaults(func=cleanup_cmd)

    config = sub.add_parser("config", help="Get or set a config value")
    config.add_argument("operation", choices=["get", "set"])
    config.add_argument("key", nargs="?", choices=CONFIG_KEYS)
    config.add_argument("value", nargs="?")
    config.set_defaults(func=config_cmd)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as exc:
        sys.stderr.write(f"Invalid settings:\n{exc}\n")
        return 2

    configure_logging(verbose=getattr(args, "verbose", False) or settings.debug, json_logs=settings.json_logs)
    init_sentry(settings.sentry_dsn, environment="cli")
    bind_run_context(args.command)

    try:
        return int(asyncio.run(args.func(args, settings)))
    except AggregateFailure as exc:
        logger.error("%s", exc)
        if exc.result.total:
            logger.error("Native targets: %s", exc.result.summary())
        return 1
    except DevpackError as exc:
        logger.error("%s", exc)
        if exc.__cause__ is not None:
            logger.debug("Caused by: %r", exc.__cause__)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
