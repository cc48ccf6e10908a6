"""Structured logging via structlog.

Configures structlog once per CLI invocation. Library modules keep using
`logging.getLogger(__name__)`; their records are rendered through
structlog's `ProcessorFormatter` so both paths share one output format.

All log output goes to stderr. Stdout is reserved for the command's
result (the artifact URL, or the JSON document with `--json`) so it can
be piped into other tools.

Renderer selection:
  json_logs=False  `ConsoleRenderer` for interactive use.
  json_logs=True   `JSONRenderer` for CI logs.

Context binding:
  `bind_run_context()` stores a short run ID and the command name in
  structlog's contextvars; every subsequent log line carries them.
"""

from __future__ import annotations

import logging
import sys
import uuid

import structlog

# Third-party loggers that are noisy at INFO/DEBUG
_QUIET_LOGGERS = (
    "boto3",
    "botocore",
    "urllib3",
    "s3transfer",
    "httpx",
    "httpcore",
    "uvicorn.access",
    "uvicorn.error",
)


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """Configure structlog and the stdlib bridge.

    Calling multiple times is safe: the root handler is replaced, not
    appended to.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        final_processors: list = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=final_processors,
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_run_context(command: str) -> str:
    """Bind a fresh run ID and the command name to every log line.

    Returns the run ID.
    """
    run_id = uuid.uuid4().hex[:8]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(run_id=run_id, command=command)
    return run_id
