"""Sentry SDK integration for the CLI.

Captures crashes of the packaging commands without leaking credentials.

Key decisions:
  - `send_default_pii=False`: no user data sent by default.
  - `before_send` hook scrubs any event field whose key contains a
    sensitive keyword (access_key, secret, password, token, dsn).
  - No-op when NEXT_DEV_UTILS_SENTRY_DSN is empty, which is the default.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk

logger = logging.getLogger(__name__)

# Keywords that indicate a value should be redacted from Sentry events
_SENSITIVE_KEYS = frozenset({"access_key", "secret", "password", "token", "dsn"})


def _scrub_secrets(event: dict[str, Any], hint: Any) -> dict[str, Any]:
    """Sentry before_send hook: redact values for sensitive keys.

    Walks the event's `extra` dict and the local variables of every stack
    frame, replacing values of sensitive keys with "[REDACTED]".
    """
    _scrub_dict(event.get("extra", {}))
    for exception in event.get("exception", {}).get("values", []):
        for frame in (exception.get("stacktrace") or {}).get("frames", []):
            frame_vars = frame.get("vars")
            if isinstance(frame_vars, dict):
                _scrub_dict(frame_vars)
    return event


def _scrub_dict(d: dict[str, Any]) -> None:
    """Recursively redact sensitive values in-place."""
    for key in list(d.keys()):
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            d[key] = "[REDACTED]"
        elif isinstance(d[key], dict):
            _scrub_dict(d[key])


def init_sentry(dsn: str, environment: str = "development") -> bool:
    """Initialise the Sentry SDK.

    Returns True when Sentry was initialised, False when `dsn` is empty.
    """
    if not dsn or not dsn.strip():
        logger.debug("Sentry DSN not configured, skipping initialisation")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.0,
        send_default_pii=False,
        before_send=_scrub_secrets,
    )
    logger.debug("Sentry initialised (environment=%s)", environment)
    return True
