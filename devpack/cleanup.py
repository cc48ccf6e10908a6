"""Delete uploaded artifacts older than a cut-off (default 24 hours).

Presigned URLs are valid for a day, so older objects can no longer be
downloaded through a URL this tool handed out.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from devpack.core.errors import StoreError
from devpack.packaging.store import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=24)


@dataclass
class CleanupReport:
    candidates: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "candidates": self.candidates,
            "deleted": self.deleted,
            "errors": self.errors,
            "dry_run": self.dry_run,
        }


async def cleanup_storage(
    store: ObjectStore,
    max_age: timedelta = DEFAULT_MAX_AGE,
    dry_run: bool = False,
    now: Optional[Callable[[], datetime]] = None,
) -> CleanupReport:
    """Delete every object last modified before `now - max_age`.

    Listing failures propagate as StoreError. Individual delete failures
    are collected in the report.
    """
    cutoff = (now or (lambda: datetime.now(timezone.utc)))() - max_age
    report = CleanupReport(dry_run=dry_run)

    for stat in await store.list_objects():
        if stat.last_modified is None:
            continue
        last_modified = stat.last_modified
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        if last_modified < cutoff:
            report.candidates.append(stat.key)
            logger.debug("Found old object %s (modified %s)", stat.key, last_modified.isoformat())

    logger.info("Found %d object(s) older than %s", len(report.candidates), max_age)
    if dry_run:
        for key in report.candidates:
            logger.info("Would delete %s", key)
        return report

    for key in report.candidates:
        try:
            await store.delete_object(key)
        except StoreError as exc:
            logger.error("Failed to delete %s: %s", key, exc)
            report.errors[key] = str(exc)
            continue
        report.deleted.append(key)
        logger.debug("Deleted %s", key)

    if report.errors:
        logger.warning("Deleted %d object(s), %d failed", len(report.deleted), len(report.errors))
    else:
        logger.info("Deleted %d object(s)", len(report.deleted))
    return report
