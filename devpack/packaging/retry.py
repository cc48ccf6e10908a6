"""Upload retry policy.

  interactive  ask the confirmer after every failure (no limit unless
               max_attempts is set)
  never        fail on the first error
  always       retry without asking, up to max_attempts (default 3)
"""

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from devpack.prompts import Confirmer

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class RetryMode(StrEnum):
    INTERACTIVE = "interactive"
    NEVER = "never"
    ALWAYS = "always"


@dataclass(frozen=True)
class RetryPolicy:
    mode: RetryMode = RetryMode.INTERACTIVE
    max_attempts: Optional[int] = None

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(mode=RetryMode(settings.upload_retry_mode), max_attempts=settings.upload_max_attempts)

    @property
    def attempt_limit(self) -> Optional[int]:
        if self.mode is RetryMode.NEVER:
            return 1
        if self.mode is RetryMode.ALWAYS:
            return self.max_attempts or DEFAULT_MAX_ATTEMPTS
        return self.max_attempts

    async def should_retry(self, attempt: int, confirmer: Optional[Confirmer]) -> bool:
        """Decide whether to make another attempt after `attempt` failed ones."""
        limit = self.attempt_limit
        if limit is not None and attempt >= limit:
            logger.debug("Giving up after %d attempt(s)", attempt)
            return False
        if self.mode is RetryMode.ALWAYS:
            return True
        if confirmer is None:
            return False
        return await confirmer.confirm("Upload failed. Retry?", default=True)
