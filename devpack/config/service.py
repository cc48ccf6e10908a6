"""Config lookup with secret resolution, validation and prompting.

`ConfigService.get(key)` is what the commands call:

  1. Load the stored value for `key`.
  2. Resolve secret references through the injected `SecretResolver`.
     A failed resolution is logged and treated as a missing value.
  3. Validate (currently: `next_project_path` must be a directory).
  4. If still missing or invalid, prompt the user (secret keys are masked
     and may be stored as a 1Password reference), persist, and return.
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Union

from devpack.config.resolvers import SecretResolver
from devpack.config.store import ConfigStore
from devpack.config.types import (
    SECRET_KEYS,
    ConfigValue,
    SecretReference,
    is_secret_reference_string,
)
from devpack.core.errors import ConfigurationError, SecretResolutionError
from devpack.prompts import Prompter

logger = logging.getLogger(__name__)


def _validate_directory(value: str) -> Optional[str]:
    if not Path(value).expanduser().is_dir():
        return f"{value} does not exist or is not a directory"
    return None


def _validate_secret_reference(value: str) -> Optional[str]:
    if not is_secret_reference_string(value):
        return "1Password reference must start with 'op://'"
    return None


# Validators return an error message, or None when the value is acceptable
VALIDATORS: dict[str, Callable[[str], Optional[str]]] = {
    "next_project_path": _validate_directory,
}


class ConfigService:
    def __init__(self, store: ConfigStore, resolver: SecretResolver, prompter: Prompter):
        self.store = store
        self.resolver = resolver
        self.prompter = prompter

    async def get(self, key: str) -> str:
        value = await self._resolved(key)
        if value:
            return value

        logger.info("%s is missing from config, please enter it now", key)
        return await self.prompt(key)

    async def get_optional(self, key: str) -> Optional[str]:
        """Return the resolved value, or None without prompting."""
        return await self._resolved(key)

    def get_raw(self, key: str) -> Optional[ConfigValue]:
        return self.store.get(key)

    def set(self, key: str, value: Union[str, ConfigValue]) -> None:
        if isinstance(value, str):
            validator = VALIDATORS.get(key)
            error = validator(value) if validator else None
            if error:
                raise ConfigurationError(f"Invalid value for {key}: {error}")
        self.store.set(key, value)

    async def _resolved(self, key: str) -> Optional[str]:
        stored = self.store.get(key)
        if stored is None:
            return None

        try:
            value = await self.resolver.resolve(stored)
        except SecretResolutionError as exc:
            logger.error("Failed to resolve secret for %s: %s", key, exc)
            return None

        validator = VALIDATORS.get(key)
        error = validator(value) if validator and value else None
        if error:
            logger.error("Configured %s is invalid: %s", key, error)
            return None
        return value or None

    async def prompt(self, key: str) -> str:
        """Ask for `key`, persist the answer and return the resolved value."""
        if key in SECRET_KEYS and await self.prompter.confirm(
            f"Do you want to use a 1Password reference for {key}?", default=False
        ):
            reference = await self.prompter.ask(
                "Enter 1Password reference (op://vault/item/field):",
                validate=_validate_secret_reference,
            )
            secret = SecretReference(reference)
            value = await self.resolver.resolve(secret)
            self.store.set(key, secret)
            return value

        value = await self.prompter.ask(
            f"{key}:",
            secret=key in SECRET_KEYS,
            validate=VALIDATORS.get(key),
        )
        self.store.set(key, value)
        return value
