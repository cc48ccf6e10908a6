"""Secret resolution for config values.

`SecretResolver.resolve()` turns a `ConfigValue` into the string the
caller needs. `PlainResolver` only accepts plain values;
`OnePasswordResolver` additionally reads secret references through the
1Password CLI (`op read <reference>`).
"""

import logging
from typing import Protocol

from devpack.commands import Command, op
from devpack.config.types import ConfigValue, PlainValue, SecretReference
from devpack.core.errors import CommandError, SecretResolutionError

logger = logging.getLogger(__name__)


class SecretResolver(Protocol):
    async def resolve(self, value: ConfigValue) -> str:
        ...


class PlainResolver:
    """Resolves plain values; rejects secret references."""

    async def resolve(self, value: ConfigValue) -> str:
        if isinstance(value, SecretReference):
            raise SecretResolutionError(
                f"Cannot resolve secret reference {value.reference!r} without a secret manager"
            )
        return value.value


class OnePasswordResolver:
    """Resolves ``op://`` references with the 1Password CLI."""

    def __init__(self, command: Command = op):
        self._op = command

    async def resolve(self, value: ConfigValue) -> str:
        if isinstance(value, PlainValue):
            return value.value

        logger.debug("Resolving 1Password reference %s", value.reference)
        try:
            result = await self._op(["read", value.reference])
        except CommandError as exc:
            raise SecretResolutionError(
                f"1Password CLI failed (exit code {exc.exit_code}): {exc}"
            ) from exc
        return result.output.strip()
