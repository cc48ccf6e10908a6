"""Persistent configuration: JSON store, secret references and prompting."""

from devpack.config.resolvers import OnePasswordResolver, PlainResolver, SecretResolver
from devpack.config.service import ConfigService
from devpack.config.store import ConfigStore
from devpack.config.types import (
    CONFIG_KEYS,
    SECRET_KEYS,
    ConfigValue,
    PlainValue,
    SecretReference,
    to_config_value,
)

__all__ = [
    "CONFIG_KEYS",
    "SECRET_KEYS",
    "ConfigService",
    "ConfigStore",
    "ConfigValue",
    "OnePasswordResolver",
    "PlainResolver",
    "PlainValue",
    "SecretReference",
    "SecretResolver",
    "to_config_value",
]
