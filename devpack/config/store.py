"""JSON-file backed configuration store.

Reads and writes `~/.next-dev-utils.json` (see `Settings.config_path`).
A missing file is treated as an empty config; a malformed one raises
`ConfigurationError` rather than being silently overwritten.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from devpack.config.types import (
    CONFIG_KEYS,
    ConfigFile,
    ConfigValue,
    from_stored,
    to_config_value,
    to_stored,
)
from devpack.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConfigStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> ConfigFile:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ConfigFile()

        try:
            return ConfigFile.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(f"Invalid config file {self.path}: {exc}") from exc

    def save(self, config: ConfigFile) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = config.model_dump(mode="json", exclude_none=True)
        self.path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        logger.debug("Saved config to %s", self.path)

    def get(self, key: str) -> Optional[ConfigValue]:
        """Return the raw (unresolved) value for `key`."""
        _check_key(key)
        return from_stored(getattr(self.load(), key))

    def set(self, key: str, value: Union[str, ConfigValue]) -> None:
        _check_key(key)
        config = self.load()
        setattr(config, key, to_stored(to_config_value(value)))
        self.save(config)

    def unset(self, key: str) -> None:
        _check_key(key)
        config = self.load()
        setattr(config, key, None)
        self.save(config)


def _check_key(key: str) -> None:
    if key not in CONFIG_KEYS:
        raise ConfigurationError(
            f"Unknown config key {key!r}. Valid keys: {', '.join(CONFIG_KEYS)}"
        )
