"""Types for the persistent configuration store.

A stored value is either a plain string or a reference into a secret
manager. The on-disk JSON keeps the original shape so files written by
earlier releases stay readable:

    {"endpoint": "s3.example.com",
     "secret_key": {"type": "1password", "reference": "op://dev/s3/secret"}}
"""

from dataclasses import dataclass
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

ONE_PASSWORD_PREFIX = "op://"

ConfigKey = Literal[
    "next_project_path",
    "endpoint",
    "bucket",
    "access_key",
    "secret_key",
    "vercel_test_team",
    "vercel_test_token",
    "vercel_project_path",
]

CONFIG_KEYS: tuple[str, ...] = (
    "next_project_path",
    "endpoint",
    "bucket",
    "access_key",
    "secret_key",
    "vercel_test_team",
    "vercel_test_token",
    "vercel_project_path",
)

# Keys whose values are masked when prompted and may be secret references
SECRET_KEYS = frozenset({"access_key", "secret_key", "vercel_test_token"})


@dataclass(frozen=True)
class PlainValue:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SecretReference:
    """A secret-manager reference such as ``op://vault/item/field``."""

    reference: str

    def __str__(self) -> str:
        return self.reference


ConfigValue = Union[PlainValue, SecretReference]


def is_secret_reference_string(value: str) -> bool:
    return value.startswith(ONE_PASSWORD_PREFIX)


def to_config_value(value: Union[str, ConfigValue]) -> ConfigValue:
    """Wrap a raw string; ``op://`` strings become secret references."""
    if isinstance(value, (PlainValue, SecretReference)):
        return value
    if is_secret_reference_string(value):
        return SecretReference(value)
    return PlainValue(value)


class OnePasswordReferenceModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["1password"] = "1password"
    reference: str


StoredValue = Union[str, OnePasswordReferenceModel]


class ConfigFile(BaseModel):
    """Schema of the JSON config file."""

    model_config = ConfigDict(extra="forbid")

    next_project_path: Optional[str] = None
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    access_key: Optional[StoredValue] = None
    secret_key: Optional[StoredValue] = None
    vercel_test_team: Optional[str] = None
    vercel_test_token: Optional[StoredValue] = None
    vercel_project_path: Optional[str] = None


def from_stored(stored: Optional[StoredValue]) -> Optional[ConfigValue]:
    if stored is None:
        return None
    if isinstance(stored, OnePasswordReferenceModel):
        return SecretReference(stored.reference)
    return PlainValue(stored)


def to_stored(value: ConfigValue) -> StoredValue:
    if isinstance(value, SecretReference):
        return OnePasswordReferenceModel(reference=value.reference)
    return value.value
