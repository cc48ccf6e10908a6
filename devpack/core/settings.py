from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

RETRY_MODES = ("interactive", "never", "always")


def _default_cache_dir() -> Path:
    return Path.home() / ".cache" / "next-dev-utils"


class Settings(BaseSettings):
    """Process settings loaded from environment variables and `.env`.

    These are the knobs that change how a run behaves. Credentials and
    project paths live in the persistent config store instead
    (`devpack.config.store`), which prompts for missing values.

    Environment variables use the ``NEXT_DEV_UTILS_`` prefix, e.g.
    ``NEXT_DEV_UTILS_SKIP_CACHE=1``. ``NEXT_PROJECT_PATH`` is also
    honoured for the project path override.
    """

    model_config = SettingsConfigDict(
        env_prefix="NEXT_DEV_UTILS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Persistent config store location
    config_path: Path = Path.home() / ".next-dev-utils.json"

    # Overrides the configured next_project_path when set.
    project_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("NEXT_PROJECT_PATH", "NEXT_DEV_UTILS_PROJECT_PATH"),
    )

    # Registry fetch cache
    skip_cache: bool = False
    force_cache: bool = False
    cache_ttl_seconds: int = 3600
    cache_dir: Path = Field(default_factory=_default_cache_dir)

    # Registry endpoints
    registry_url: str = "https://registry.npmjs.org"
    registry_fallback_url: str = "https://unpkg.com"
    canary_tag: str = "canary"
    registry_timeout: float = 10.0

    # Object store
    region: str = "us-east-1"
    presign_ttl_seconds: int = 60 * 60 * 24

    # Upload retry: "interactive" prompts after each failure, "never" fails
    # on the first error, "always" retries up to upload_max_attempts.
    upload_retry_mode: str = "interactive"
    upload_max_attempts: Optional[int] = None

    # Sentry: leave blank to disable error capture.
    sentry_dsn: str = ""

    # Logging
    debug: bool = False
    json_logs: bool = False

    @field_validator("upload_retry_mode", mode="before")
    @classmethod
    def normalise_retry_mode(cls, v: str) -> str:
        mode = str(v).strip().lower()
        if mode not in RETRY_MODES:
            raise ValueError(
                f"upload_retry_mode must be one of {', '.join(RETRY_MODES)} (got {v!r})"
            )
        return mode

    @field_validator("upload_max_attempts")
    @classmethod
    def positive_attempts(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("upload_max_attempts must be at least 1")
        return v


def get_settings() -> Settings:
    return Settings()
