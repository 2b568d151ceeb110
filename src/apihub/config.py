import logging
import secrets
from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from apihub._version import __version__

logger = logging.getLogger(__name__)

_APIHUB_HOME = Path.home() / ".apihub"
_SECRET_KEY_FILE = _APIHUB_HOME / "secret_key"
_SECRET_KEY_FILE_MODE = 0o600


def _get_or_create_secret_key() -> str:
    """Read the persisted credential secret from disk, or generate and save one."""
    if _SECRET_KEY_FILE.exists():
        try:
            _SECRET_KEY_FILE.chmod(_SECRET_KEY_FILE_MODE)
        except OSError:
            logger.debug("Could not tighten secret key file permissions")
        return _SECRET_KEY_FILE.read_text().strip()

    _SECRET_KEY_FILE.parent.mkdir(parents=True, exist_ok=True)
    key = secrets.token_hex(32)
    _SECRET_KEY_FILE.write_text(key)
    try:
        _SECRET_KEY_FILE.chmod(_SECRET_KEY_FILE_MODE)
    except OSError:
        logger.debug("Could not set secret key file permissions")
    logger.info("Generated new secret key at %s", _SECRET_KEY_FILE)
    return key


class Environments(StrEnum):
    DEV = "dev"
    PROD = "prod"

    def is_production(self) -> bool:
        return self == self.PROD


class Settings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="APIHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str | None = None
    auto_create_tables: bool = True
    env: Environments = Environments.DEV
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    log_format: Literal["text", "json"] = "text"
    cors_allow_origins: str = "*"
    cors_allow_credentials: bool = False

    # Identity is resolved upstream; the gateway forwards the user id here.
    identity_header: str = "X-User-ID"
    # Consumer key header presented on test calls against key-gated APIs.
    api_key_header: str = "x-api-key"

    # Secret used to derive the provider-credential encryption key.
    # Auto-generated and persisted to ~/.apihub/secret_key if not set via env.
    secret_key: str = ""

    # Outbound test-call tuning.
    proxy_timeout_seconds: float = 10.0
    proxy_max_connections: int = 100
    proxy_follow_redirects: bool = True

    # Listings and analytics.
    default_page_size: int = 12
    max_page_size: int = 100
    analytics_default_days: int = 7

    version: str = __version__

    @field_validator("env", mode="before")
    @classmethod
    def _normalize_env_aliases(cls, value: object) -> object:
        """Allow long-form env aliases."""
        if isinstance(value, str):
            normalized = value.strip().lower()
            aliases = {
                "development": Environments.DEV.value,
                "production": Environments.PROD.value,
            }
            return aliases.get(normalized, normalized)
        return value

    @field_validator("proxy_timeout_seconds")
    @classmethod
    def _bound_proxy_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("proxy_timeout_seconds must be positive")
        return value

    @property
    def is_production(self) -> bool:
        return self.env.is_production()

    @property
    def effective_database_url(self) -> str:
        """Get database URL, defaulting to SQLite if not configured."""
        if self.database_url:
            return self.database_url
        return "sqlite+aiosqlite:///apihub.db"

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.effective_database_url.startswith("sqlite")

    @property
    def cors_allow_origins_list(self) -> list[str]:
        """Parse comma-delimited CORS origins into a list."""
        origins = [origin.strip() for origin in self.cors_allow_origins.split(",")]
        cleaned = [origin for origin in origins if origin]
        return cleaned or ["*"]

    def model_post_init(self, __context: object) -> None:
        if not self.secret_key:
            self.secret_key = _get_or_create_secret_key()
            if self.is_production:
                logger.warning(
                    "APIHUB_SECRET_KEY is not set; using the key stored at %s. "
                    "Provider keys encrypted with it cannot be read by other "
                    "deployments.",
                    _SECRET_KEY_FILE,
                )


@lru_cache
def get_settings() -> Settings:
    return Settings()
