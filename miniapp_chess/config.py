"""
Configuration loading.

- Loads a `.env` file from the working directory if present (python-dotenv), real environment variables win.
- Exposes `Settings` with the knobs used across the project (bot token, session policy, database, ...).
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Optional

from dotenv import load_dotenv

from miniapp_chess.core.exceptions import ConfigurationError

DAY_IN_SECONDS = 24 * 60 * 60


def _get(name: str, default: Any, cast: Optional[Callable[[str], Any]] = None) -> Any:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return cast(value) if cast else value
    except ValueError as exc:
        raise ConfigurationError(f"{name}={value!r} is not valid: {exc}") from exc


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError("expected a boolean")


@dataclass(frozen=True)
class Settings:
    # Host platform
    bot_token: str

    # Session policy
    init_data_max_age: int = DAY_IN_SECONDS
    session_cache_ttl: int = 300
    session_cache_size: int = 10_000

    # Game rules
    strict_promotion: bool = False

    # Persistence
    database_url: str = "sqlite:///./miniapp_chess.db"

    # Remote verification (clients of the backend)
    verify_url: str = "http://localhost:8000"
    verify_retries: int = 3

    log_level: str = "INFO"

    def validate(self) -> None:
        """Make sure the critical fields are set"""
        if not self.bot_token:
            raise ConfigurationError("BOT_TOKEN is required.")
        if self.init_data_max_age <= 0:
            raise ConfigurationError("INIT_DATA_MAX_AGE must be positive.")
        if self.session_cache_size < 1:
            raise ConfigurationError("SESSION_CACHE_SIZE must be at least 1.")
        if self.verify_retries < 1:
            raise ConfigurationError("VERIFY_RETRIES must be at least 1.")


def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """Read .env (if any) and the environment, then validate."""
    if env_file:
        load_dotenv(env_file, override=False)

    settings = Settings(
        bot_token=_get("BOT_TOKEN", ""),
        init_data_max_age=_get("INIT_DATA_MAX_AGE", DAY_IN_SECONDS, cast=int),
        session_cache_ttl=_get("SESSION_CACHE_TTL", 300, cast=int),
        session_cache_size=_get("SESSION_CACHE_SIZE", 10_000, cast=int),
        strict_promotion=_get("STRICT_PROMOTION", False, cast=_to_bool),
        database_url=_get("DATABASE_URL", "sqlite:///./miniapp_chess.db"),
        verify_url=_get("VERIFY_URL", "http://localhost:8000"),
        verify_retries=_get("VERIFY_RETRIES", 3, cast=int),
        log_level=_get("LOG_LEVEL", "INFO").upper(),
    )
    settings.validate()
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
