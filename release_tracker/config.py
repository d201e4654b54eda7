#!/usr/bin/env python3
"""
Configuration loaded from environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_DB_PATH = "github_releases.db"
DEFAULT_FALLBACK_PATH = "/tmp/github_releases.db"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


@dataclass
class Config:
    """Runtime settings for the tracker, the store and the server."""
    github_token: Optional[str] = None
    github_api_url: str = DEFAULT_API_URL
    github_timeout: int = 30
    database_path: str = DEFAULT_DB_PATH
    allow_db_fallback: bool = False
    database_fallback_path: str = DEFAULT_FALLBACK_PATH
    use_firestore: bool = False
    sync_interval_minutes: int = 60
    refresh_metadata_on_sync: bool = True
    port: int = 8000
    log_level: str = "INFO"

    @property
    def sync_interval_seconds(self) -> int:
        return self.sync_interval_minutes * 60


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def load_configuration() -> Config:
    """Load configuration from environment variables.

    A missing GITHUB_TOKEN is allowed; requests are then made anonymously
    with GitHub's lower rate limit.
    """
    return Config(
        github_token=os.environ.get('GITHUB_TOKEN') or None,
        github_api_url=os.environ.get('GITHUB_API_URL', DEFAULT_API_URL).rstrip('/'),
        github_timeout=_env_positive_int('GITHUB_TIMEOUT', 30),
        database_path=os.environ.get('DATABASE_PATH', DEFAULT_DB_PATH),
        allow_db_fallback=_env_flag('ALLOW_DB_FALLBACK'),
        database_fallback_path=os.environ.get('DATABASE_FALLBACK_PATH', DEFAULT_FALLBACK_PATH),
        use_firestore=_env_flag('USE_FIRESTORE') or os.getenv('GAE_ENV', '').startswith('standard'),
        sync_interval_minutes=_env_positive_int('SYNC_INTERVAL_MINUTES', 60),
        refresh_metadata_on_sync=_env_flag('REFRESH_METADATA_ON_SYNC', True),
        port=_env_positive_int('PORT', 8000),
        log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI and server entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
