"""Runtime settings read from environment variables."""

import os
from dataclasses import dataclass
from typing import Optional


def _get_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration."""
    
    github_token: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    telegram_bot_token: Optional[str] = None
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    postgres_db: str = "commit_watcher"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    check_interval_seconds: float = 60.0
    request_timeout_seconds: float = 10.0
    detector_max_workers: int = 4
    dispatcher_max_workers: int = 4
    notify_on_first_commit: bool = False
    log_level: str = "INFO"
    
    @property
    def postgres_dsn(self) -> str:
        return (
            f"host={self.postgres_host} port={self.postgres_port} dbname={self.postgres_db} "
            f"user={self.postgres_user} password={self.postgres_password}"
        )
    
    @property
    def registry_pool_size(self) -> int:
        """Connections needed so every detector worker plus one command can hold one."""
        return self.detector_max_workers + 1
    
    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment, validating numeric values."""
        return cls(
            github_token=os.getenv("GITHUB_TOKEN") or None,
            github_api_url=os.getenv("GITHUB_API_URL", cls.github_api_url),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            postgres_host=os.getenv("POSTGRES_HOST", cls.postgres_host),
            postgres_port=os.getenv("POSTGRES_PORT", cls.postgres_port),
            postgres_db=os.getenv("POSTGRES_DB", cls.postgres_db),
            postgres_user=os.getenv("POSTGRES_USER", cls.postgres_user),
            postgres_password=os.getenv("POSTGRES_PASSWORD", cls.postgres_password),
            check_interval_seconds=_get_float("CHECK_INTERVAL_SECONDS", cls.check_interval_seconds),
            request_timeout_seconds=_get_float("REQUEST_TIMEOUT_SECONDS", cls.request_timeout_seconds),
            detector_max_workers=_get_int("DETECTOR_MAX_WORKERS", cls.detector_max_workers),
            dispatcher_max_workers=_get_int("DISPATCHER_MAX_WORKERS", cls.dispatcher_max_workers),
            notify_on_first_commit=_get_bool("NOTIFY_ON_FIRST_COMMIT", cls.notify_on_first_commit),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
