import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """Service settings, read from the environment when instantiated."""

    database_url: str = field(
        default_factory=lambda: os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./parking.db")
    )
    host: str = field(default_factory=lambda: os.getenv("PARKING_SERVICE_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PARKING_SERVICE_PORT", 8001)))
    reload: bool = field(default_factory=lambda: _env_bool(os.getenv("PARKING_SERVICE_RELOAD"), False))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    sql_echo: bool = field(default_factory=lambda: _env_bool(os.getenv("SQL_ECHO"), False))


settings = Settings()
