"""
Centralized configuration for the match persistence core.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

None of these are required: the core runs with defaults, and the remote
store is simply unavailable when no database URL is set.

Usage:
    from config import config
    print(config.SAVE_DEBOUNCE_MS)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from constants import DEFAULT_SAVE_DEBOUNCE_MS

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class PersistenceConfig:
    """Persistence configuration."""
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Remote store (PostgreSQL); empty means remote persistence is disabled
    DATABASE_URL: str = ""

    # Local fallback store (SQLite file)
    LOCAL_STORE_PATH: str = "match_state.db"

    # Debounce window for coalescing edits into a single save
    SAVE_DEBOUNCE_MS: int = DEFAULT_SAVE_DEBOUNCE_MS

    # Adopt the local snapshot when nobody is logged in
    OFFLINE_RESUME: bool = False

    @property
    def save_debounce_seconds(self) -> float:
        return self.SAVE_DEBOUNCE_MS / 1000.0

    @property
    def remote_enabled(self) -> bool:
        return bool(self.DATABASE_URL)

    @classmethod
    def from_env(cls) -> "PersistenceConfig":
        """Load configuration from environment variables."""
        database_url: Optional[str] = get_env("DATABASE_URL") or get_env("POSTGRES_URL")
        debounce_ms = get_env_int("SAVE_DEBOUNCE_MS", DEFAULT_SAVE_DEBOUNCE_MS)
        if debounce_ms < 0:
            debounce_ms = DEFAULT_SAVE_DEBOUNCE_MS

        return cls(
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            DATABASE_URL=database_url or "",
            LOCAL_STORE_PATH=get_env("LOCAL_STORE_PATH", "match_state.db"),
            SAVE_DEBOUNCE_MS=debounce_ms,
            OFFLINE_RESUME=get_env_bool("OFFLINE_RESUME", False),
        )


# Global config instance - loaded once at module import
config = PersistenceConfig.from_env()


def reload_config() -> PersistenceConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = PersistenceConfig.from_env()
    return config
