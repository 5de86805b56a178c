"""
Runtime configuration for jobrecs.

Settings come from ``JOBRECS_*`` environment variables, after a ``.env``
file in the working directory (if any) has been loaded.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "JOBRECS_"

_TRUE = {"1", "true", "yes", "on"}


def load_env() -> None:
    """Load .env from the working directory if present.

    Existing environment variables win over values in the file.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def _get(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Resolved configuration values."""

    db_path: Path = Path("data/listings.db")
    store_url: Optional[str] = None
    collection: str = "listings"
    top_k: int = 6
    query_limit: int = 20
    max_filter_values: int = 10
    max_workers: int = 4
    request_timeout: int = 15
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = True


def load_settings() -> Settings:
    """
    Build Settings from the environment.

    Returns:
        Settings with defaults for anything unset

    Raises:
        ValueError: If a numeric setting is malformed or out of range
    """
    load_env()
    return Settings(
        db_path=Path(_get("DB_PATH", "data/listings.db")),
        store_url=_get("STORE_URL"),
        collection=_get("COLLECTION", "listings"),
        top_k=_get_int("TOP_K", 6),
        query_limit=_get_int("QUERY_LIMIT", 20, minimum=1),
        max_filter_values=_get_int("MAX_FILTER_VALUES", 10, minimum=1),
        max_workers=_get_int("MAX_WORKERS", 4, minimum=1),
        request_timeout=_get_int("REQUEST_TIMEOUT", 15, minimum=1),
        log_level=_get("LOG_LEVEL", "INFO").upper(),
        log_dir=Path(_get("LOG_DIR", "logs")),
        log_to_file=_get("LOG_TO_FILE", "true").lower() in _TRUE,
    )
