"""Runtime settings for the code search service.

Values come from environment variables (optionally loaded from `.env` files by
the API entrypoint). Invalid values fail fast with the offending variable name.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip()


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Env var {name} must be an int, got {raw!r}") from e
    if value < minimum:
        raise RuntimeError(f"Env var {name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        value = float(raw)
    except ValueError as e:
        raise RuntimeError(f"Env var {name} must be a float, got {raw!r}") from e
    if value < 0:
        raise RuntimeError(f"Env var {name} must not be negative, got {value}")
    return value


def _env_schedule(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    raw = _env(name, ",".join(str(d) for d in default))
    try:
        schedule = tuple(float(part) for part in raw.split(",") if part.strip())
    except ValueError as e:
        raise RuntimeError(
            f"Env var {name} must be a comma separated list of seconds, got {raw!r}"
        ) from e
    if not schedule or any(delay < 0 for delay in schedule):
        raise RuntimeError(f"Env var {name} must list non-negative delays, got {raw!r}")
    return schedule


@dataclass(frozen=True)
class Settings:
    db_path: str = "codes.db"

    embeddings_api_url: str = "http://localhost:11434/api/embeddings"
    embeddings_model: str = "nomic-embed-text"
    embedding_dimension: int = 768
    embeddings_timeout: float = 10.0
    embeddings_max_attempts: int = 3
    embeddings_backoff: tuple[float, ...] = field(default=(1.0, 2.0, 4.0))

    csv_max_rows: int = 1000
    csv_chunk_size: int = 100
    csv_chunk_delay: float = 0.1

    search_default_limit: int = 5
    search_max_limit: int = 50

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current process environment."""
        defaults = cls()
        settings = cls(
            db_path=_env("CODES_DB_PATH", defaults.db_path),
            embeddings_api_url=_env("EMBEDDINGS_API_URL", defaults.embeddings_api_url),
            embeddings_model=_env("EMBEDDINGS_MODEL", defaults.embeddings_model),
            embedding_dimension=_env_int(
                "EMBEDDINGS_DIMENSION", defaults.embedding_dimension, minimum=1
            ),
            embeddings_timeout=_env_float(
                "EMBEDDINGS_TIMEOUT_SECONDS", defaults.embeddings_timeout
            ),
            embeddings_max_attempts=_env_int(
                "EMBEDDINGS_MAX_ATTEMPTS", defaults.embeddings_max_attempts, minimum=1
            ),
            embeddings_backoff=_env_schedule(
                "EMBEDDINGS_BACKOFF_SECONDS", defaults.embeddings_backoff
            ),
            csv_max_rows=_env_int("CSV_MAX_ROWS", defaults.csv_max_rows, minimum=1),
            csv_chunk_size=_env_int(
                "CSV_CHUNK_SIZE", defaults.csv_chunk_size, minimum=1
            ),
            csv_chunk_delay=_env_float(
                "CSV_CHUNK_DELAY_SECONDS", defaults.csv_chunk_delay
            ),
            search_default_limit=_env_int(
                "SEARCH_DEFAULT_LIMIT", defaults.search_default_limit, minimum=1
            ),
            search_max_limit=_env_int(
                "SEARCH_MAX_LIMIT", defaults.search_max_limit, minimum=1
            ),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
        )
        if settings.search_default_limit > settings.search_max_limit:
            raise RuntimeError(
                "SEARCH_DEFAULT_LIMIT must not exceed SEARCH_MAX_LIMIT "
                f"({settings.search_default_limit} > {settings.search_max_limit})"
            )
        return settings
