import os
from typing import Optional


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"environment variable {key} must be an integer, got {raw}") from exc


def get_postgres_dsn() -> Optional[str]:
    """Postgres DSN for the catalog store, or None to run on the in-memory store.

    `.env` loading is centralized in `cineclub.config.settings`; this only reads
    the environment.
    """
    dsn = (os.getenv("POSTGRES_DSN") or os.getenv("DATABASE_URL") or "").strip()
    if dsn:
        return dsn

    host = (os.getenv("POSTGRES_HOST") or "").strip()
    if not host:
        return None

    port = _get_env_int("POSTGRES_PORT", 5432)
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    db = os.getenv("POSTGRES_DB", "cineclub")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"
