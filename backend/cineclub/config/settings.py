import os

from dotenv import load_dotenv

# Project .env wins over the shell environment.
load_dotenv(override=True)


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"environment variable {key} must be an integer, got {raw}") from exc


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"environment variable {key} must be a number, got {raw}") from exc


def _get_env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.lower() in {"1", "true", "y", "yes", "on"}


def _get_env_list(key: str) -> tuple[str, ...]:
    raw = os.getenv(key) or ""
    return tuple(part.strip() for part in raw.split(",") if part.strip())


# ===== FastAPI / Uvicorn =====

SERVER_HOST = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT = _get_env_int("SERVER_PORT", _get_env_int("PORT", 8080))
SERVER_RELOAD = _get_env_bool("SERVER_RELOAD", False)
SERVER_LOG_LEVEL = os.getenv("SERVER_LOG_LEVEL", "info")

# Active polls live in process memory, so the server always runs a single worker.
UVICORN_CONFIG = {
    "host": SERVER_HOST,
    "port": SERVER_PORT,
    "reload": SERVER_RELOAD,
    "log_level": SERVER_LOG_LEVEL,
    "workers": 1,
}

# Optional shared secret for the HTTP API (sent as `x-api-key`). Empty = open.
HTTP_API_KEY = os.getenv("HTTP_API_KEY", "").strip()


# ===== TMDB =====

TMDB_BASE_URL = os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3").strip()
TMDB_API_TOKEN = os.getenv("TMDB_API_TOKEN", os.getenv("TMDB_BEARER", "")).strip()
TMDB_API_KEY = os.getenv("TMDB_API_KEY", "").strip()
TMDB_TIMEOUT_S = _get_env_float("TMDB_TIMEOUT_S", 10.0) or 10.0
TMDB_LANGUAGE = os.getenv("TMDB_LANGUAGE", "es-ES").strip() or "es-ES"


# ===== Suggestions / votes =====

# A suggested movie is not suggested again within this window (when alternatives exist).
SUGGESTION_COOLDOWN_HOURS = _get_env_float("SUGGESTION_COOLDOWN_HOURS", 24.0)
# Movies surfaced by the last N votes are avoided (when alternatives exist).
AVOID_LAST_POLLS = _get_env_int("AVOID_LAST_POLLS", 3)

VOTE_DURATION_S = _get_env_float("VOTE_DURATION_S", 300.0) or 300.0
VOTE_MIN_DURATION_S = _get_env_float("VOTE_MIN_DURATION_S", 30.0) or 30.0
VOTE_OPTIONS_DEFAULT = _get_env_int("VOTE_OPTIONS_DEFAULT", 3) or 3
VOTE_OPTIONS_MIN = 3
VOTE_OPTIONS_MAX = 5
# Closed polls stay in memory this long so late clicks get a proper answer.
POLL_RETENTION_S = _get_env_float("POLL_RETENTION_S", 600.0)

LIST_LIMIT = _get_env_int("LIST_LIMIT", 100) or 100
HTTP_LIST_LIMIT_MAX = 300


# ===== Discord =====

DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "").strip()
DISCORD_GUILD_ID = _get_env_int("DISCORD_GUILD_ID", 0)
# Channel used by HTTP-launched votes and announcements.
ANNOUNCE_CHANNEL_ID = _get_env_int("ANNOUNCE_CHANNEL_ID", _get_env_int("GPT_CHANNEL_ID", 0))
# When set, only members with one of these roles may change the catalog.
ADMIN_ROLE_IDS = _get_env_list("ADMIN_ROLE_IDS")
