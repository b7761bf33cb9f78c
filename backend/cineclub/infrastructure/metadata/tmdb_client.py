"""
TMDB API HTTP client used by the metadata resolver.

Only two endpoints are needed: title search and the IMDb `/find` lookup.
Transport failures are raised as ServiceUnavailable so callers can tell
"no such movie" apart from "TMDB is down".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from cineclub.config.settings import (
    TMDB_API_KEY,
    TMDB_API_TOKEN,
    TMDB_BASE_URL,
    TMDB_LANGUAGE,
    TMDB_TIMEOUT_S,
)
from cineclub.domain.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class TMDBClient:
    """Async HTTP client for the TMDB v3 API.

    Attributes:
        _base_url: TMDB API base URL
        _api_token: v4 bearer token (preferred)
        _api_key: v3 api_key query param (fallback when no token)
        _language: language passed to every call
        _session: aiohttp ClientSession (lazily initialized)
        _lock: guards session creation
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_token: str | None = None,
        api_key: str | None = None,
        language: str | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._base_url = (base_url or TMDB_BASE_URL or "").rstrip("/")
        self._api_token = (api_token if api_token is not None else TMDB_API_TOKEN or "").strip()
        self._api_key = (api_key if api_key is not None else TMDB_API_KEY or "").strip()
        self._language = (language or TMDB_LANGUAGE or "en-US").strip()
        self._timeout_s = float(timeout_s or TMDB_TIMEOUT_S or 10.0)
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self._base_url and (self._api_token or self._api_key))

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    def _auth_params(self) -> dict[str, str]:
        """v3 auth via api_key query param (used when bearer token is absent)."""
        if self._api_token:
            return {}
        if self._api_key:
            return {"api_key": self._api_key}
        return {}

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None and not self._session.closed:
            return self._session

        async with self._lock:
            # Double-check after acquiring lock
            if self._session is not None and not self._session.closed:
                return self._session

            timeout = aiohttp.ClientTimeout(total=self._timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            return self._session

    async def _get_json(self, path: str, params: dict[str, Any], *, what: str) -> dict[str, Any] | None:
        """GET a TMDB endpoint. Returns None on 404, raises ServiceUnavailable otherwise."""
        if not self.configured:
            logger.warning("TMDB client not configured (missing base_url or auth)")
            raise ServiceUnavailable("tmdb_not_configured")

        url = f"{self._base_url}{path}"
        query = {**params, **self._auth_params()}
        logger.debug("TMDB %s url=%s params=%s", what, url, params)
        try:
            session = await self._get_session()
            async with session.get(url, params=query, headers=self._headers()) as resp:
                if resp.status == 404:
                    return None
                if resp.status >= 400:
                    error_text = await resp.text()
                    logger.error("TMDB %s failed (%s): %s", what, resp.status, error_text[:200])
                    raise ServiceUnavailable(f"tmdb_{what}_http_{resp.status}")
                data = await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            logger.error("TMDB %s timeout after %ss", what, self._timeout_s)
            raise ServiceUnavailable(f"tmdb_{what}_timeout") from exc
        except aiohttp.ClientError as exc:
            logger.error("TMDB %s request failed: %s", what, exc)
            raise ServiceUnavailable(f"tmdb_{what}_unreachable") from exc
        return data if isinstance(data, dict) else {}

    async def search_movies(self, query: str) -> list[dict[str, Any]]:
        """Search movies by title (raw results, TMDB relevance order)."""
        data = await self._get_json(
            "/search/movie",
            {"query": query, "include_adult": "false", "language": self._language, "page": 1},
            what="search",
        )
        results = (data or {}).get("results", []) or []
        if not isinstance(results, list):
            return []
        return [r for r in results if isinstance(r, dict)]

    async def find_by_imdb_id(self, imdb_id: str) -> dict[str, Any] | None:
        """Exact lookup of an IMDb id (`tt0133093`); first movie result or None."""
        data = await self._get_json(
            f"/find/{imdb_id}",
            {"external_source": "imdb_id", "language": self._language},
            what="find",
        )
        results = (data or {}).get("movie_results", []) or []
        if not isinstance(results, list):
            return None
        for r in results:
            if isinstance(r, dict):
                return r
        return None

    async def close(self) -> None:
        """Close the HTTP session and release resources."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
