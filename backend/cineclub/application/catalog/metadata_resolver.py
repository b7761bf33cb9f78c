"""
Free text or IMDb reference -> one canonical TMDB movie.

IMDb ids short-circuit to an exact `/find` lookup. Everything else goes
through title search plus a deterministic score over the raw results.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Optional

from cineclub.application.ports.metadata_search_port import MetadataSearchPort
from cineclub.domain.catalog import ResolvedMovie
from cineclub.domain.catalog.titles import extract_imdb_id, extract_year, normalize_title, release_year
from cineclub.domain.errors import MovieNotFound
from cineclub.domain.polls import MAX_POLL_OPTIONS

logger = logging.getLogger(__name__)

_YEAR_MATCH_BONUS = 10_000
_EXACT_TITLE_BONUS = 2_000
_PARTIAL_TITLE_BONUS = 500


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def score_candidate(candidate: dict[str, Any], *, query: str, year: Optional[int]) -> float:
    score = _as_float(candidate.get("vote_count")) * 2 + _as_float(candidate.get("popularity"))

    if year is not None and release_year(candidate.get("release_date")) == year:
        score += _YEAR_MATCH_BONUS

    q = normalize_title(query)
    t = normalize_title(str(candidate.get("title") or candidate.get("original_title") or ""))
    if q and t:
        if q == t:
            score += _EXACT_TITLE_BONUS
        elif q in t or t in q:
            score += _PARTIAL_TITLE_BONUS
    return score


def pick_best_candidate(results: List[dict[str, Any]], *, query: str, year: Optional[int]) -> Optional[dict[str, Any]]:
    """Highest score wins; `sorted` is stable so ties keep the API's order."""
    if not results:
        return None
    ranked = sorted(results, key=lambda r: score_candidate(r, query=query, year=year), reverse=True)
    return ranked[0]


def _to_resolved(raw: dict[str, Any], *, imdb_id: Optional[str] = None) -> ResolvedMovie:
    return ResolvedMovie(
        tmdb_id=int(raw["id"]),
        title=str(raw.get("title") or raw.get("original_title") or "").strip(),
        year=release_year(raw.get("release_date")),
        overview=str(raw.get("overview") or "").strip(),
        vote_average=_as_float(raw.get("vote_average")),
        vote_count=int(_as_float(raw.get("vote_count"))),
        popularity=_as_float(raw.get("popularity")),
        imdb_id=imdb_id,
    )


class MetadataResolver:
    def __init__(self, *, search: MetadataSearchPort) -> None:
        self._search = search

    async def resolve(self, text: str) -> ResolvedMovie:
        """Resolve one reference. Raises MovieNotFound or ServiceUnavailable."""
        raw = (text or "").strip()
        if not raw:
            raise ValueError("title is required")

        imdb_id = extract_imdb_id(raw)
        if imdb_id:
            found = await self._search.find_by_imdb_id(imdb_id)
            if not found or found.get("id") is None:
                raise MovieNotFound(raw)
            logger.debug("Resolved %s via IMDb id -> tmdb_id=%s", imdb_id, found.get("id"))
            return _to_resolved(found, imdb_id=imdb_id)

        query, year = extract_year(raw)
        results = [r for r in await self._search.search_movies(query) if r.get("id") is not None]
        best = pick_best_candidate(results, query=query, year=year)
        if best is None:
            raise MovieNotFound(raw)
        logger.debug(
            "Resolved %r (query=%r year=%s) -> tmdb_id=%s among %d results",
            raw,
            query,
            year,
            best.get("id"),
            len(results),
        )
        return _to_resolved(best)

    async def resolve_many(self, texts: Iterable[str]) -> List[ResolvedMovie]:
        """Resolve a manual vote list.

        Items resolve concurrently; unresolvable ones are skipped, duplicates
        (same tmdb_id) keep their first occurrence, and the result is capped
        at the poll option maximum. ServiceUnavailable propagates.
        """
        items = [t for t in (str(x or "").strip() for x in texts) if t]
        outcomes = await asyncio.gather(*(self._resolve_or_none(t) for t in items), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        movies: List[ResolvedMovie] = []
        seen: set[int] = set()
        for movie in outcomes:
            if movie is None or movie.tmdb_id in seen:
                continue
            seen.add(movie.tmdb_id)
            movies.append(movie)
        return movies[:MAX_POLL_OPTIONS]

    async def _resolve_or_none(self, text: str) -> Optional[ResolvedMovie]:
        try:
            return await self.resolve(text)
        except MovieNotFound:
            logger.info("Skipping unresolvable vote item %r", text)
            return None
