from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from cineclub.application.catalog.backup_codec import BackupFormat, backup_filename, dump_backup, parse_backup
from cineclub.application.catalog.metadata_resolver import MetadataResolver
from cineclub.application.catalog.suggestion_picker import SuggestionPicker
from cineclub.application.ports.catalog_store_port import CatalogStorePort
from cineclub.domain.catalog import Movie, MovieStatus, ResolvedMovie
from cineclub.domain.errors import AmbiguousMatch, Conflict, MovieNotFound, NotEnoughMovies

logger = logging.getLogger(__name__)

# Removal shows at most this many candidates when the selector is ambiguous.
_REMOVE_MATCH_LIMIT = 10


@dataclass(frozen=True)
class AddOutcome:
    movie: Movie
    resolved: ResolvedMovie
    # False when the movie was already in the catalog (the stored row is returned untouched)
    created: bool


@dataclass(frozen=True)
class CatalogStats:
    total: int
    pending: int
    watched: int
    top_adders: List[tuple[str, int]]
    top_watchers: List[tuple[str, int]]


@dataclass(frozen=True)
class BackupFile:
    filename: str
    content: str
    count: int


def _require_text(value: str, field: str = "title") -> str:
    text = (value or "").strip()
    if not text:
        raise ValueError(f"{field} is required")
    return text


class CatalogService:
    """Catalog use-cases shared by the HTTP API and the Discord bot."""

    def __init__(
        self,
        *,
        store: CatalogStorePort,
        resolver: MetadataResolver,
        picker: SuggestionPicker,
        list_limit: int = 100,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._picker = picker
        self._list_limit = int(list_limit)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def list_limit(self) -> int:
        return self._list_limit

    async def lookup(self, text: str) -> ResolvedMovie:
        return await self._resolver.resolve(_require_text(text))

    async def add_movie(self, text: str, *, submitter: Optional[str]) -> AddOutcome:
        resolved = await self._resolver.resolve(_require_text(text))
        try:
            movie = await self._store.insert_pending(
                tmdb_id=resolved.tmdb_id,
                title=resolved.title,
                year=resolved.year,
                added_by=submitter,
            )
        except Conflict as exc:
            logger.info("Movie tmdb_id=%s already in catalog", resolved.tmdb_id)
            return AddOutcome(movie=exc.existing, resolved=resolved, created=False)
        logger.info("Added movie tmdb_id=%s title=%r by=%s", movie.tmdb_id, movie.title, submitter)
        return AddOutcome(movie=movie, resolved=resolved, created=True)

    async def remove_movie(self, query: str) -> Movie:
        """Remove the single entry matching `query`; refuses when several match."""
        q = _require_text(query)
        matches = await self._store.find_by_title(q, limit=_REMOVE_MATCH_LIMIT, order="status_then_newest")
        if not matches:
            raise MovieNotFound(q)
        if len(matches) > 1:
            raise AmbiguousMatch(q, matches)

        target = matches[0]
        if not await self._store.remove(target.id):
            raise MovieNotFound(q)
        logger.info("Removed movie id=%s title=%r", target.id, target.title)
        return target

    async def mark_watched(self, query: str, *, watcher: Optional[str]) -> Movie:
        """Mark the most recently added pending entry matching `query` as watched."""
        q = _require_text(query)
        matches = await self._store.find_by_title(q, status=MovieStatus.PENDING, limit=1, order="newest_added")
        if not matches:
            raise MovieNotFound(q)
        updated = await self._store.mark_watched(matches[0].id, watched_by=watcher)
        if updated is None:
            raise MovieNotFound(q)
        return updated

    async def list_pending(self, limit: Optional[int] = None) -> List[Movie]:
        return await self._store.list_pending(limit=self._list_limit if limit is None else int(limit))

    async def pending_count(self) -> int:
        counts = await self._store.count_by_status()
        return int(counts.get(MovieStatus.PENDING.value, 0))

    async def suggest_one(self) -> Movie:
        if await self.pending_count() == 0:
            raise NotEnoughMovies(needed=1, found=0)
        picked = await self._picker.pick(1)
        if not picked:
            raise NotEnoughMovies(needed=1, found=0)
        movie = picked[0]
        await self._store.record_suggestion([movie.tmdb_id], at=self._clock())
        return movie

    async def stats(self, *, top: int = 5) -> CatalogStats:
        counts = await self._store.count_by_status()
        pending = int(counts.get(MovieStatus.PENDING.value, 0))
        watched = int(counts.get(MovieStatus.WATCHED.value, 0))
        return CatalogStats(
            total=sum(int(v) for v in counts.values()),
            pending=pending,
            watched=watched,
            top_adders=await self._store.top_contributors("added_by", limit=top),
            top_watchers=await self._store.top_contributors("watched_by", limit=top),
        )

    async def reset(self) -> None:
        await self._store.remove_all()
        logger.warning("Catalog reset: all movies and poll history deleted")

    async def export_backup(self, fmt: BackupFormat = "json") -> BackupFile:
        if fmt not in ("json", "csv"):
            raise ValueError(f"unsupported backup format: {fmt}")
        now = self._clock()
        rows = await self._store.export_rows()
        return BackupFile(
            filename=backup_filename(fmt, now=now),
            content=dump_backup(rows, fmt=fmt, exported_at=now) if rows else "",
            count=len(rows),
        )

    async def import_backup(self, text: str, *, filename: str, replace: bool = False) -> tuple[int, int]:
        rows = parse_backup(text, filename=filename)
        imported, skipped = await self._store.import_rows(rows, replace=replace)
        logger.info("Imported backup %s: imported=%s skipped=%s replace=%s", filename, imported, skipped, replace)
        return imported, skipped
