from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from cineclub.application.ports.catalog_store_port import CatalogStorePort, ContributorRole, TitleOrder
from cineclub.domain.catalog import (
    CandidateFilter,
    Movie,
    MovieStatus,
    PollHistoryEntry,
    PollHistoryItem,
    Provenance,
)
from cineclub.domain.errors import Conflict, ServiceUnavailable

logger = logging.getLogger(__name__)

_CONTRIBUTOR_ROLES = ("added_by", "watched_by")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_status(raw: Any) -> MovieStatus:
    try:
        return MovieStatus(str(raw or "").strip().lower())
    except ValueError:
        return MovieStatus.PENDING


def _valid_import_row(row: Dict[str, Any]) -> bool:
    tmdb_id = row.get("tmdb_id")
    return isinstance(tmdb_id, int) and tmdb_id > 0 and bool(str(row.get("title") or "").strip())


def _movie_to_row(m: Movie) -> Dict[str, Any]:
    return {
        "tmdb_id": m.tmdb_id,
        "title": m.title,
        "year": m.year,
        "status": m.status.value,
        "added_at": m.added_at,
        "added_by": m.added_by,
        "watched_at": m.watched_at,
        "watched_by": m.watched_by,
    }


class InMemoryCatalogStore(CatalogStorePort):
    """Dict-backed store for local runs and tests.

    No method awaits anything, so every mutation is atomic with respect to
    the event loop.
    """

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utcnow
        self._movies: Dict[int, Movie] = {}
        self._next_id = 1
        self._history: List[PollHistoryEntry] = []
        self._next_poll_id = 1

    @property
    def history(self) -> List[PollHistoryEntry]:
        return list(self._history)

    def _by_tmdb_id(self, tmdb_id: int) -> Optional[Movie]:
        for m in self._movies.values():
            if m.tmdb_id == int(tmdb_id):
                return m
        return None

    def _add(self, movie: Movie) -> Movie:
        movie = dataclasses.replace(movie, id=self._next_id)
        self._movies[movie.id] = movie
        self._next_id += 1
        return movie

    async def insert_pending(
        self,
        *,
        tmdb_id: int,
        title: str,
        year: Optional[int],
        added_by: Optional[str],
    ) -> Movie:
        existing = self._by_tmdb_id(tmdb_id)
        if existing is not None:
            raise Conflict(existing)
        return self._add(
            Movie(
                id=0,
                tmdb_id=int(tmdb_id),
                title=str(title),
                year=year,
                status=MovieStatus.PENDING,
                added_at=self._clock(),
                added_by=added_by,
            )
        )

    async def find_by_title(
        self,
        query: str,
        *,
        status: Optional[MovieStatus] = None,
        limit: int = 10,
        order: TitleOrder = "status_then_newest",
    ) -> List[Movie]:
        q = (query or "").strip().lower()
        if not q:
            return []
        items = [m for m in self._movies.values() if q in m.title.lower()]
        if status is not None:
            items = [m for m in items if m.status == status]
        if order == "newest_added":
            items.sort(key=lambda m: (m.added_at or _EPOCH, m.id), reverse=True)
        else:
            # 'pending' < 'watched'; newest row first within a status
            items.sort(key=lambda m: (m.status.value, -m.id))
        return items[: max(0, int(limit))]

    async def mark_watched(self, movie_id: int, *, watched_by: Optional[str]) -> Optional[Movie]:
        m = self._movies.get(int(movie_id))
        if m is None or not m.is_pending:
            return None
        updated = dataclasses.replace(m, status=MovieStatus.WATCHED, watched_at=self._clock(), watched_by=watched_by)
        self._movies[m.id] = updated
        return updated

    async def remove(self, movie_id: int) -> bool:
        return self._movies.pop(int(movie_id), None) is not None

    async def remove_all(self) -> None:
        self._movies.clear()
        self._history.clear()

    async def record_suggestion(self, tmdb_ids: Iterable[int], *, at: datetime) -> None:
        wanted = {int(t) for t in tmdb_ids}
        for m in list(self._movies.values()):
            if m.tmdb_id in wanted:
                self._movies[m.id] = dataclasses.replace(m, last_suggested_at=at, suggested_count=m.suggested_count + 1)

    async def append_poll_history(
        self,
        items: Sequence[Any],
        *,
        provenance: Provenance,
        at: datetime,
    ) -> int:
        entry = PollHistoryEntry(
            id=self._next_poll_id,
            created_at=at,
            items=tuple(
                PollHistoryItem(tmdb_id=int(it.tmdb_id), title=str(it.title), year=it.year, provenance=provenance)
                for it in items
            ),
        )
        self._history.append(entry)
        self._next_poll_id += 1
        return entry.id

    async def recently_used_tmdb_ids(self, last_n_polls: int) -> set[int]:
        if int(last_n_polls) <= 0:
            return set()
        recent = self._history[-int(last_n_polls) :]
        return {item.tmdb_id for entry in recent for item in entry.items}

    async def list_suggestion_candidates(
        self,
        *,
        strictness: CandidateFilter,
        cooldown_before: datetime,
        exclude_tmdb_ids: Iterable[int] = (),
    ) -> List[Movie]:
        items = [m for m in self._movies.values() if m.is_pending]
        if strictness in (CandidateFilter.STRICT, CandidateFilter.COOLDOWN_ONLY):
            items = [m for m in items if m.last_suggested_at is None or m.last_suggested_at < cooldown_before]
        if strictness == CandidateFilter.STRICT:
            excluded = {int(t) for t in exclude_tmdb_ids}
            items = [m for m in items if m.tmdb_id not in excluded]
        items.sort(key=lambda m: (m.suggested_count, m.added_at or _EPOCH, m.id))
        return items

    async def list_pending(self, *, limit: int) -> List[Movie]:
        items = [m for m in self._movies.values() if m.is_pending]
        items.sort(key=lambda m: (m.added_at or _EPOCH, m.id), reverse=True)
        return items[: max(0, int(limit))]

    async def count_by_status(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in MovieStatus}
        for m in self._movies.values():
            counts[m.status.value] += 1
        return counts

    async def top_contributors(self, role: ContributorRole, *, limit: int = 5) -> List[tuple[str, int]]:
        if role not in _CONTRIBUTOR_ROLES:
            raise ValueError(f"unknown contributor role: {role}")
        counts: Dict[str, int] = {}
        for m in self._movies.values():
            who = getattr(m, role)
            if who:
                counts[who] = counts.get(who, 0) + 1
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return ranked[: max(0, int(limit))]

    async def export_rows(self) -> List[Dict[str, Any]]:
        return [_movie_to_row(m) for m in sorted(self._movies.values(), key=lambda m: m.id)]

    async def import_rows(self, rows: Sequence[Dict[str, Any]], *, replace: bool) -> tuple[int, int]:
        if replace:
            self._movies.clear()
            self._history.clear()
        imported = skipped = 0
        for row in rows:
            if not _valid_import_row(row) or self._by_tmdb_id(row["tmdb_id"]) is not None:
                skipped += 1
                continue
            self._add(
                Movie(
                    id=0,
                    tmdb_id=row["tmdb_id"],
                    title=str(row["title"]).strip(),
                    year=row.get("year"),
                    status=_coerce_status(row.get("status")),
                    added_at=row.get("added_at") or self._clock(),
                    added_by=row.get("added_by"),
                    watched_at=row.get("watched_at"),
                    watched_by=row.get("watched_by"),
                )
            )
            imported += 1
        return imported, skipped

    async def close(self) -> None:
        return None


_MOVIE_COLUMNS = (
    "id, tmdb_id, title, year, status, added_at, added_by, watched_at, watched_by, "
    "last_suggested_at, suggested_count"
)


class PostgresCatalogStore(CatalogStorePort):
    """Postgres-backed catalog storage (asyncpg)."""

    def __init__(
        self,
        *,
        dsn: str,
        min_size: int = 1,
        max_size: int = 5,
    ) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self):
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            if self._pool is not None:
                return self._pool
            import asyncpg  # type: ignore

            try:
                self._pool = await asyncpg.create_pool(
                    self._dsn,
                    min_size=self._min_size,
                    max_size=self._max_size,
                )
            except (OSError, asyncpg.PostgresError) as exc:
                logger.error("PostgreSQL unreachable: %s", exc)
                raise ServiceUnavailable("catalog database unavailable") from exc
            await self._ensure_schema()
            logger.info("PostgreSQL catalog store pool initialized")
            return self._pool

    async def _ensure_schema(self) -> None:
        pool = self._pool
        if pool is None:
            return
        async with pool.acquire() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS movies (
                    id bigserial PRIMARY KEY,
                    tmdb_id bigint NOT NULL UNIQUE,
                    title text NOT NULL,
                    year int,
                    status text NOT NULL DEFAULT 'pending',
                    added_at timestamptz NOT NULL DEFAULT NOW(),
                    added_by text,
                    watched_at timestamptz,
                    watched_by text,
                    last_suggested_at timestamptz,
                    suggested_count int NOT NULL DEFAULT 0
                );
                """
            )
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS poll_history (
                    id bigserial PRIMARY KEY,
                    created_at timestamptz NOT NULL DEFAULT NOW()
                );
                """
            )
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS poll_history_items (
                    id bigserial PRIMARY KEY,
                    poll_id bigint NOT NULL REFERENCES poll_history(id) ON DELETE CASCADE,
                    tmdb_id bigint NOT NULL,
                    title text NOT NULL,
                    year int,
                    provenance text NOT NULL DEFAULT 'catalog'
                );
                """
            )
            await conn.execute("CREATE INDEX IF NOT EXISTS movies_status_idx ON movies(status);")
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS poll_history_items_poll_id_idx ON poll_history_items(poll_id);"
            )

    @staticmethod
    def _row_to_movie(row: dict) -> Movie:
        return Movie(
            id=int(row["id"]),
            tmdb_id=int(row["tmdb_id"]),
            title=str(row.get("title") or ""),
            year=row.get("year"),
            status=_coerce_status(row.get("status")),
            added_at=row.get("added_at"),
            added_by=row.get("added_by"),
            watched_at=row.get("watched_at"),
            watched_by=row.get("watched_by"),
            last_suggested_at=row.get("last_suggested_at"),
            suggested_count=int(row.get("suggested_count") or 0),
        )

    async def insert_pending(
        self,
        *,
        tmdb_id: int,
        title: str,
        year: Optional[int],
        added_by: Optional[str],
    ) -> Movie:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            while True:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO movies (tmdb_id, title, year, status, added_by)
                    VALUES ($1, $2, $3, 'pending', $4)
                    ON CONFLICT (tmdb_id) DO NOTHING
                    RETURNING {_MOVIE_COLUMNS};
                    """,
                    int(tmdb_id),
                    str(title),
                    year,
                    added_by,
                )
                if row is not None:
                    return self._row_to_movie(dict(row))
                existing = await conn.fetchrow(
                    f"SELECT {_MOVIE_COLUMNS} FROM movies WHERE tmdb_id = $1;",
                    int(tmdb_id),
                )
                if existing is not None:
                    break
                # Conflicting row was removed in between; insert again.
                logger.debug("tmdb_id=%s vanished after insert conflict; retrying", tmdb_id)
        raise Conflict(self._row_to_movie(dict(existing)))

    async def find_by_title(
        self,
        query: str,
        *,
        status: Optional[MovieStatus] = None,
        limit: int = 10,
        order: TitleOrder = "status_then_newest",
    ) -> List[Movie]:
        q = (query or "").strip()
        if not q:
            return []
        pool = await self._get_pool()
        params: list[Any] = [q]
        sql = f"SELECT {_MOVIE_COLUMNS} FROM movies WHERE position(lower($1) in lower(title)) > 0"
        if status is not None:
            params.append(status.value)
            sql += f" AND status = ${len(params)}"
        if order == "newest_added":
            sql += " ORDER BY added_at DESC, id DESC"
        else:
            sql += " ORDER BY status ASC, id DESC"
        params.append(max(0, int(limit)))
        sql += f" LIMIT ${len(params)}"
        async with pool.acquire() as conn:
            rows = await conn.fetch(sql, *params)
        return [self._row_to_movie(dict(r)) for r in rows]

    async def mark_watched(self, movie_id: int, *, watched_by: Optional[str]) -> Optional[Movie]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE movies
                SET status = 'watched', watched_at = NOW(), watched_by = $2
                WHERE id = $1 AND status = 'pending'
                RETURNING {_MOVIE_COLUMNS};
                """,
                int(movie_id),
                watched_by,
            )
        return self._row_to_movie(dict(row)) if row else None

    async def remove(self, movie_id: int) -> bool:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            result = await conn.execute("DELETE FROM movies WHERE id = $1;", int(movie_id))
        return str(result).endswith(" 1")

    async def remove_all(self) -> None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM poll_history_items;")
                await conn.execute("DELETE FROM poll_history;")
                await conn.execute("DELETE FROM movies;")

    async def record_suggestion(self, tmdb_ids: Iterable[int], *, at: datetime) -> None:
        ids = [int(t) for t in tmdb_ids]
        if not ids:
            return
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    UPDATE movies
                    SET last_suggested_at = $1, suggested_count = suggested_count + 1
                    WHERE tmdb_id = ANY($2::bigint[]);
                    """,
                    at,
                    ids,
                )

    async def append_poll_history(
        self,
        items: Sequence[Any],
        *,
        provenance: Provenance,
        at: datetime,
    ) -> int:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                poll_id = await conn.fetchval(
                    "INSERT INTO poll_history (created_at) VALUES ($1) RETURNING id;",
                    at,
                )
                await conn.executemany(
                    """
                    INSERT INTO poll_history_items (poll_id, tmdb_id, title, year, provenance)
                    VALUES ($1, $2, $3, $4, $5);
                    """,
                    [(poll_id, int(it.tmdb_id), str(it.title), it.year, provenance.value) for it in items],
                )
        return int(poll_id)

    async def recently_used_tmdb_ids(self, last_n_polls: int) -> set[int]:
        if int(last_n_polls) <= 0:
            return set()
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT DISTINCT tmdb_id FROM poll_history_items
                WHERE poll_id IN (SELECT id FROM poll_history ORDER BY id DESC LIMIT $1);
                """,
                int(last_n_polls),
            )
        return {int(r["tmdb_id"]) for r in rows}

    async def list_suggestion_candidates(
        self,
        *,
        strictness: CandidateFilter,
        cooldown_before: datetime,
        exclude_tmdb_ids: Iterable[int] = (),
    ) -> List[Movie]:
        pool = await self._get_pool()
        params: list[Any] = []
        sql = f"SELECT {_MOVIE_COLUMNS} FROM movies WHERE status = 'pending'"
        if strictness in (CandidateFilter.STRICT, CandidateFilter.COOLDOWN_ONLY):
            params.append(cooldown_before)
            sql += f" AND (last_suggested_at IS NULL OR last_suggested_at < ${len(params)})"
        if strictness == CandidateFilter.STRICT:
            params.append([int(t) for t in exclude_tmdb_ids])
            sql += f" AND NOT (tmdb_id = ANY(${len(params)}::bigint[]))"
        sql += " ORDER BY suggested_count ASC, added_at ASC, id ASC"
        async with pool.acquire() as conn:
            rows = await conn.fetch(sql, *params)
        return [self._row_to_movie(dict(r)) for r in rows]

    async def list_pending(self, *, limit: int) -> List[Movie]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_MOVIE_COLUMNS} FROM movies
                WHERE status = 'pending'
                ORDER BY added_at DESC, id DESC
                LIMIT $1;
                """,
                max(0, int(limit)),
            )
        return [self._row_to_movie(dict(r)) for r in rows]

    async def count_by_status(self) -> Dict[str, int]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch("SELECT status, COUNT(1) AS n FROM movies GROUP BY status;")
        counts = {s.value: 0 for s in MovieStatus}
        for r in rows:
            counts[_coerce_status(r["status"]).value] += int(r["n"])
        return counts

    async def top_contributors(self, role: ContributorRole, *, limit: int = 5) -> List[tuple[str, int]]:
        if role not in _CONTRIBUTOR_ROLES:
            raise ValueError(f"unknown contributor role: {role}")
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            # `role` is one of two fixed column names, checked above.
            rows = await conn.fetch(
                f"""
                SELECT {role} AS who, COUNT(1) AS n
                FROM movies
                WHERE {role} IS NOT NULL AND {role} <> ''
                GROUP BY {role}
                ORDER BY n DESC, who ASC
                LIMIT $1;
                """,
                max(0, int(limit)),
            )
        return [(str(r["who"]), int(r["n"])) for r in rows]

    async def export_rows(self) -> List[Dict[str, Any]]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_MOVIE_COLUMNS} FROM movies ORDER BY id ASC;")
        return [_movie_to_row(self._row_to_movie(dict(r))) for r in rows]

    async def import_rows(self, rows: Sequence[Dict[str, Any]], *, replace: bool) -> tuple[int, int]:
        pool = await self._get_pool()
        imported = skipped = 0
        async with pool.acquire() as conn:
            async with conn.transaction():
                if replace:
                    await conn.execute("DELETE FROM poll_history_items;")
                    await conn.execute("DELETE FROM poll_history;")
                    await conn.execute("DELETE FROM movies;")
                for row in rows:
                    if not _valid_import_row(row):
                        skipped += 1
                        continue
                    new_id = await conn.fetchval(
                        """
                        INSERT INTO movies (tmdb_id, title, year, status, added_at, added_by, watched_at, watched_by)
                        VALUES ($1, $2, $3, $4, COALESCE($5, NOW()), $6, $7, $8)
                        ON CONFLICT (tmdb_id) DO NOTHING
                        RETURNING id;
                        """,
                        row["tmdb_id"],
                        str(row["title"]).strip(),
                        row.get("year"),
                        _coerce_status(row.get("status")).value,
                        row.get("added_at"),
                        row.get("added_by"),
                        row.get("watched_at"),
                        row.get("watched_by"),
                    )
                    if new_id is None:
                        skipped += 1
                    else:
                        imported += 1
        logger.info("Catalog import finished: imported=%s skipped=%s replace=%s", imported, skipped, replace)
        return imported, skipped

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
        self._pool = None


def build_catalog_store(dsn: Optional[str]) -> CatalogStorePort:
    if dsn:
        return PostgresCatalogStore(dsn=dsn)
    logger.warning("No Postgres DSN configured; using in-memory catalog store (data is lost on restart)")
    return InMemoryCatalogStore()
