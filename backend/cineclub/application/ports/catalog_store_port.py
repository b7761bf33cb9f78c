from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Literal, Optional, Protocol, Sequence

from cineclub.domain.catalog import CandidateFilter, Movie, MovieStatus, Provenance

# status_then_newest: pending before watched, newest row first (removal lookups)
# newest_added: most recently added first (watched lookups, listings)
TitleOrder = Literal["status_then_newest", "newest_added"]
ContributorRole = Literal["added_by", "watched_by"]


class CatalogStorePort(Protocol):
    async def insert_pending(
        self,
        *,
        tmdb_id: int,
        title: str,
        year: Optional[int],
        added_by: Optional[str],
    ) -> Movie:
        """Insert a pending movie. Raises Conflict when tmdb_id is already present."""
        ...

    async def find_by_title(
        self,
        query: str,
        *,
        status: Optional[MovieStatus] = None,
        limit: int = 10,
        order: TitleOrder = "status_then_newest",
    ) -> List[Movie]:
        ...

    async def mark_watched(self, movie_id: int, *, watched_by: Optional[str]) -> Optional[Movie]:
        """Pending -> watched. Returns None if the row is missing or not pending."""
        ...

    async def remove(self, movie_id: int) -> bool:
        ...

    async def remove_all(self) -> None:
        """Delete every movie and the whole poll history."""
        ...

    async def record_suggestion(self, tmdb_ids: Iterable[int], *, at: datetime) -> None:
        """Bump suggested_count and set last_suggested_at for every id, atomically."""
        ...

    async def append_poll_history(
        self,
        items: Sequence[Any],
        *,
        provenance: Provenance,
        at: datetime,
    ) -> int:
        """Log one launched vote. `items` are anything with tmdb_id/title/year."""
        ...

    async def recently_used_tmdb_ids(self, last_n_polls: int) -> set[int]:
        ...

    async def list_suggestion_candidates(
        self,
        *,
        strictness: CandidateFilter,
        cooldown_before: datetime,
        exclude_tmdb_ids: Iterable[int] = (),
    ) -> List[Movie]:
        ...

    async def list_pending(self, *, limit: int) -> List[Movie]:
        ...

    async def count_by_status(self) -> Dict[str, int]:
        ...

    async def top_contributors(self, role: ContributorRole, *, limit: int = 5) -> List[tuple[str, int]]:
        ...

    async def export_rows(self) -> List[Dict[str, Any]]:
        ...

    async def import_rows(self, rows: Sequence[Dict[str, Any]], *, replace: bool) -> tuple[int, int]:
        """Returns (imported, skipped). Rows whose tmdb_id exists are skipped."""
        ...

    async def close(self) -> None:
        ...
